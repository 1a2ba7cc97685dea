from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import DEFAULT_API_URL, DEFAULT_TIMEOUT_SEC


class Settings(BaseSettings):
    # Env vars win; a local .env is picked up for development.
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    api_url: str = Field(
        default=DEFAULT_API_URL,
        validation_alias=AliasChoices("FLEETDESK_API_URL", "API_URL", "api_url"),
    )

    request_timeout: float = Field(
        default=DEFAULT_TIMEOUT_SEC,
        gt=0,
        validation_alias=AliasChoices("FLEETDESK_TIMEOUT", "request_timeout"),
    )

    # "file" persists tokens per API origin; "memory" keeps them for the process only.
    token_store: Literal["file", "memory"] = Field(
        default="file",
        validation_alias=AliasChoices("FLEETDESK_TOKEN_STORE", "token_store"),
    )

    token_dir: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("FLEETDESK_TOKEN_DIR", "token_dir"),
    )

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))

    @field_validator("api_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("FLEETDESK_API_URL must not be empty")
        return v

    @property
    def resolved_token_dir(self) -> Path:
        if self.token_dir is not None:
            return self.token_dir
        xdg_config = os.environ.get("XDG_CONFIG_HOME")
        if xdg_config:
            return Path(xdg_config) / "fleetdesk"
        return Path.home() / ".config" / "fleetdesk"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
