"""
python -m fleetdesk auth <cmd>   login, logout, profile, ...
python -m fleetdesk export       fleet report as Markdown
python -m fleetdesk <cmd>        companies and vehicles
"""

import sys


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: fleetdesk <auth|export|companies|vehicles|...>", file=sys.stderr)
        sys.exit(1)

    if sys.argv[1] == "auth":
        sys.argv = [sys.argv[0], *sys.argv[2:]]
        from .auth import main as auth_main

        auth_main()
    elif sys.argv[1] == "export":
        sys.argv = [sys.argv[0], *sys.argv[2:]]
        from .export import main as export_main

        export_main()
    else:
        from .client import main as client_main

        client_main()


if __name__ == "__main__":
    main()
