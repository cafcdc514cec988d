"""Command-line interface for the PC parts tracker."""

from __future__ import annotations

import argparse

from partstracker import __version__, database
from partstracker.config import Settings, load_settings
from partstracker.errors import NotAuthenticated
from partstracker.logging import configure_cli_logging
from partstracker.service import TrackerService

DESCRIPTION = "PC Parts Tracker"


def _build_service(settings: Settings, user_id: str | None) -> TrackerService:
    service = TrackerService.from_settings(settings)
    database.init_db(service.engine)
    if user_id:
        service.auth.sign_in(user_id)
    return service


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="partstracker", description=DESCRIPTION)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Optional YAML settings file")
    parser.add_argument("--json-logs", action="store_true", help="Also write JSON log lines to logs/")
    parser.add_argument(
        "--user",
        help="Remote user id to act as; without it the stored local identity is used",
    )
    subparsers = parser.add_subparsers(dest="cmd", required=True)

    subparsers.add_parser("init-db", help="Create the database tables")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Bind address (defaults to settings)")
    serve.add_argument("--port", type=int, help="Bind port (defaults to settings)")

    subparsers.add_parser("parts", help="List the current parts")
    subparsers.add_parser("seed", help="Create the default component slots")
    subparsers.add_parser("setups", help="List saved setups")

    currency = subparsers.add_parser("currency", help="Show or change the profile currency")
    currency.add_argument("--set", dest="value", help="Three-letter currency code to store")
    return parser


def _handle_parts(service: TrackerService) -> None:
    for part in service.get_parts():
        print(f"{part.sort_order:>3}  {part.component:<14} {part.name or '-':<30} {part.amount}")


def _handle_setups(service: TrackerService) -> None:
    for setup in service.get_setups():
        print(f"{setup.id}  {setup.name:<30} {setup.total_amount}  {setup.created_at:%Y-%m-%d %H:%M}")


def _handle_currency(service: TrackerService, value: str | None) -> int:
    if value is None:
        print(service.get_currency())
        return 0
    if not service.update_currency(value.upper()):
        print("[partstracker] unable to update currency")
        return 1
    print(value.upper())
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings(args.config)
    configure_cli_logging(json_logs=bool(args.json_logs or settings.json_logs), level=settings.log_level)

    if args.cmd == "serve":
        import uvicorn

        from partstracker.server import create_app

        uvicorn.run(
            create_app(settings=settings),
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return 0

    service = _build_service(settings, args.user)
    if args.cmd == "init-db":
        print(f"[partstracker] tables ready at {settings.database_url}")
        return 0
    try:
        if args.cmd == "parts":
            _handle_parts(service)
        elif args.cmd == "seed":
            service.seed_default_parts()
            _handle_parts(service)
        elif args.cmd == "setups":
            _handle_setups(service)
        elif args.cmd == "currency":
            return _handle_currency(service, args.value)
    except NotAuthenticated as exc:
        print(f"[partstracker] {exc}")
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
