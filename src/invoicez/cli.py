"""Command line entry point (``invoicez``)."""

import argparse
import asyncio
import json
import sys

import structlog

from invoicez.config import configure_logging, get_settings

logger = structlog.get_logger(__name__)


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "invoicez.api.app:create_app",
        factory=True,
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_config=None,
    )
    return 0


def cmd_init_db(args: argparse.Namespace) -> int:
    from invoicez.db import Database

    db = Database.from_settings()
    try:
        db.create_all()
    finally:
        db.dispose()
    return 0


def cmd_load(args: argparse.Namespace) -> int:
    from invoicez.db import Database
    from invoicez.loader import load_directory

    db = Database.from_settings()
    try:
        db.create_all()
        counts = load_directory(db, args.directory)
    finally:
        db.dispose()
    print(json.dumps(counts, indent=2))
    return 0


def cmd_check_procs(args: argparse.Namespace) -> int:
    from invoicez.db import missing_procedures, registered_procedures

    missing = missing_procedures()
    if missing:
        for group, names in missing.items():
            print(f"[{group}] missing: {', '.join(names)}")
        return 1
    print(f"All required procedures present ({len(registered_procedures())} registered).")
    return 0


def cmd_check_indexes(args: argparse.Namespace) -> int:
    from invoicez.db import Database

    db = Database.from_settings()
    try:
        if args.create:
            for name in db.create_missing_indexes():
                print(f"created: {name}")
        missing = db.missing_indexes()
    finally:
        db.dispose()

    if missing:
        for table, names in missing.items():
            print(f"[{table}] missing: {', '.join(names)}")
        return 1
    print("All recommended indexes present.")
    return 0


async def _check_api(base_url: str | None) -> dict:
    from invoicez.client import InvoicezClient

    async with InvoicezClient(base_url=base_url) as client:
        return await client.health()


def cmd_check_api(args: argparse.Namespace) -> int:
    from invoicez.client import InvoicezAPIError

    try:
        health = asyncio.run(_check_api(args.base_url))
    except InvoicezAPIError as e:
        logger.error("api_check_failed", error=str(e), status_code=e.status_code)
        return 1
    if not health.get("ok"):
        logger.error("api_check_failed", response=health)
        return 1
    print("API OK")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="invoicez",
        description="Invoicez back-office API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init-db                 # Create tables and indexes
  %(prog)s load ./data             # Import clients/staff/products/invoices CSVs
  %(prog)s serve --port 3001       # Run the HTTP API
  %(prog)s check-indexes --create  # Add indexes missing from an older database
  %(prog)s check-api http://localhost:3001
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT)")
    serve.set_defaults(func=cmd_serve)

    sub.add_parser("init-db", help="Create tables and indexes").set_defaults(func=cmd_init_db)

    load = sub.add_parser("load", help="Import CSV files from a directory")
    load.add_argument("directory", nargs="?", default="./data", help="CSV directory")
    load.set_defaults(func=cmd_load)

    sub.add_parser(
        "check-procs", help="Verify every procedure the API needs is registered"
    ).set_defaults(func=cmd_check_procs)

    check_indexes = sub.add_parser(
        "check-indexes", help="Report schema indexes missing from an existing database"
    )
    check_indexes.add_argument(
        "--create", action="store_true", help="Create the missing indexes before reporting"
    )
    check_indexes.set_defaults(func=cmd_check_indexes)

    check_api = sub.add_parser("check-api", help="Smoke-check a running API")
    check_api.add_argument("base_url", nargs="?", default=None, help="Default: INVOICEZ_API_URL")
    check_api.set_defaults(func=cmd_check_api)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
