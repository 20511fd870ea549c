"""Command-line interface for the socialmedia service."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from socialmedia.config import Settings, load_settings
from socialmedia.database import Database, StorageError

logger = logging.getLogger("socialmedia.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="socialmedia JSON-store CRUD service")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: SOCIALMEDIA_CONFIG or config/socialmedia.yaml)",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the JSON store (default: SOCIALMEDIA_DB_PATH or data/db.json)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the JSON store if it does not exist")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: localhost)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: 8081)")
    serve_parser.add_argument(
        "--keep-alive-timeout",
        type=int,
        default=None,
        help="Seconds an idle connection is kept open (default: 30)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if not any(arg in known_commands for arg in args_list):
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = _insert_default_command(args_list)

    return parser.parse_args(args_list)


def _insert_default_command(args_list: list[str]) -> list[str]:
    """Place ``serve`` after any global options so both kinds still parse."""

    global_options = {"--config", "--db"}
    index = 0
    while index < len(args_list) and args_list[index] in global_options:
        index += 2
    return [*args_list[:index], "serve", *args_list[index:]]


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config).expanduser() if args.config else None
    settings = load_settings(config_path)
    return settings.with_overrides(
        database_path=args.db_path,
        host=getattr(args, "host", None),
        port=getattr(args, "port", None),
        keep_alive_timeout=getattr(args, "keep_alive_timeout", None),
    )


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    try:
        if database.ensure_database():
            logger.info("Database initialised at %s", settings.database_path)
        else:
            logger.info("Using existing database at %s", settings.database_path)
    except StorageError as exc:
        logger.error("Failed to init database: %s", exc)
    return database


def _serve(*, database: Database, settings: Settings) -> None:
    from socialmedia.api import create_app
    import uvicorn

    logger.info("Starting socialmedia API on http://%s:%s", settings.host, settings.port)

    app = create_app(database=database)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        timeout_keep_alive=settings.keep_alive_timeout,
    )
    logger.info("server closed")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    try:
        settings = _load_settings(args)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(database=database, settings=settings)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
