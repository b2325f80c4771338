"""Command-line interface for the time tracker services."""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from timetracker.config import ENV_LOCAL, ENV_PROD, TrackerConfig, load_config
from timetracker.errors import InvalidInputError, TrackerError

logger = logging.getLogger("timetracker.main")

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Time tracker utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration (default: TRACKER_CONFIG or config/tracker.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the tracker database")

    serve_parser = subparsers.add_parser("serve", help="Start the time tracker HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: from config)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: from config)")

    userinfo_parser = subparsers.add_parser("userinfo", help="Start the user info HTTP service")
    userinfo_parser.add_argument("--host", default=None, help="Bind address (default: from config)")
    userinfo_parser.add_argument("--port", type=int, default=None, help="Port (default: from config)")

    task_parser = subparsers.add_parser("add-task", help="Add an entry to the task catalog")
    task_parser.add_argument("name", help="Display name of the task")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "userinfo", "init-db", "add-task"}

    # Global options come first; the remainder decides the subcommand.
    prefix: list[str] = []
    while args_list:
        if args_list[0] == "--config" and len(args_list) > 1:
            prefix.extend(args_list[:2])
            args_list = args_list[2:]
        elif args_list[0].startswith("--config="):
            prefix.append(args_list[0])
            args_list = args_list[1:]
        else:
            break

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(prefix + args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(prefix + args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(prefix + args_list)


class JSONLogFormatter(logging.Formatter):
    """One JSON object per line, for log collectors in dev and prod."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _formatter_for(env: str) -> logging.Formatter:
    if env == ENV_LOCAL:
        return logging.Formatter(_LOG_FORMAT)
    return JSONLogFormatter()


def configure_logging(env: str) -> None:
    """Log at DEBUG everywhere except production.

    ``local`` writes human-readable lines; ``dev`` and ``prod`` write JSON.
    """

    level = logging.INFO if env == ENV_PROD else logging.DEBUG
    handler = logging.StreamHandler()
    handler.setFormatter(_formatter_for(env))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def _load_config(path: str | None) -> TrackerConfig:
    try:
        return load_config(Path(path) if path else None)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Cannot load configuration: {exc}") from exc


def _serve(config: TrackerConfig, *, host: str | None, port: int | None) -> None:
    from timetracker.application import create_application
    import uvicorn

    try:
        app = create_application(config)
    except TrackerError as exc:
        logger.error("Failed to warm the cache from the database: %s", exc)
        raise SystemExit(1) from exc

    bind_host = host or config.http_server.host
    bind_port = port or config.http_server.port
    logger.info("Starting time tracker API on http://%s:%s (env=%s)", bind_host, bind_port, config.env)
    uvicorn.run(
        app,
        host=bind_host,
        port=bind_port,
        log_level="info",
        timeout_keep_alive=config.http_server.timeout_keep_alive,
    )


def _serve_userinfo(config: TrackerConfig, *, host: str | None, port: int | None) -> None:
    from timetracker.application import create_userinfo_application
    import uvicorn

    bind_host = host or config.user_info.host
    bind_port = port or config.user_info.port
    logger.info("Starting user info service on http://%s:%s", bind_host, bind_port)
    uvicorn.run(create_userinfo_application(config), host=bind_host, port=bind_port, log_level="info")


def _add_task(config: TrackerConfig, name: str) -> int:
    from timetracker.application import open_database

    database = open_database(config)
    try:
        task = database.create_task(name)
    except InvalidInputError as exc:
        print(f"Failed to create task: {exc}", file=sys.stderr)
        return 1

    print(f"Created task #{task.id}: {task.name}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    config = _load_config(args.config)
    configure_logging(config.env)

    if args.command == "serve":
        _serve(config, host=args.host, port=args.port)
    elif args.command == "userinfo":
        _serve_userinfo(config, host=args.host, port=args.port)
    elif args.command == "init-db":
        from timetracker.application import open_database

        open_database(config)
        print("Database initialisation complete.")
    elif args.command == "add-task":
        return _add_task(config, args.name)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
