#!/usr/bin/env python3
"""
Compliance Report API -- operator command line.

Usage:
  python main.py init-db
  python main.py purge-sessions
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload

Environment variables (also read from .env):
  SECRET_KEY      HS256 signing key for access tokens, 32+ characters.
                  Required unless DEBUG=true.
  DATABASE_URL    SQLAlchemy URL. Defaults to a SQLite file in the project root.
"""

import argparse
import sys

from auth.store import SessionStore, init_auth_schema
from core.config import get_settings
from core.database import create_db_engine
from reports.store import init_report_schema


def _engine():
    settings = get_settings()
    return create_db_engine(settings.database_url, settings.db_pool_size, settings.db_pool_timeout)


def _init_db() -> int:
    """Create every table the service needs. Safe to run repeatedly."""
    engine = _engine()
    try:
        init_auth_schema(engine)
        init_report_schema(engine)
    finally:
        engine.dispose()
    print(f"  Schema ready at {engine.url.render_as_string(hide_password=True)}")
    return 0


def _purge_sessions() -> int:
    engine = _engine()
    try:
        removed = SessionStore(engine).purge_expired()
    finally:
        engine.dispose()
    print(f"  Removed {removed} expired session(s).")
    return 0


def _serve(host: str, port: int, reload: bool) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=host, port=port, reload=reload)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="compliance-api",
        description="Authentication and report storage for the compliance scanner.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  DATABASE_URL=postgresql://app@db/compliance python main.py init-db
  python main.py purge-sessions
  python main.py serve --port 3001
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.add_parser("init-db", help="Create the users, refresh_tokens and reports tables")
    sub.add_parser("purge-sessions", help="Delete refresh tokens whose expiry has passed")
    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    if args.command == "init-db":
        sys.exit(_init_db())
    elif args.command == "purge-sessions":
        sys.exit(_purge_sessions())
    elif args.command == "serve":
        sys.exit(_serve(args.host, args.port, args.reload))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
