#!/usr/bin/env python3
"""
Command-line interface for Chirper.

Usage:
    chirper <command> [options]
    python cli.py <command> [options]

Commands:
    serve       Run the HTTP API (with an in-process worker unless Redis is configured)
    worker      Drain the Redis job queue and send notification emails
    init-db     Create the database tables
    demo        Walk through a notification scenario in memory
    test        Run pytest

Configuration is read from CHIRPER_* environment variables or a .env file;
see shared/config.py.
"""

import argparse
import logging
import subprocess
import sys


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    print(f"Chirper listening on http://{args.host}:{args.port} (docs at /docs)")
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


def cmd_worker(args: argparse.Namespace) -> None:
    from event_sourced.app_context import build_app_context
    from event_sourced.job_queue import InMemoryJobQueue

    configure_logging(args.verbose)
    context = build_app_context()
    if isinstance(context.queue, InMemoryJobQueue):
        context.close()
        sys.exit(
            "CHIRPER_REDIS_URL is not set, so there is no shared queue to consume.\n"
            "Set it for both the API and the worker, or let `serve` run its own worker."
        )

    try:
        context.build_worker(worker_name=args.name).run_forever()
    finally:
        context.close()


def cmd_init_db(args: argparse.Namespace) -> None:
    from shared.config import get_settings
    from shared.database import create_db_engine, initialize_database

    configure_logging()
    engine = create_db_engine(get_settings().database_url)
    try:
        initialize_database(engine)
    finally:
        engine.dispose()


def cmd_demo(args: argparse.Namespace) -> None:
    from event_sourced.demo import run_deleted_recipient_demo, run_new_chirp_demo

    scenarios = {
        "new-chirp": [run_new_chirp_demo],
        "deleted-recipient": [run_deleted_recipient_demo],
        "all": [run_new_chirp_demo, run_deleted_recipient_demo],
    }
    for scenario in scenarios[args.scenario]:
        scenario()


def cmd_test(args: argparse.Namespace) -> None:
    result = subprocess.run([sys.executable, "-m", "pytest", *args.pytest_args])
    sys.exit(result.returncode)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chirper",
        description="Chirper CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve --reload
  %(prog)s worker --name mailer-1
  %(prog)s init-db
  %(prog)s demo all
  %(prog)s test -- -k notification
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes")
    serve.set_defaults(handler=cmd_serve)

    worker = subparsers.add_parser("worker", help="Run a notification worker")
    worker.add_argument("--name", default="worker", help="Name shown in worker log lines")
    worker.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    worker.set_defaults(handler=cmd_worker)

    init_db = subparsers.add_parser("init-db", help="Create the database tables")
    init_db.set_defaults(handler=cmd_init_db)

    demo = subparsers.add_parser("demo", help="Run a demo scenario")
    demo.add_argument("scenario", choices=["new-chirp", "deleted-recipient", "all"])
    demo.set_defaults(handler=cmd_demo)

    test = subparsers.add_parser("test", help="Run the test suite")
    test.add_argument("pytest_args", nargs="*", default=[], help="Extra pytest arguments")
    test.set_defaults(handler=cmd_test)

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return
    handler(args)


if __name__ == "__main__":
    main()
