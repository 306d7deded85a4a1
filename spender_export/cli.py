"""Top spenders export CLI."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from .clients import JobServiceClient
from .config import ExportSettings, JobServiceSettings
from .controller import ExportController
from .errors import JobServiceError
from .logging import configure_logging
from .models import ExportState, ProgressSnapshot
from .scheduler import Sleep


def print_progress(snapshot: ProgressSnapshot) -> None:
    if snapshot.message:
        print(f"[{snapshot.percent:3d}%] {snapshot.message}", flush=True)


async def run_export(
    client: JobServiceClient,
    settings: ExportSettings,
    token: Optional[str] = None,
    output: Optional[Path] = None,
    *,
    sleep: Sleep = asyncio.sleep,
) -> int:
    """Drive one export and save the CSV. Returns a process exit code.

    Ctrl-C cancels the export instead of killing the process, so the job
    service is told to drop its cached data before the command exits.
    """
    if token is None:
        grant = await client.create_session()
        token = grant.token

    controller = ExportController(client, token, settings, on_progress=print_progress, sleep=sleep)

    def interrupt() -> None:
        if controller.job.is_active:
            controller.cancel()

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, interrupt)
        handling_sigint = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops, or not running in the main thread.
        handling_sigint = False

    try:
        job = await controller.start()
        await controller.drain()
    finally:
        if handling_sigint:
            loop.remove_signal_handler(signal.SIGINT)

    if job.state != ExportState.COMPLETE:
        detail = f": {job.error_message}" if job.error_message else ""
        print(f"Export {job.state.value}{detail}", file=sys.stderr)
        return 1

    try:
        exported = await controller.download()
    except JobServiceError as exc:
        print(f"Download failed: {exc.message}", file=sys.stderr)
        return 1

    target = output or Path(exported.filename)
    target.write_bytes(exported.content)
    print(f"Saved {target}")
    return 0


def cmd_run(args) -> int:
    settings = ExportSettings()
    updates = {}
    if args.max_retries is not None:
        updates["max_retries"] = args.max_retries
    if updates:
        settings = settings.model_copy(update=updates)
    client = JobServiceClient(args.url, settings)
    return asyncio.run(run_export(client, settings, args.token, args.output))


def cmd_serve(args) -> int:
    import uvicorn

    from .service import create_app, demo_customer_source

    app = create_app(demo_customer_source(args.customers), JobServiceSettings())
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Top Spenders Export - rate limited batch export",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve --port 8000                 Start the demo job service
  %(prog)s run --url http://localhost:8000   Export to top-spenders-*.csv
  %(prog)s run -o spenders.csv               Export to a chosen file
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run
    run_parser = subparsers.add_parser("run", help="Run an export against a job service")
    run_parser.add_argument("--url", "-u", help="Job service base URL")
    run_parser.add_argument("--token", "-t", help="Authorization token (requested when omitted)")
    run_parser.add_argument("--output", "-o", type=Path, help="Where to write the CSV file")
    run_parser.add_argument("--max-retries", type=int, help="Retries per batch")
    run_parser.set_defaults(func=cmd_run)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the demo job service")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", "-p", type=int, default=8000)
    serve_parser.add_argument("--customers", "-c", type=int, default=250, help="Demo store size")
    serve_parser.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging()
    try:
        sys.exit(args.func(args))
    except JobServiceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
