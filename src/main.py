# src/main.py — v2
"""CLI entry point: worker and operator commands.

Usage:
    manuscript-pipeline worker [--queue analysis] [--once]
    manuscript-pipeline upload <file> --user <id> [--type txt] [--title T] [--genre G]
    manuscript-pipeline status <report_id>
    manuscript-pipeline artifacts <user> <manuscript>
    manuscript-pipeline regenerate <user> <manuscript> [--kinds a,b]
    manuscript-pipeline cancel <user> <report_id>
    manuscript-pipeline dead-letters [--queue assets]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from manuscript_pipeline.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


def _build_parser() -> argparse.ArgumentParser:
    from manuscript_pipeline.queue.base_queue import QUEUE_NAMES

    parser = argparse.ArgumentParser(
        prog="manuscript-pipeline",
        description=f"Manuscript pipeline v{__version__}: editorial and marketing agents for authors",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- worker ---
    p_worker = subparsers.add_parser("worker", help="Consume pipeline jobs")
    p_worker.add_argument(
        "--queue", action="append", choices=QUEUE_NAMES, default=None,
        help="Queue to consume (repeatable; default: all)",
    )
    p_worker.add_argument(
        "--once", action="store_true",
        help="Drain the queues once and exit",
    )
    p_worker.set_defaults(func=_cmd_worker)

    # --- upload ---
    p_upload = subparsers.add_parser("upload", help="Upload a manuscript and queue its analysis")
    p_upload.add_argument("file", type=Path, help="Path to the manuscript")
    p_upload.add_argument("--user", required=True, help="Owning user id")
    p_upload.add_argument("--type", dest="file_type", default=None,
                          help="Declared type (default: from the file extension)")
    p_upload.add_argument("--title", default=None)
    p_upload.add_argument("--genre", default=None)
    p_upload.set_defaults(func=_cmd_upload)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Show job status")
    p_status.add_argument("report_id")
    p_status.set_defaults(func=_cmd_status)

    # --- artifacts ---
    p_artifacts = subparsers.add_parser("artifacts", help="List a manuscript's artifacts")
    p_artifacts.add_argument("user")
    p_artifacts.add_argument("manuscript")
    p_artifacts.set_defaults(func=_cmd_artifacts)

    # --- regenerate ---
    p_regen = subparsers.add_parser("regenerate", help="Queue artifact regeneration")
    p_regen.add_argument("user")
    p_regen.add_argument("manuscript")
    p_regen.add_argument("--kinds", default=None,
                         help="Comma-separated kinds (default: all assets)")
    p_regen.set_defaults(func=_cmd_regenerate)

    # --- cancel ---
    p_cancel = subparsers.add_parser("cancel", help="Cancel a job")
    p_cancel.add_argument("user")
    p_cancel.add_argument("report_id")
    p_cancel.set_defaults(func=_cmd_cancel)

    # --- dead-letters ---
    p_dead = subparsers.add_parser("dead-letters", help="List dead-lettered messages")
    p_dead.add_argument("--queue", choices=QUEUE_NAMES, default=None)
    p_dead.set_defaults(func=_cmd_dead_letters)

    return parser


async def _run(args: argparse.Namespace) -> int:
    from manuscript_pipeline.api.errors import error_body
    from manuscript_pipeline.api.facade import ManuscriptService
    from manuscript_pipeline.config.settings import load_settings
    from manuscript_pipeline.container import build_container
    from manuscript_pipeline.core.errors import PipelineError
    from manuscript_pipeline.logging.logger import setup_logging

    settings = load_settings()
    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    container = build_container(settings)
    await container.start()
    try:
        return await args.func(args, container, ManuscriptService(container))
    except PipelineError as exc:
        _print(error_body(exc))
        return 1
    finally:
        await container.close()


async def _cmd_worker(args: argparse.Namespace, container: Any, service: Any) -> int:
    from manuscript_pipeline.queue.base_queue import QUEUE_NAMES

    queues = args.queue or list(QUEUE_NAMES)
    if args.once:
        for queue in queues:
            outcomes = await container.worker.drain(queue)
            print(f"{queue}: {len(outcomes)} deliveries handled")
        return 0
    await container.worker.run_forever(queues)
    return 0


async def _cmd_upload(args: argparse.Namespace, container: Any, service: Any) -> int:
    file_path: Path = args.file
    if not file_path.is_file():
        logger.error("File not found: %s", file_path)
        return 1
    declared = args.file_type or file_path.suffix.lstrip(".").lower()
    result = await service.upload(
        args.user,
        file_path.read_bytes(),
        declared,
        file_path.name,
        title=args.title,
        genre=args.genre,
    )
    _print(result.model_dump(by_alias=False))
    return 0


async def _cmd_status(args: argparse.Namespace, container: Any, service: Any) -> int:
    _print(await service.get_status(args.report_id))
    return 0


async def _cmd_artifacts(args: argparse.Namespace, container: Any, service: Any) -> int:
    _print(await service.list_artifacts(args.user, args.manuscript))
    return 0


async def _cmd_regenerate(args: argparse.Namespace, container: Any, service: Any) -> int:
    kinds = [k.strip() for k in args.kinds.split(",") if k.strip()] if args.kinds else None
    ticket = await service.request_regeneration(args.user, args.manuscript, kinds)
    _print(ticket.to_body())
    return 0


async def _cmd_cancel(args: argparse.Namespace, container: Any, service: Any) -> int:
    _print(await service.cancel(args.user, args.report_id))
    return 0


async def _cmd_dead_letters(args: argparse.Namespace, container: Any, service: Any) -> int:
    from manuscript_pipeline.queue.base_queue import QUEUE_NAMES

    queues = [args.queue] if args.queue else list(QUEUE_NAMES)
    for queue in queues:
        messages = await container.queue.dead_letters(queue)
        print(f"{queue}: {len(messages)} dead-lettered")
        for message in messages:
            print(f"  {message.report_id}  {message.pipeline}  attempts={message.attempt}")
    return 0


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


if __name__ == "__main__":
    sys.exit(main())
