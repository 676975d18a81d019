"""Main module for the image optimizer CLI."""

import argparse
import asyncio
import signal
import sys
from typing import Any, Dict, List, Optional

from . import __version__
from .core import ConfigurationError, ImageFormat, OptimizationMode, configure_logging
from .core.config import OptimizerSettings, load_settings
from .core.factories import BlobStoreFactory, PipelineFactory, QueueSourceFactory
from .core.observability import MetricsCollector
from .queues.worker import QueueWorker


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-optimizer",
        description="Image Optimizer - queue-driven resize and re-encode of uploaded images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the queue worker with settings from the environment / .env
  image-optimizer worker

  # Optimize in place instead of writing to a second container
  image-optimizer worker --mode in_place

  # Handle a single message
  image-optimizer handle --message '{"data": {"url": "https://acct.blob.core.windows.net/images/photo.png"}}'

  # Show version
  image-optimizer version
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Options shared by worker and handle
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--backend", choices=["azure", "aws"], help="Storage and queue backend")
    common.add_argument(
        "--mode",
        choices=[m.value for m in OptimizationMode],
        help="Write to a separate container or overwrite in place",
    )
    common.add_argument("--destination-container", help="Container for optimized images")
    common.add_argument("--max-width", type=int, help="Largest output width in pixels")
    common.add_argument("--quality", type=int, help="Encoder quality (1-100)")
    common.add_argument(
        "--format", dest="output_format", choices=[f.value for f in ImageFormat], help="Output format"
    )
    common.add_argument("--debug", action="store_true", help="Enable debug logging")

    worker_parser = subparsers.add_parser(
        "worker", parents=[common], help="Poll the queue and optimize images until stopped"
    )
    worker_parser.add_argument("--queue-name", help="Queue to consume")
    worker_parser.add_argument("--concurrency", type=int, help="Messages handled at once")

    handle_parser = subparsers.add_parser(
        "handle", parents=[common], help="Handle one message and print the result"
    )
    source = handle_parser.add_mutually_exclusive_group()
    source.add_argument("--message", help="Message body (JSON)")
    source.add_argument("--file", help="File holding the message body; '-' for stdin")

    subparsers.add_parser("version", help="Show version information")
    return parser


def settings_from_args(args: argparse.Namespace) -> OptimizerSettings:
    """Environment settings with command line overrides applied."""
    overrides: Dict[str, Any] = {}
    for name in (
        "backend",
        "mode",
        "destination_container",
        "max_width",
        "quality",
        "output_format",
        "queue_name",
        "concurrency",
    ):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if args.debug:
        overrides["log_level"] = "DEBUG"
    return load_settings(**overrides)


def read_message(args: argparse.Namespace) -> str:
    if args.message is not None:
        return args.message
    if args.file and args.file != "-":
        with open(args.file, encoding="utf-8") as fh:
            return fh.read()
    return sys.stdin.read()


async def run_worker(settings: OptimizerSettings, stop_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
    """Run the worker until ``stop_event`` is set or SIGINT/SIGTERM arrives."""
    stop_event = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform or outside the main thread
            pass

    metrics = MetricsCollector()
    async with BlobStoreFactory.create_store(settings) as store:
        async with QueueSourceFactory.create_source(settings) as source:
            orchestrator = PipelineFactory.create_orchestrator(
                store, settings, metrics_collector=metrics
            )
            worker = QueueWorker(
                source,
                orchestrator,
                concurrency=settings.concurrency,
                batch_size=settings.batch_size,
                poll_interval=settings.poll_interval,
                max_delivery_attempts=settings.max_delivery_attempts,
            )
            await worker.run(stop_event)
    return metrics.get_summary()


async def run_handle(settings: OptimizerSettings, message: str) -> str:
    """Handle one message; returns the result as JSON."""
    async with BlobStoreFactory.create_store(settings) as store:
        orchestrator = PipelineFactory.create_orchestrator(store, settings)
        result = await orchestrator.handle(message)
    return result.model_dump_json(indent=2)


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``image-optimizer`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print("Image Optimizer")
        print(f"Version {__version__}")
        sys.exit(0)

    if args.command not in ("worker", "handle"):
        parser.print_help()
        sys.exit(1)

    try:
        settings = settings_from_args(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    logger = configure_logging(settings.log_level, settings.log_format)

    try:
        if args.command == "worker":
            summary = asyncio.run(run_worker(settings))
            logger.info(f"Worker summary: {summary}")
        else:
            print(asyncio.run(run_handle(settings, read_message(args))))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:  # noqa: BLE001
        logger.error(f"Message handling failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
