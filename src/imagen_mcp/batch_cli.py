"""CLI entry point for batch image generation."""

import argparse
import asyncio
import logging
import sys

from imagen_mcp import __version__
from imagen_mcp.config import Settings, settings as default_settings
from imagen_mcp.errors.exceptions import ImagenMCPError

logger = logging.getLogger(__name__)

EXAMPLE_CONFIG = """\
batch config format:
  {
    "jobs": [
      {"prompt": "A beautiful sunset", "output_filename": "sunset.png", "aspect_ratio": "16:9"}
    ],
    "output_dir": "./output",
    "max_concurrent": 2,
    "timeout": 600000
  }

--output-dir and --timeout override the values in the config file.
Exit status is 1 when any job failed or was cancelled.
"""


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid timeout: {value}. Must be a positive number") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Invalid timeout: {value}. Must be a positive number")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imagen-batch",
        description="Vertex AI Imagen batch image generator",
        epilog=EXAMPLE_CONFIG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("config", help="Path to the batch config JSON file")
    parser.add_argument("--output-dir", default=None, help="Output directory for generated images")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Report format (default: text)")
    parser.add_argument("--timeout", type=_positive_int, default=None, help="Timeout in milliseconds (default: 600000)")
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")
    return parser


async def run_batch(args: argparse.Namespace, config: Settings) -> int:
    """Run one batch and print its report. Returns the process exit code."""
    from imagen_mcp.db.engine import create_db_engine, create_session_factory, init_db
    from imagen_mcp.repositories.history_repo import HistoryStore
    from imagen_mcp.repositories.job_repo import JobStore
    from imagen_mcp.services.batch import BatchProcessor, load_batch_config
    from imagen_mcp.services.imagen_client import ImagenClient
    from imagen_mcp.services.output_paths import OutputManager
    from imagen_mcp.services.rate_limiter import RateLimiter
    from imagen_mcp.workers.base import ExecutorContext
    from imagen_mcp.workers.queue import JobQueue

    logger.info("Loading batch config from %s", args.config)
    batch = load_batch_config(args.config)
    overrides = {}
    if args.output_dir:
        overrides["output_dir"] = args.output_dir
    if args.timeout:
        overrides["timeout"] = args.timeout
    if overrides:
        batch = batch.model_copy(update=overrides)

    output_dir = batch.output_dir or config.output_dir
    engine = create_db_engine(config=config)
    await init_db(engine)
    store = JobStore(create_session_factory(engine))
    history = HistoryStore(store)
    client = ImagenClient(
        config, RateLimiter(config.rate_limit_max_calls, config.rate_limit_window_ms)
    )
    context = ExecutorContext(
        settings=config, client=client, outputs=OutputManager(output_dir), history=history
    )
    queue = JobQueue(
        store, context, max_concurrent=batch.max_concurrent or config.max_concurrent_jobs, config=config
    )
    logger.info("Database: %s, max concurrent jobs: %d", config.database_path, queue.max_concurrent)

    try:
        await queue.start()
        processor = BatchProcessor(
            queue,
            store,
            output_dir,
            poll_interval_ms=config.batch_poll_interval_ms,
            timeout_ms=config.batch_timeout_ms,
        )
        result = await processor.execute_batch(batch)
    finally:
        await queue.stop()
        await client.aclose()
        await engine.dispose()

    if args.format == "json":
        print(processor.format_result_as_json(result))
    else:
        print(processor.format_result_as_text(result))
    return 1 if result.failed > 0 else 0


def main(argv: list[str] | None = None) -> None:
    from imagen_mcp.logging_config import setup_logging

    args = build_parser().parse_args(argv)
    config = default_settings
    setup_logging(config)

    try:
        code = asyncio.run(run_batch(args, config))
    except KeyboardInterrupt:
        print("Interrupted, shutting down...", file=sys.stderr)
        code = 130
    except (ImagenMCPError, OSError) as exc:
        message = exc.message if isinstance(exc, ImagenMCPError) else str(exc)
        print(f"Error: {message}", file=sys.stderr)
        if config.debug:
            logger.exception("Batch failed")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
