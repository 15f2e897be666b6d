"""Background sweeper for stale cancellation flags."""

import asyncio
import logging

logger = logging.getLogger(__name__)


async def run_cancellation_sweeper(queue, interval_seconds: float) -> None:
    """Periodically purge cancel flags of jobs that are gone or long finished."""
    logger.info("Cancellation sweeper started (interval=%ss)", interval_seconds)

    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await queue.purge_cancellations()
            if removed:
                logger.info("Purged %d stale cancellation flag(s)", removed)

        except asyncio.CancelledError:
            logger.info("Cancellation sweeper stopped")
            break
        except Exception as exc:
            logger.exception("Cancellation sweeper error: %s", exc)
