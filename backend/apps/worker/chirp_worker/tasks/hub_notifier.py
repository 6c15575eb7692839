"""
Hub notification tasks.

Background fan-out of publish pings after a local feed changed.
"""

from typing import Any

from chirp_core import get_logger
from chirp_core.exceptions import FeedNotFound
from chirp_core.schemas import PingOutcome
from chirp_core.services import HubNotifier
from chirp_core.store import FeedStore

logger = get_logger(__name__)


async def notify_hubs_task(ctx: dict[str, Any], feed_id: str) -> dict[str, Any]:
    """
    Ping every hub of a feed.

    Hub failures are recorded in the result, never retried: retry policy
    belongs to whoever enqueues the job.

    Args:
        ctx: Worker context holding ``store`` and ``notifier``.
        feed_id: Feed whose content changed.

    Returns:
        Dictionary with per-hub results.
    """
    store: FeedStore = ctx["store"]
    notifier: HubNotifier = ctx["notifier"]

    try:
        feed = await store.load_feed(feed_id)
    except FeedNotFound:
        logger.warning("Feed disappeared before hub notification", extra={"feed_id": feed_id})
        return {"status": "error", "feed_id": feed_id, "message": "Feed not found", "results": []}

    results = await notifier.notify_hubs(feed)
    failed = sum(1 for result in results if result.outcome is not PingOutcome.SUCCESS)

    return {
        "status": "success" if failed == 0 else "partial",
        "feed_id": feed_id,
        "hubs": len(results),
        "failed": failed,
        "results": [result.model_dump(mode="json") for result in results],
    }
