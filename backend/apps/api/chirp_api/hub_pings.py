"""Shared helpers for hub notification enqueue/status APIs."""

from arq.connections import ArqRedis
from arq.jobs import Job

from chirp_core import get_logger
from chirp_core.schemas import HubPingResult, PingStatusResponse

logger = get_logger(__name__)


async def enqueue_hub_notification(redis: ArqRedis, feed_id: str) -> str | None:
    """
    Enqueue one hub notification job.

    Enqueue failures are logged and reported as None: fan-out never fails
    the local write that triggered it.
    """
    try:
        job = await redis.enqueue_job("notify_hubs_task", feed_id)
    except Exception:
        logger.exception("Failed to enqueue hub notification", extra={"feed_id": feed_id})
        return None
    return job.job_id if job else None


async def build_ping_status(redis: ArqRedis, feed_id: str, job_id: str) -> PingStatusResponse:
    """Build the status of a hub notification job from its arq state and result."""
    job = Job(job_id, redis)
    status_value = "unknown"
    results: list[HubPingResult] | None = None
    message: str | None = None

    try:
        status_info = await job.status()
        status_value = status_info.value
    except Exception as e:
        message = str(e)

    if status_value == "complete":
        try:
            job_result = await job.result(timeout=0)
            if isinstance(job_result, dict):
                results = [
                    HubPingResult.model_validate(item) for item in job_result.get("results", [])
                ]
                if job_result.get("message"):
                    message = str(job_result["message"])
            elif job_result is not None:
                message = str(job_result)
        except Exception as e:
            message = str(e)

    return PingStatusResponse(
        feed_id=feed_id,
        job_id=job_id,
        status=status_value,
        results=results,
        message=message,
    )
