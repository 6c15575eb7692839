"""
Hub notification schemas.
"""

from enum import Enum

from pydantic import BaseModel


class PingOutcome(str, Enum):
    """Result of pinging a single hub."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


class HubPingResult(BaseModel):
    """Recorded outcome of one hub ping."""

    hub: str
    topic: str
    outcome: PingOutcome
    status_code: int | None = None
    error: str | None = None


class PingStatusResponse(BaseModel):
    """Status of a queued hub notification job."""

    feed_id: str
    job_id: str
    status: str
    results: list[HubPingResult] | None = None
    message: str | None = None
