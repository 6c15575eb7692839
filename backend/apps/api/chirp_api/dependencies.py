"""
FastAPI dependencies.

Provides dependency injection for configuration, storage, locks and services.
"""

import hmac
from collections.abc import AsyncGenerator
from typing import Annotated

import httpx
from arq.connections import ArqRedis
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from chirp_core.config import FederationConfig, Settings
from chirp_core.locks import KeyedLock
from chirp_core.services import FeedService, PushReceiver, SubscriptionClient
from chirp_core.store import FeedStore
from chirp_database import SqlFeedStore
from chirp_database.session import get_session_factory

# Security scheme for the management API bearer token
security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get the settings the application was built with."""
    return request.app.state.settings


def get_federation_config(settings: Annotated[Settings, Depends(get_settings)]) -> FederationConfig:
    """
    Get federation configuration.

    Returns:
        Federation configuration instance.
    """
    return settings.federation()


def get_locks(request: Request) -> KeyedLock:
    """Get the application-wide lock registry."""
    return request.app.state.locks


def get_store() -> FeedStore:
    """Get the feed store."""
    return SqlFeedStore(get_session_factory())


async def get_hub_client() -> AsyncGenerator[httpx.AsyncClient | None, None]:
    """
    Get the HTTP client for hub requests.

    Yields None so services open a short-lived client per call.
    """
    yield None


async def get_redis_pool(request: Request) -> ArqRedis:
    """
    Get the Redis connection pool for arq.

    Raises:
        HTTPException: If the pool is not initialized.
    """
    redis_pool = getattr(request.app.state, "redis_pool", None)
    if redis_pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task queue not available",
        )
    return redis_pool


async def require_api_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """
    Check the management API bearer token.

    Raises:
        HTTPException: If the token is missing or wrong, or no token is configured.
    """
    if (
        credentials is None
        or not settings.api_token
        or not hmac.compare_digest(credentials.credentials.encode(), settings.api_token.encode())
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


# Service dependencies
def get_push_receiver(
    config: Annotated[FederationConfig, Depends(get_federation_config)],
    store: Annotated[FeedStore, Depends(get_store)],
    locks: Annotated[KeyedLock, Depends(get_locks)],
) -> PushReceiver:
    """Get push receiver instance."""
    return PushReceiver(config, store, locks)


def get_subscription_client(
    config: Annotated[FederationConfig, Depends(get_federation_config)],
    store: Annotated[FeedStore, Depends(get_store)],
    locks: Annotated[KeyedLock, Depends(get_locks)],
    client: Annotated[httpx.AsyncClient | None, Depends(get_hub_client)],
) -> SubscriptionClient:
    """Get subscription client instance."""
    return SubscriptionClient(config, store, locks, client)


def get_feed_service(
    config: Annotated[FederationConfig, Depends(get_federation_config)],
    store: Annotated[FeedStore, Depends(get_store)],
    locks: Annotated[KeyedLock, Depends(get_locks)],
    subscriptions: Annotated[SubscriptionClient, Depends(get_subscription_client)],
) -> FeedService:
    """Get feed service instance."""
    return FeedService(config, store, locks, subscriptions)
