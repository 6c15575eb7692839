"""
Hub callback router.

The public ``/feeds/{id}`` endpoint: serves the feed document, answers hub
verification challenges, and accepts signed content pushes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from chirp_atom import ATOM_CONTENT_TYPE
from chirp_core.exceptions import FeedNotFound, MalformedDocument, UnauthenticatedPush
from chirp_core.schemas import ChallengeRequest, HubMode, MergeResult, PushRequest
from chirp_core.services import PushReceiver

from ..dependencies import get_push_receiver

router = APIRouter()


def _feed_id(raw: str) -> str:
    # /feeds/{id}.atom is an alias of /feeds/{id}
    return raw.removesuffix(".atom")


@router.get("/feeds/{feed_id}")
async def get_feed(
    feed_id: str,
    receiver: Annotated[PushReceiver, Depends(get_push_receiver)],
    challenge: Annotated[str | None, Query(alias="hub.challenge")] = None,
    topic: Annotated[str, Query(alias="hub.topic")] = "",
    verify_token: Annotated[str, Query(alias="hub.verify_token")] = "",
    mode: Annotated[str, Query(alias="hub.mode")] = HubMode.SUBSCRIBE.value,
    lease_seconds: Annotated[str | None, Query(alias="hub.lease_seconds")] = None,
) -> Response:
    """
    Serve a feed document or answer a hub verification challenge.

    Args:
        feed_id: Feed identifier, optionally suffixed with ``.atom``.
        receiver: Push receiver.
        challenge: hub.challenge; its presence makes this a verification request.
        topic: hub.topic claimed by the hub.
        verify_token: hub.verify_token echoed by the hub.
        mode: hub.mode being verified.
        lease_seconds: hub.lease_seconds granted by the hub.

    Returns:
        The echoed challenge, or the Atom document.

    Raises:
        HTTPException: If the feed is unknown.
    """
    feed_id = _feed_id(feed_id)

    if challenge is not None:
        try:
            request = ChallengeRequest(
                challenge=challenge,
                topic=topic,
                verify_token=verify_token,
                mode=mode,
                lease_seconds=lease_seconds,
            )
        except ValidationError:
            # Malformed challenges get the same bare 404 as failed ones.
            return PlainTextResponse("", status_code=status.HTTP_404_NOT_FOUND)

        result = await receiver.handle_challenge(feed_id, request)
        return PlainTextResponse(result.body, status_code=result.status_code)

    try:
        document = await receiver.render_feed(feed_id)
    except FeedNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return Response(content=document, media_type=ATOM_CONTENT_TYPE)


@router.post("/feeds/{feed_id}")
async def receive_push(
    feed_id: str,
    request: Request,
    receiver: Annotated[PushReceiver, Depends(get_push_receiver)],
    signature: Annotated[str | None, Header(alias="X-Hub-Signature")] = None,
) -> MergeResult:
    """
    Accept a signed content push from a hub.

    Args:
        feed_id: Feed identifier, optionally suffixed with ``.atom``.
        request: Incoming request; its raw body is the pushed document.
        receiver: Push receiver.
        signature: X-Hub-Signature header.

    Returns:
        Counts of added and skipped entries.

    Raises:
        HTTPException: 404 for an unknown feed, 401 for a bad signature,
            400 for a malformed document.
    """
    body = await request.body()

    try:
        return await receiver.handle_push(
            _feed_id(feed_id), PushRequest(body=body, signature=signature)
        )
    except FeedNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except UnauthenticatedPush as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except MalformedDocument as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
