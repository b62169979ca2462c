"""
Hub callback endpoint: GET for the verification handshake, POST for deliveries.

Both respond with plain text. The path is mounted at ``WEBHOOK_PATH``.
The handshake touches no backing service.
"""

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from hubrelay.api.dependencies import get_receiver
from hubrelay.webhook.receiver import WebhookReceiver, handle_challenge

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("", response_class=PlainTextResponse)
async def verify_subscription(request: Request) -> PlainTextResponse:
    """Echo the hub's challenge token."""
    response = handle_challenge(request.query_params)
    return PlainTextResponse(response.body, status_code=response.status_code)


@router.post("", response_class=PlainTextResponse)
async def receive_delivery(
    request: Request,
    receiver: WebhookReceiver = Depends(get_receiver),
) -> PlainTextResponse:
    """Accept a feed delivery and enqueue its entries."""
    body = await request.body()
    response = await receiver.handle_delivery(body, request.headers.get("content-type"))
    if response.status_code == 200:
        logger.info(
            "Delivery handled",
            enqueued=len(response.enqueued),
            duplicates=len(response.duplicates),
            skipped=response.skipped,
            errors=response.errors,
        )
    return PlainTextResponse(response.body, status_code=response.status_code)
