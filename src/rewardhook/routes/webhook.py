"""POST /webhook -- the only route."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

router = APIRouter()


@router.post("/webhook", response_class=PlainTextResponse)
async def receive_webhook(request: Request) -> PlainTextResponse:
    """Hand the raw delivery to the notification handler.

    Always answers 200; the body is the handshake challenge, empty, or
    the unverified placeholder.
    """
    body = await request.body()
    reply = await request.app.state.handler.handle(body, request.headers)
    return PlainTextResponse(reply)
