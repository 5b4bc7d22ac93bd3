"""Per-delivery state machine: verify, classify, then answer or dispatch.

Order of operations:
1.  Signature verification (failure -> fixed placeholder body)
2.  Message type header
3.  Envelope decode (failure -> abort, empty body)
4.  Handshake -> echo the challenge
    Notification -> route the reward, join spawned actions
    Anything else -> log and ignore

Every outcome is an HTTP 200; the body is the only thing that varies, so
a prober learns nothing from status codes.
"""

from __future__ import annotations

import logging
from typing import Iterable

from starlette.datastructures import Headers

from rewardhook.actions import ActionGroup
from rewardhook.envelope import MessageType, decode_envelope
from rewardhook.errors import EnvelopeDecodeError, VerificationError
from rewardhook.rewards import RewardRouter
from rewardhook.verify import MESSAGE_TYPE_HEADER, single_header, verify_request

logger = logging.getLogger(__name__)

# Body sent back to deliveries that fail verification
UNVERIFIED_BODY = "you're my good puppy\n"


class NotificationHandler:
    """Handles one delivery at a time; safe to share across requests."""

    def __init__(self, router: RewardRouter, secrets: Iterable[bytes]) -> None:
        self._router = router
        self._secrets = list(secrets)

    async def handle(self, body: bytes, headers: Headers) -> str:
        """Process a delivery and return the response body."""
        if not verify_request(body, headers, self._secrets):
            logger.warning("Failed to verify signature")
            return UNVERIFIED_BODY

        try:
            msg_type = single_header(headers, MESSAGE_TYPE_HEADER)
        except VerificationError as exc:
            logger.warning("Dropping delivery: %s", exc)
            return ""

        try:
            envelope = decode_envelope(body)
        except EnvelopeDecodeError as exc:
            logger.warning("Dropping delivery: %s", exc)
            return ""

        if msg_type == MessageType.WEBHOOK_CALLBACK_VERIFICATION.value:
            logger.info("Got verification callback, challenge %s", envelope.challenge)
            return envelope.challenge

        if msg_type == MessageType.NOTIFICATION.value:
            await self._dispatch(
                envelope.event.reward.title, envelope.event.user_input
            )
            return ""

        logger.info("Got something else: %s", msg_type)
        return ""

    async def _dispatch(self, title: str, user_input: str) -> None:
        group = ActionGroup()
        inline = await self._router.dispatch(title, user_input, group)
        if inline is not None:
            if inline.ok:
                logger.info("Inline action %r finished", inline.name)
            else:
                logger.warning(
                    "Inline failure from %r: %s", inline.name, inline.error
                )

        failure = await group.wait()
        if failure is not None:
            logger.warning(
                "Async failure, first error from %r: %s", failure.name, failure.error
            )
