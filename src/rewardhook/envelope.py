"""Pydantic models for the notification envelope (request body).

Decoding is lenient in the same ways a streaming JSON decoder is: only
the first JSON value in the body is read, and object keys match field
names case-insensitively.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from rewardhook.errors import EnvelopeDecodeError

_DECODER = json.JSONDecoder()


class MessageType(str, Enum):
    """Values of the ``Twitch-Eventsub-Message-Type`` header we act on."""

    WEBHOOK_CALLBACK_VERIFICATION = "webhook_callback_verification"
    NOTIFICATION = "notification"


class _FoldedModel(BaseModel):
    """Base model whose input keys are matched to fields ignoring case."""

    @model_validator(mode="before")
    @classmethod
    def fold_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        names = {name.lower(): name for name in cls.model_fields}
        folded: dict[str, Any] = {}
        # Later duplicates win
        for key, value in data.items():
            name = names.get(key.lower())
            if name is not None:
                folded[name] = value
        return folded


class RewardInfo(_FoldedModel):
    title: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class RedemptionEvent(_FoldedModel):
    user_input: str = ""
    reward: RewardInfo = Field(default_factory=RewardInfo)

    @field_validator("user_input", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class Envelope(_FoldedModel):
    """Decoded request body.

    ``challenge`` is only sent with handshakes; ``event`` only with
    notifications.  Unknown fields are ignored and JSON ``null`` strings
    read as empty.
    """

    challenge: str = ""
    event: RedemptionEvent = Field(default_factory=RedemptionEvent)

    @field_validator("challenge", mode="before")
    @classmethod
    def null_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


def decode_envelope(body: bytes) -> Envelope:
    """Parse a raw request body into an :class:`Envelope`.

    Anything after the first JSON value is ignored, and a top-level
    ``null`` decodes to an empty envelope.

    Raises:
        EnvelopeDecodeError: if the body does not start with JSON of the
            right shape.
    """
    try:
        data, _ = _DECODER.raw_decode(body.decode("utf-8").lstrip())
    except (UnicodeDecodeError, ValueError) as exc:
        raise EnvelopeDecodeError(f"bad body: {exc}") from exc
    if data is None:
        return Envelope()
    try:
        return Envelope.model_validate(data)
    except ValidationError as exc:
        raise EnvelopeDecodeError(f"bad body: {exc}") from exc
