"""Delivery signature verification.

Every delivery carries ``Twitch-Eventsub-Message-Signature: <algo>=<hex>``,
an HMAC over ``message id + timestamp + raw body`` keyed with one of the
subscription secrets.  Several secrets may be live at once (one per
subscription), so verification tries each candidate in turn.

Usage::

    from rewardhook.verify import verify_request

    body = await request.body()  # raw bytes
    if verify_request(body, request.headers, settings.secrets):
        # delivery is authentic
        ...

Malformed input never raises out of :func:`verify_request`; it just
returns ``False``.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import logging
from typing import Callable, Iterable

from starlette.datastructures import Headers

from rewardhook.errors import VerificationError

logger = logging.getLogger(__name__)

MESSAGE_ID_HEADER = "Twitch-Eventsub-Message-Id"
MESSAGE_TIMESTAMP_HEADER = "Twitch-Eventsub-Message-Timestamp"
MESSAGE_SIGNATURE_HEADER = "Twitch-Eventsub-Message-Signature"
MESSAGE_TYPE_HEADER = "Twitch-Eventsub-Message-Type"

# Supported signature algorithms; sha384 is the truncated SHA-512 variant
HASH_ALGORITHMS: dict[str, Callable] = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
}


def single_header(headers: Headers, name: str) -> str:
    """Return the only value of header *name*.

    Raises:
        VerificationError: if the header is absent or repeated.
    """
    values = headers.getlist(name)
    if not values:
        raise VerificationError(f"missing header {name}")
    if len(values) != 1:
        raise VerificationError(f"too many {name} headers")
    return values[0]


def parse_signature(header_value: str) -> tuple[str, bytes]:
    """Split ``<algo>=<hex>`` into the algorithm name and raw digest bytes.

    Raises:
        VerificationError: on a missing ``=``, an unknown algorithm or
            undecodable hex.
    """
    method, sep, hex_digest = header_value.partition("=")
    if not sep:
        raise VerificationError("malformed signature")
    if method not in HASH_ALGORITHMS:
        raise VerificationError(f"unknown signature algorithm {method!r}")
    try:
        digest = binascii.unhexlify(hex_digest)
    except (binascii.Error, ValueError) as exc:
        raise VerificationError("malformed signature: could not decode hex") from exc
    return method, digest


def compute_signature(
    secret: bytes,
    message_id: str,
    timestamp: str,
    body: bytes,
    algorithm: str = "sha256",
) -> str:
    """Compute the signature header value for a delivery.

    Returns the signature in ``<algo>=<hex>`` format, as sent in
    ``Twitch-Eventsub-Message-Signature``.

    *message_id* and *timestamp* are hashed as latin-1, which maps each
    character back to the header byte it was decoded from.
    """
    if algorithm not in HASH_ALGORITHMS:
        raise ValueError(f"unsupported algorithm {algorithm!r}")
    mac = hmac.new(secret, digestmod=HASH_ALGORITHMS[algorithm])
    mac.update(message_id.encode("latin-1"))
    mac.update(timestamp.encode("latin-1"))
    mac.update(body)
    return f"{algorithm}={mac.hexdigest()}"


def verify_request(
    body: bytes,
    headers: Headers,
    secrets: Iterable[bytes],
) -> bool:
    """Verify a delivery against a set of candidate secrets.

    Args:
        body: The raw request body bytes.
        headers: The request headers (repeated values preserved).
        secrets: Candidate shared secrets; any one of them may match.

    Returns:
        ``True`` if the signature matches under some secret, ``False``
        otherwise, including for missing, repeated or malformed headers.
        Digests are compared with ``hmac.compare_digest``.
    """
    try:
        method, signature = parse_signature(
            single_header(headers, MESSAGE_SIGNATURE_HEADER)
        )
        timestamp = single_header(headers, MESSAGE_TIMESTAMP_HEADER)
        message_id = single_header(headers, MESSAGE_ID_HEADER)
    except VerificationError as exc:
        logger.warning("Rejected delivery: %s", exc)
        return False

    # Starlette decodes header values as latin-1; re-encoding recovers the raw bytes
    hasher = HASH_ALGORITHMS[method]
    for secret in secrets:
        mac = hmac.new(secret, digestmod=hasher)
        mac.update(message_id.encode("latin-1"))
        mac.update(timestamp.encode("latin-1"))
        mac.update(body)
        if hmac.compare_digest(mac.digest(), signature):
            return True

    logger.warning("Rejected delivery %s: no secret matched", message_id)
    return False
