"""Shared fixtures for rewardhook tests."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from starlette.datastructures import Headers

from rewardhook.actions import ActionGroup
from rewardhook.cache import ScrolloCache
from rewardhook.config import Settings
from rewardhook.errors import ActionError, LightingError
from rewardhook.lighting import HSBK, BulbSet
from rewardhook.verify import (
    MESSAGE_ID_HEADER,
    MESSAGE_SIGNATURE_HEADER,
    MESSAGE_TIMESTAMP_HEADER,
    MESSAGE_TYPE_HEADER,
    compute_signature,
)

PRIMARY_SECRET = "primary-secret-0123456789"
SECONDARY_SECRET = "secondary-secret-9876543210"


@dataclass
class FakeBulb:
    """In-memory bulb that records color changes."""

    mac: str
    fail: bool = False
    calls: list[tuple[HSBK, int]] = field(default_factory=list)

    def set_color(self, color: HSBK, transition_ms: int) -> None:
        if self.fail:
            raise LightingError(f"bulb {self.mac} did not respond")
        self.calls.append((color, transition_ms))


class FakeRunner:
    """Records commands instead of launching them.

    Commands whose first element is in ``failing`` raise ActionError.
    """

    def __init__(self, failing: tuple[str, ...] = ()) -> None:
        self.failing = failing
        self.calls: list[tuple[list[str], dict[str, str] | None]] = []

    async def run(self, command, env=None) -> None:  # noqa: ANN001
        self.calls.append((list(command), dict(env) if env is not None else None))
        if command[0] in self.failing:
            raise ActionError(f"{command[0]} exited with status 1")


@pytest.fixture()
def settings(tmp_path, monkeypatch) -> Settings:
    """Settings with both secrets and a cache under tmp_path."""
    monkeypatch.setenv("REWARDHOOK_PRIMARY_SECRET", PRIMARY_SECRET)
    monkeypatch.setenv("REWARDHOOK_SECONDARY_SECRET", SECONDARY_SECRET)
    monkeypatch.setenv("REWARDHOOK_CACHE_DIR", str(tmp_path / "scrollocache"))
    monkeypatch.setenv("REWARDHOOK_SCROLLO_LINK", str(tmp_path / "scrollo.txt"))
    monkeypatch.setenv("REWARDHOOK_SILENCE_SCRIPT", "./silence.sh")
    return Settings()


@pytest.fixture()
def bulbs() -> BulbSet:
    return BulbSet(
        bed=FakeBulb(mac="d0:73:d5:66:d5:ec"),
        ceiling=FakeBulb(mac="d0:73:d5:64:76:ac"),
    )


@pytest.fixture()
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def cache(settings: Settings) -> ScrolloCache:
    return ScrolloCache(settings.cache_dir, settings.scrollo_link)


@pytest.fixture()
def group() -> ActionGroup:
    return ActionGroup()


def _signed_headers(
    body: bytes,
    secret: str = PRIMARY_SECRET,
    *,
    message_type: str = "notification",
    message_id: str = "f1c2a387-161a-49f9-a165-0f21d7a4e1c4",
    timestamp: str = "2024-05-01T12:00:00.123Z",
    algorithm: str = "sha256",
) -> dict[str, str]:
    """Build the delivery headers for *body* signed with *secret*."""
    return {
        MESSAGE_ID_HEADER: message_id,
        MESSAGE_TIMESTAMP_HEADER: timestamp,
        MESSAGE_SIGNATURE_HEADER: compute_signature(
            secret.encode("utf-8"), message_id, timestamp, body, algorithm
        ),
        MESSAGE_TYPE_HEADER: message_type,
    }


@pytest.fixture()
def signed_headers():
    """Fixture that returns the signed-headers helper (plain dict)."""
    return _signed_headers


@pytest.fixture()
def request_headers():
    """Like ``signed_headers`` but returns starlette ``Headers``."""

    def _make(body: bytes, *args, **kwargs) -> Headers:  # noqa: ANN002, ANN003
        return Headers(headers=_signed_headers(body, *args, **kwargs))

    return _make


@pytest.fixture()
def failing_runner() -> FakeRunner:
    """Runner whose ``killall`` and ``play`` commands fail."""
    return FakeRunner(failing=("killall", "play"))
