"""Receiver configuration from environment variables."""

from __future__ import annotations

import os
from pathlib import Path


def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Receiver settings, read from environment variables with defaults."""

    def __init__(self) -> None:
        # Candidate signing secrets; either may verify a delivery
        self.primary_secret: str | None = os.getenv("REWARDHOOK_PRIMARY_SECRET")
        self.secondary_secret: str | None = os.getenv("REWARDHOOK_SECONDARY_SECRET")

        self.host: str = os.getenv("REWARDHOOK_HOST", "0.0.0.0")
        self.port: int = int(os.getenv("REWARDHOOK_PORT", "6969"))
        self.tls_certfile: str | None = os.getenv("REWARDHOOK_TLS_CERTFILE") or None
        self.tls_keyfile: str | None = os.getenv("REWARDHOOK_TLS_KEYFILE") or None
        self.log_level: str = os.getenv("REWARDHOOK_LOG_LEVEL", "INFO").upper()
        self.debug: bool = _flag("REWARDHOOK_DEBUG")

        # Scrollo cache
        self.cache_dir: Path = Path(os.getenv("REWARDHOOK_CACHE_DIR", ".scrollocache"))
        self.scrollo_link: Path = Path(os.getenv("REWARDHOOK_SCROLLO_LINK", "scrollo.txt"))

        self.action_timeout: float = float(
            os.getenv("REWARDHOOK_ACTION_TIMEOUT", "30.0")
        )

        # Bulb hardware addresses: index 0 is the bed bulb, index 1 the ceiling
        self.bed_bulb_mac: str = os.getenv(
            "REWARDHOOK_BED_BULB_MAC", "d0:73:d5:66:d5:ec"
        ).lower()
        self.ceiling_bulb_mac: str = os.getenv(
            "REWARDHOOK_CEILING_BULB_MAC", "d0:73:d5:64:76:ac"
        ).lower()

        # Side-effect commands
        self.stream_process: str = os.getenv("REWARDHOOK_STREAM_PROCESS", "obs")
        self.silence_script: str = os.getenv("REWARDHOOK_SILENCE_SCRIPT", "./silence.sh")
        self.audio_device: str = os.getenv("REWARDHOOK_AUDIO_DEVICE", "hw:1,0")
        self.default_sound: str = os.getenv("REWARDHOOK_DEFAULT_SOUND", "woof.mp3")
        self.rare_sound: str = os.getenv("REWARDHOOK_RARE_SOUND", "bark.mp3")

    @property
    def secrets(self) -> list[bytes]:
        """Configured candidate secrets as bytes, skipping unset or empty ones."""
        return [
            s.encode("utf-8")
            for s in (self.primary_secret, self.secondary_secret)
            if s
        ]

    @property
    def tls_enabled(self) -> bool:
        return bool(self.tls_certfile and self.tls_keyfile)
