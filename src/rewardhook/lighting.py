"""Smart-bulb control: the two bulbs the "lights" reward can recolor.

Bulbs are resolved once at startup by hardware address and held in an
immutable :class:`BulbSet` that the reward router only reads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from lifxlan import LifxLAN
from lifxlan.errors import WorkflowException

from rewardhook.errors import BulbDiscoveryError, LightingError

logger = logging.getLogger(__name__)

MAX_LEVEL: int = 65535


@dataclass(frozen=True)
class HSBK:
    """A bulb color: 16-bit hue, saturation and brightness plus kelvin."""

    hue: int
    saturation: int = MAX_LEVEL
    brightness: int = MAX_LEVEL
    kelvin: int = 3200


class Bulb(Protocol):
    """Anything that can be recolored like a LIFX bulb."""

    @property
    def mac(self) -> str: ...

    def set_color(self, color: HSBK, transition_ms: int) -> None: ...


class LifxBulb:
    """:class:`Bulb` backed by a ``lifxlan`` light."""

    def __init__(self, light: Any) -> None:
        self._light = light
        self._mac = str(light.get_mac_addr()).lower()

    @property
    def mac(self) -> str:
        return self._mac

    def set_color(self, color: HSBK, transition_ms: int) -> None:
        """Apply *color* over *transition_ms*, waiting for the bulb's ack.

        Raises:
            LightingError: if the bulb does not acknowledge the change.
        """
        try:
            self._light.set_color(
                [color.hue, color.saturation, color.brightness, color.kelvin],
                duration=transition_ms,
                rapid=False,
            )
        except (WorkflowException, OSError) as exc:
            raise LightingError(f"bulb {self._mac} did not respond: {exc}") from exc

    def __repr__(self) -> str:
        return f"LifxBulb({self._mac})"


@dataclass(frozen=True)
class BulbSet:
    """The bulbs addressed by selector index: 0 is bed, 1 is ceiling."""

    bed: Bulb
    ceiling: Bulb

    def select(self, index: int) -> Bulb:
        return (self.bed, self.ceiling)[index]


def discover_bulbs(
    bed_mac: str,
    ceiling_mac: str,
    lan: Any | None = None,
) -> BulbSet:
    """Scan the LAN and return the configured bed and ceiling bulbs.

    Raises:
        BulbDiscoveryError: if either bulb is missing from the scan.
    """
    if lan is None:
        lan = LifxLAN()
    logger.info("Finding bulbs")
    try:
        lights = lan.get_lights()
    except WorkflowException as exc:
        raise BulbDiscoveryError(f"failed to find bulbs: {exc}") from exc

    found: dict[str, LifxBulb] = {}
    for light in lights:
        bulb = LifxBulb(light)
        if bulb.mac == bed_mac.lower():
            logger.info("Found bed bulb %s", bulb.mac)
            found["bed"] = bulb
        elif bulb.mac == ceiling_mac.lower():
            logger.info("Found ceiling bulb %s", bulb.mac)
            found["ceiling"] = bulb

    missing = [name for name in ("bed", "ceiling") if name not in found]
    if missing:
        raise BulbDiscoveryError(f"missing bulb(s): {', '.join(missing)}")
    return BulbSet(bed=found["bed"], ceiling=found["ceiling"])
