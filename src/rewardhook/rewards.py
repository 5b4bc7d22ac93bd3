"""Reward routing: from a redeemed reward title to a concrete action.

The set of rewards is closed.  Titles are matched exactly and
case-sensitively; anything unrecognised maps to :attr:`Reward.UNKNOWN`
and does nothing.

  - ``lights``            recolor one of two bulbs (inline, not joined)
  - ``end the stream``    kill the streaming software (joined)
  - ``silence me``        run the silence script (joined)
  - ``SimpBucks Premium`` play a sound, rarely the alternate one (joined)
  - ``scrollo``           cache the text and relink the display file (inline)
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from rewardhook.actions import ActionGroup, ActionOutcome, CommandRunner, inherited_env
from rewardhook.cache import ScrolloCache, checksum
from rewardhook.config import Settings
from rewardhook.errors import CacheError, LightingError
from rewardhook.lighting import HSBK, BulbSet

logger = logging.getLogger(__name__)

# Hue is taken modulo this; the quotient picks the bulb
HUE_RANGE: int = 65535

# Bulb fade time for the "lights" reward, in milliseconds
LIGHT_TRANSITION_MS: int = 1

# "SimpBucks Premium": one roll in SOUND_ROLLS plays the rare sound
SOUND_ROLLS: int = 10
RARE_SOUND_ROLL: int = 5

_UINT64_MAX = 2**64 - 1
_DECIMAL = re.compile(r"[0-9]+")


class Reward(str, Enum):
    """Known reward titles, plus a catch-all for everything else."""

    LIGHTS = "lights"
    END_THE_STREAM = "end the stream"
    SILENCE_ME = "silence me"
    SIMPBUCKS_PREMIUM = "SimpBucks Premium"
    SCROLLO = "scrollo"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> Reward:
        return cls.UNKNOWN


def parse_selector(user_input: str) -> int:
    """Read *user_input* as an unsigned 64-bit decimal number.

    Anything else (signs, spaces, overflow, free text) falls back to the
    CRC-32 of the text, so every input yields some deterministic number.
    """
    if _DECIMAL.fullmatch(user_input):
        number = int(user_input)
        if number <= _UINT64_MAX:
            return number
    return checksum(user_input)


@dataclass(frozen=True)
class LightChoice:
    bulb_index: int
    color: HSBK


def choose_light(user_input: str) -> LightChoice:
    """Map *user_input* to a bulb index (0 or 1) and a full-saturation hue."""
    number = parse_selector(user_input)
    return LightChoice(
        bulb_index=(number // HUE_RANGE) % 2,
        color=HSBK(hue=number % HUE_RANGE),
    )


def pick_sound(rng: random.Random, default: str, rare: str) -> str:
    return rare if rng.randrange(SOUND_ROLLS) == RARE_SOUND_ROLL else default


_Handler = Callable[[str, ActionGroup], Awaitable[Optional[ActionOutcome]]]


class RewardRouter:
    """Turns a redeemed reward into at most one action.

    Commands are spawned into the caller's :class:`ActionGroup`; the
    bulb and cache actions run inline and their outcome is returned.

    Parameters
    ----------
    settings:
        Command names, sound files and audio device.
    bulbs:
        The bulbs resolved at startup.
    runner:
        Launches the side-effect commands.
    cache:
        The scrollo cache.
    rng:
        Random source for the sound roll (defaults to a fresh ``Random``).
    """

    def __init__(
        self,
        settings: Settings,
        bulbs: BulbSet,
        runner: CommandRunner,
        cache: ScrolloCache,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._bulbs = bulbs
        self._runner = runner
        self._cache = cache
        self._rng = rng if rng is not None else random.Random()
        self._handlers: dict[Reward, _Handler] = {
            Reward.LIGHTS: self._lights,
            Reward.END_THE_STREAM: self._end_stream,
            Reward.SILENCE_ME: self._silence,
            Reward.SIMPBUCKS_PREMIUM: self._play_sound,
            Reward.SCROLLO: self._scrollo,
            Reward.UNKNOWN: self._ignore,
        }

    def handles(self, reward: Reward) -> bool:
        return reward in self._handlers

    async def dispatch(
        self,
        title: str,
        user_input: str,
        group: ActionGroup,
    ) -> ActionOutcome | None:
        """Route a redemption.

        Returns the outcome of an inline action, or ``None`` when the
        reward only spawned commands (or was not recognised).
        """
        reward = Reward(title)
        return await self._handlers[reward](user_input, group)

    # -- inline actions ------------------------------------------------------

    async def _lights(self, user_input: str, group: ActionGroup) -> ActionOutcome:
        choice = choose_light(user_input)
        bulb = self._bulbs.select(choice.bulb_index)
        logger.info("Setting bulb %d to %d", choice.bulb_index, choice.color.hue)
        try:
            await asyncio.to_thread(bulb.set_color, choice.color, LIGHT_TRANSITION_MS)
        except LightingError as exc:
            logger.warning("Failed to set light color state: %s", exc)
            return ActionOutcome.failure(Reward.LIGHTS.value, str(exc))
        return ActionOutcome.success(Reward.LIGHTS.value)

    async def _scrollo(self, user_input: str, group: ActionGroup) -> ActionOutcome:
        try:
            await asyncio.to_thread(self._cache.ensure_and_link, user_input)
        except CacheError as exc:
            logger.warning("Scrollo cache failed: %s", exc)
            return ActionOutcome.failure(Reward.SCROLLO.value, str(exc))
        return ActionOutcome.success(Reward.SCROLLO.value)

    # -- spawned commands ----------------------------------------------------

    async def _end_stream(self, user_input: str, group: ActionGroup) -> None:
        logger.info("Killing stream")
        group.spawn(
            Reward.END_THE_STREAM.value,
            self._runner.run(["killall", self._settings.stream_process]),
        )

    async def _silence(self, user_input: str, group: ActionGroup) -> None:
        logger.info("Muting")
        group.spawn(
            Reward.SILENCE_ME.value,
            self._runner.run([self._settings.silence_script]),
        )

    async def _play_sound(self, user_input: str, group: ActionGroup) -> None:
        sound = pick_sound(
            self._rng, self._settings.default_sound, self._settings.rare_sound
        )
        logger.info("Playing %s", sound)
        group.spawn(
            Reward.SIMPBUCKS_PREMIUM.value,
            self._runner.run(
                ["play", sound],
                env=inherited_env(AUDIODEV=self._settings.audio_device),
            ),
        )

    async def _ignore(self, user_input: str, group: ActionGroup) -> None:
        logger.debug("Ignoring unrecognised reward")
        return None
