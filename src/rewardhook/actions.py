"""Side-effect command execution and per-request aggregation.

Launched commands run as independent asyncio tasks.  A request joins all
of them before it completes; a failure never cancels its siblings.

Lifecycle::

    group = ActionGroup()
    group.spawn("end the stream", runner.run(["killall", "obs"]))
    failure = await group.wait()   # first failed ActionOutcome, or None
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Mapping, Sequence

from rewardhook.errors import ActionError, ActionTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one dispatched side effect."""

    name: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, name: str) -> ActionOutcome:
        return cls(name=name)

    @classmethod
    def failure(cls, name: str, error: str) -> ActionOutcome:
        return cls(name=name, error=error)


class CommandRunner:
    """Launches external commands without a shell.

    Parameters
    ----------
    timeout:
        Seconds a command may run before it is reported as failed
        (``None`` waits forever).  A timed-out process is sent SIGKILL
        and reaped before the failure is reported.
    """

    def __init__(self, timeout: float | None = 30.0) -> None:
        self._timeout = timeout

    async def run(
        self,
        command: Sequence[str],
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Run *command* to completion.

        Raises:
            ActionError: if the command cannot be launched or exits non-zero.
            ActionTimeoutError: if it outlives the timeout.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                env=dict(env) if env is not None else None,
            )
        except OSError as exc:
            raise ActionError(f"failed to launch {command[0]}: {exc}") from exc

        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout=self._timeout)
        except asyncio.TimeoutError:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
            raise ActionTimeoutError(
                f"{command[0]} did not finish within {self._timeout}s"
            ) from None

        if returncode != 0:
            raise ActionError(f"{command[0]} exited with status {returncode}")


def inherited_env(**overrides: str) -> dict[str, str]:
    """Return the current process environment with *overrides* appended."""
    env = dict(os.environ)
    env.update(overrides)
    return env


class ActionGroup:
    """Joins the asynchronous actions launched for one request.

    Every spawned action runs to completion regardless of how its
    siblings fare.  :meth:`wait` reports the first failure in completion
    order.
    """

    def __init__(self) -> None:
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]
        self._outcomes: list[ActionOutcome] = []

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def outcomes(self) -> list[ActionOutcome]:
        """Outcomes of finished actions, in completion order."""
        return list(self._outcomes)

    def spawn(self, name: str, action: Awaitable[None]) -> None:
        """Schedule *action* as its own task under *name*."""
        self._tasks.append(asyncio.create_task(self._track(name, action)))

    async def _track(self, name: str, action: Awaitable[None]) -> None:
        try:
            await action
        except Exception as exc:
            logger.warning("Action %r failed: %s", name, exc)
            self._outcomes.append(ActionOutcome.failure(name, str(exc)))
        else:
            logger.debug("Action %r finished", name)
            self._outcomes.append(ActionOutcome.success(name))

    async def wait(self) -> ActionOutcome | None:
        """Wait for every spawned action; return the first failure, if any."""
        if self._tasks:
            await asyncio.gather(*self._tasks)
        for outcome in self._outcomes:
            if not outcome.ok:
                return outcome
        return None
