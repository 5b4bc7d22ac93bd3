"""rewardhook exception hierarchy.

All project-specific exceptions inherit from :class:`RewardHookError`.
"""

from __future__ import annotations


class RewardHookError(Exception):
    """Base exception for all rewardhook errors."""


class VerificationError(RewardHookError):
    """Raised when a request's signature headers cannot be checked."""


class EnvelopeDecodeError(RewardHookError):
    """Raised when a request body is not a valid notification envelope."""


class ActionError(RewardHookError):
    """Raised when a launched side-effect command fails."""


class ActionTimeoutError(ActionError):
    """Raised when a launched command does not finish in time."""


class LightingError(RewardHookError):
    """Raised when a bulb rejects or drops a color change."""


class BulbDiscoveryError(RewardHookError):
    """Raised at startup when a configured bulb is not found on the LAN."""


class CacheError(RewardHookError):
    """Base exception for scrollo cache failures."""


class CacheCreateError(CacheError):
    """Raised when a cache entry cannot be created."""


class CacheWriteError(CacheError):
    """Raised when a cache entry's content cannot be written."""


class CacheLinkError(CacheError):
    """Raised when the display link cannot be pointed at a cache entry."""
