"""rewardhook -- signed channel-point webhook receiver.

Top-level convenience re-exports::

    from rewardhook import verify_request
    from rewardhook.app import create_app  # server factory
"""

__version__ = "0.1.0"

from rewardhook.verify import verify_request

__all__ = ["__version__", "verify_request"]
