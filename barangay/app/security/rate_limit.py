"""
Rate limiter shared by the app and the audit routes.

Set ENV=TEST or DISABLE_RATE_LIMITS=1 to disable rate limiting, so tests
run cleanly in CI without limit failures.
"""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address


def rate_limits_disabled() -> bool:
    return (
        os.environ.get("ENV") == "TEST" or os.environ.get("DISABLE_RATE_LIMITS") == "1"
    )


def get_limiter() -> Limiter:
    """Create the rate limiter, disabled in test mode."""
    if rate_limits_disabled():
        return Limiter(key_func=get_remote_address, enabled=False)
    return Limiter(key_func=get_remote_address)


limiter = get_limiter()
