"""
Request id and timestamp providers.

analyze() takes these as injectable callables so tests can pin them.
"""

import random
import string
import uuid
from datetime import datetime, timezone


FALLBACK_ALPHABET = string.digits + string.ascii_lowercase


def fallback_request_id() -> str:
    """Low-entropy ``req_xxxxxxxx`` token. Not guaranteed unique; demo use only."""
    suffix = "".join(random.choice(FALLBACK_ALPHABET) for _ in range(8))
    return f"req_{suffix}"


def safe_request_id() -> str:
    """Random UUID, or a fallback token when the OS has no randomness source."""
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        return fallback_request_id()


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()
