from __future__ import annotations

import hmac
from typing import Optional


API_KEY_HEADER = "X-API-Key"


def verify_api_key(provided: Optional[str], expected: Optional[str]) -> bool:
    """Compare a caller-supplied key with the configured one in constant time.

    With no key configured every caller is refused.
    """
    if not expected:
        return False
    if provided is None:
        provided = ""
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
