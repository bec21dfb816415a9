from __future__ import annotations

import re
from typing import Any, List, Mapping, Optional, Tuple

from .config import DEFAULT_ALLOWED_OPTIONS
from .logs import get_logger


logger = get_logger(__name__)

SanitizedOptions = List[Tuple[str, str]]


def sanitize_options(
    options: Optional[Mapping[str, Any]],
    allowed: Optional[Mapping[str, re.Pattern[str]]] = None,
) -> SanitizedOptions:
    """Keep only allow-listed options whose value fully matches the option's pattern.

    Unknown keys are dropped silently. Known keys with a bad value are dropped
    with a warning; they never fail the request. Caller order is preserved.
    """
    if not options:
        return []
    table = DEFAULT_ALLOWED_OPTIONS if allowed is None else allowed

    safe: SanitizedOptions = []
    for key, value in options.items():
        pattern = table.get(key) if isinstance(key, str) else None
        if pattern is None:
            continue
        if isinstance(value, int) and not isinstance(value, bool):
            # JSON numbers such as {"dpi": 300} are checked as their decimal text.
            value = str(value)
        if not isinstance(value, str) or not pattern.fullmatch(value):
            logger.warning("Invalid option value: %s=%r", key, value)
            continue
        safe.append((key, value))
    return safe


def build_option_args(options: SanitizedOptions) -> list[str]:
    """Turn sanitized pairs into renderer argv entries: --name value.

    Each value stays a separate argv element, so nothing is ever parsed by a shell.
    """
    args: list[str] = []
    for name, value in options:
        args.extend((f"--{name}", value))
    return args
