from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


# Options the renderer accepts from callers, each with the pattern its value
# must fully match. Anything else is dropped before the command is built.
DEFAULT_ALLOWED_OPTIONS: Mapping[str, re.Pattern[str]] = {
    "margin-top": re.compile(r"\d+mm"),
    "margin-bottom": re.compile(r"\d+mm"),
    "margin-left": re.compile(r"\d+mm"),
    "margin-right": re.compile(r"\d+mm"),
    "page-size": re.compile(r"A4|A3|Letter"),
    "dpi": re.compile(r"\d{2,3}"),
    "orientation": re.compile(r"Portrait|Landscape"),
}

DEFAULT_MAX_HTML_BYTES = 10 * 1024 * 1024  # 10MB

# Shorter keys still work but are reported at startup.
MIN_API_KEY_LENGTH = 32


@dataclass(frozen=True)
class ServiceConfig:
    renderer_binary: Path = Path("/usr/local/bin/wkhtmltopdf")
    temp_dir: Path = Path("/tmp/pdf-service")
    log_file: Path = Path("/opt/pdf-service/logs/service.log")
    api_key: Optional[str] = None
    max_html_bytes: int = DEFAULT_MAX_HTML_BYTES
    # 0 disables the timeout guard.
    render_timeout_seconds: float = 30.0
    max_concurrent_renders: int = 4
    temp_max_age_seconds: float = 3600.0
    cleanup_interval_seconds: int = 600
    log_level: str = "INFO"
    allowed_options: Mapping[str, re.Pattern[str]] = field(
        default_factory=lambda: dict(DEFAULT_ALLOWED_OPTIONS)
    )

    def __post_init__(self) -> None:
        if self.max_html_bytes <= 0:
            raise ValueError("max_html_bytes must be positive")
        if self.render_timeout_seconds < 0:
            raise ValueError("render_timeout_seconds must not be negative")
        if self.max_concurrent_renders < 1:
            raise ValueError("max_concurrent_renders must be at least 1")

    @property
    def max_html_megabytes(self) -> int:
        return max(1, self.max_html_bytes // (1024 * 1024))


def _env(environ: Mapping[str, str], name: str) -> Optional[str]:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def load_config(environ: Optional[Mapping[str, str]] = None) -> ServiceConfig:
    """Build the service configuration from HTMLPDF_* environment variables.

    Unset or blank variables fall back to the dataclass defaults.
    """
    env = os.environ if environ is None else environ
    defaults = ServiceConfig()

    renderer = _env(env, "HTMLPDF_RENDERER_BINARY")
    temp_dir = _env(env, "HTMLPDF_TEMP_DIR")
    log_file = _env(env, "HTMLPDF_LOG_FILE")
    max_html = _env(env, "HTMLPDF_MAX_HTML_BYTES")
    timeout = _env(env, "HTMLPDF_RENDER_TIMEOUT_SECONDS")
    max_renders = _env(env, "HTMLPDF_MAX_CONCURRENT_RENDERS")
    max_age = _env(env, "HTMLPDF_TEMP_MAX_AGE_SECONDS")
    interval = _env(env, "HTMLPDF_CLEANUP_INTERVAL_SECONDS")
    log_level = _env(env, "HTMLPDF_LOG_LEVEL")

    return ServiceConfig(
        renderer_binary=Path(renderer) if renderer else defaults.renderer_binary,
        temp_dir=Path(temp_dir) if temp_dir else defaults.temp_dir,
        log_file=Path(log_file) if log_file else defaults.log_file,
        # Compared verbatim, so surrounding whitespace is kept.
        api_key=env.get("HTMLPDF_API_KEY") or None,
        max_html_bytes=int(max_html) if max_html else defaults.max_html_bytes,
        render_timeout_seconds=float(timeout) if timeout else defaults.render_timeout_seconds,
        max_concurrent_renders=int(max_renders) if max_renders else defaults.max_concurrent_renders,
        temp_max_age_seconds=float(max_age) if max_age else defaults.temp_max_age_seconds,
        cleanup_interval_seconds=int(interval) if interval else defaults.cleanup_interval_seconds,
        log_level=log_level.upper() if log_level else defaults.log_level,
    )
