from __future__ import annotations

import logging
import sys
from pathlib import Path


_FILE_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
_STREAM_FORMAT = "[PDF-Service] %(levelname)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Every module logger lives under this name so one setup call covers them all.
ROOT_LOGGER_NAME = "htmlpdf_backend"


def get_logger(name: str) -> logging.Logger:
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(log_file: Path | None, level: str = "INFO") -> logging.Logger:
    """Send service logs to an append-only file and mirror them to stderr.

    Safe to call more than once: previously installed handlers are replaced.
    If the log file cannot be opened the service keeps running with stderr only.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(logging.Formatter(_STREAM_FORMAT))
    root.addHandler(stream)

    if log_file is not None:
        try:
            log_file.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            root.warning("Cannot open log file %s (%s); logging to stderr only", log_file, e)
        else:
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
            root.addHandler(file_handler)

    return root
