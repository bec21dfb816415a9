from __future__ import annotations

import secrets
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .logs import get_logger


logger = get_logger(__name__)

INPUT_PREFIX = "input-"
OUTPUT_PREFIX = "output-"


@dataclass(frozen=True)
class ScopedTempFiles:
    temp_id: str
    input_path: Path
    output_path: Path


def new_temp_id() -> str:
    # 128 random bits, hex encoded.
    return secrets.token_hex(16)


def ensure_temp_dir(temp_dir: Path) -> Path:
    temp_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    return temp_dir


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        # Left for cleanup_old_files to reclaim.
        logger.debug("Could not remove temp file %s: %s", path, e)


@contextmanager
def scoped_temp_files(temp_dir: Path) -> Iterator[ScopedTempFiles]:
    """Reserve a unique input/output path pair and delete both on exit.

    Nothing is created on disk here; the caller writes the input file. Both
    paths are removed however the block exits, and removal errors never
    propagate.
    """
    temp_id = new_temp_id()
    files = ScopedTempFiles(
        temp_id=temp_id,
        input_path=temp_dir / f"{INPUT_PREFIX}{temp_id}.html",
        output_path=temp_dir / f"{OUTPUT_PREFIX}{temp_id}.pdf",
    )
    try:
        yield files
    finally:
        _unlink_quietly(files.input_path)
        _unlink_quietly(files.output_path)


def cleanup_old_files(temp_dir: Path, max_age_seconds: float) -> int:
    """Delete regular files in temp_dir not modified within max_age_seconds.

    Returns the number of deleted files.
    """
    if not temp_dir.exists():
        return 0

    now = time.time()
    deleted = 0
    for child in temp_dir.iterdir():
        try:
            if not child.is_file():
                continue
            if now - child.stat().st_mtime <= max_age_seconds:
                continue
            child.unlink()
        except OSError:
            # Vanished or not ours to delete; try again next sweep.
            continue
        deleted += 1

    if deleted:
        logger.info("Cleaned up %d old temp files", deleted)
    return deleted
