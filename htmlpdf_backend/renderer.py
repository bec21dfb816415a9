from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from typing import Any, Mapping, Optional

from .config import ServiceConfig
from .errors import MissingOutputError, ReadError, RenderError, RenderTimeoutError, WriteError
from .logs import get_logger
from .options import SanitizedOptions, build_option_args, sanitize_options
from .workspace import ensure_temp_dir, scoped_temp_files


logger = get_logger(__name__)


def _decode(output: Optional[bytes]) -> str:
    return (output or b"").decode("utf-8", errors="replace")


class PdfRenderer:
    """Runs the external renderer once per call on a pair of scoped temp files.

    At most config.max_concurrent_renders child processes run at the same
    time; further callers block until a slot is released.
    """

    def __init__(self, config: ServiceConfig) -> None:
        self.config = config
        self._slots = threading.BoundedSemaphore(config.max_concurrent_renders)

    @property
    def binary_available(self) -> bool:
        return self.config.renderer_binary.exists()

    def build_command(self, options: SanitizedOptions, input_path: Path, output_path: Path) -> list[str]:
        return [
            str(self.config.renderer_binary),
            *build_option_args(options),
            str(input_path),
            str(output_path),
        ]

    def render(self, html: str, options: Optional[Mapping[str, Any]] = None) -> bytes:
        """Render HTML to PDF bytes.

        Raises a ConversionError subclass on any failure. The temp files are
        gone when this returns or raises.
        """
        safe_options = sanitize_options(options, self.config.allowed_options)
        with self._slots:
            return self._render(html, safe_options)

    def _render(self, html: str, options: SanitizedOptions) -> bytes:
        try:
            temp_dir = ensure_temp_dir(self.config.temp_dir)
        except OSError as e:
            raise WriteError(f"Failed to create temp dir: {e}") from e

        with scoped_temp_files(temp_dir) as files:
            try:
                files.input_path.write_text(html, encoding="utf-8")
            except (OSError, UnicodeEncodeError) as e:
                raise WriteError(f"Failed to write HTML file: {e}") from e

            command = self.build_command(options, files.input_path, files.output_path)
            self._run(command)

            if not files.output_path.exists():
                raise MissingOutputError("PDF file not created")
            try:
                pdf = files.output_path.read_bytes()
            except OSError as e:
                raise ReadError(f"Failed to read PDF file: {e}") from e

            logger.info("PDF generated successfully: %s", files.temp_id)
            return pdf

    def _run(self, command: list[str]) -> None:
        timeout = self.config.render_timeout_seconds or None
        try:
            proc = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise RenderTimeoutError(
                f"Renderer timed out after {timeout:g}s", output=_decode(e.output)
            ) from e
        except OSError as e:
            raise RenderError(f"Failed to start renderer: {e}") from e

        if proc.returncode != 0:
            raise RenderError(
                f"Renderer failed with code {proc.returncode}",
                exit_code=proc.returncode,
                output=_decode(proc.stdout),
            )
