"""Failures raised while converting a document.

The HTTP layer logs these in full and answers the caller with a generic 500.
"""
from __future__ import annotations

from typing import Optional


class ConversionError(Exception):
    """Base class for everything that can go wrong inside a conversion."""


class WriteError(ConversionError):
    pass


class ReadError(ConversionError):
    pass


class MissingOutputError(ConversionError):
    """The renderer exited 0 but never wrote the output file."""


class RenderError(ConversionError):
    def __init__(self, message: str, exit_code: Optional[int] = None, output: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output

    def __str__(self) -> str:
        text = super().__str__()
        if self.output:
            text = f"{text}: {self.output.strip()}"
        return text


class RenderTimeoutError(RenderError):
    pass
