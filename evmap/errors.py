"""Exceptions raised by the conversion pipeline."""
from __future__ import annotations

from typing import Optional, Sequence


class ConversionError(RuntimeError):
    """Base class for failures converting one item."""


class LayerReadError(ConversionError):
    """The container has no readable layer."""


class UnknownStageError(KeyError):
    pass


class TileBuildError(ConversionError):
    """tippecanoe could not be run or exited with an error."""

    def __init__(self, message: str, cmd: Optional[Sequence[str]] = None,
                 returncode: Optional[int] = None, stderr=""):
        super().__init__(message)
        self.cmd = list(cmd) if cmd else []
        self.returncode = returncode
        self.stderr = decode_stream(stderr)

    def __str__(self) -> str:
        msg = super().__str__()
        tail = stderr_tail(self.stderr)
        return f"{msg}: {tail}" if tail else msg


def decode_stream(value) -> str:
    """Captured output as text; timeouts hand back raw bytes even in text mode."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def stderr_tail(stderr, lines: int = 5) -> str:
    stderr = decode_stream(stderr)
    if not stderr:
        return ""
    kept = [ln.strip() for ln in stderr.strip().splitlines() if ln.strip()]
    return " | ".join(kept[-lines:])
