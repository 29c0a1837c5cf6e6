"""Error kinds surfaced on a pipeline's error stream.

None of these are retried internally; callers decide what to do with them.
Cancellation and end of input are never errors.
"""

from __future__ import annotations

from streamkit.errors import TransformError


class YcatError(Exception):
    """Base class for ycat failures."""


class DecodeError(YcatError, ValueError):
    """JSON text or token stream could not be turned into a Value."""

    def __init__(self, message: str, *, offset: int | None = None):
        if offset is not None:
            message = f"{message} (offset {offset})"
        super().__init__(message)
        self.offset = offset


class EncodeError(YcatError, ValueError):
    """A value cannot be represented in the requested encoding."""


class CodecError(YcatError):
    """Malformed input document; decoding from that source stops.

    `document` is the 0-based index of the failing document. `offset` counts
    UTF-8 bytes from the start of the input; `line` and `column` are 1-based.
    """

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        document: int | None = None,
        offset: int | None = None,
        line: int | None = None,
        column: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.document = document
        self.offset = offset
        self.line = line
        self.column = column

    def __str__(self) -> str:
        text = self.message
        if self.source:
            text = f"{self.source}: {text}"
        where: list[str] = []
        if self.document is not None:
            where.append(f"document={self.document}")
        if self.line is not None:
            where.append(f"line={self.line}")
        if self.column is not None:
            where.append(f"column={self.column}")
        if self.offset is not None:
            where.append(f"offset={self.offset}")
        if where:
            text = f"{text} ({', '.join(where)})"
        return text


class StreamIOError(YcatError, OSError):
    """Reading from or writing to the underlying file failed."""


__all__ = [
    "CodecError",
    "DecodeError",
    "EncodeError",
    "StreamIOError",
    "TransformError",
    "YcatError",
]
