"""Utility stages working on documents."""

from __future__ import annotations

from streamkit import Stage, Stream, WriteStream, producer, transform
from ycat.values import Value, as_raw, raw_value_array


def null_stream(*, buffer: int | None = None) -> Stage:
    """Producer emitting a single null document."""

    def _run(stream: WriteStream) -> None:
        stream.push(Value.null())

    return producer(_run, name="null", buffer=buffer)


def to_array(*, buffer: int | None = None) -> Stage:
    """Transform gathering every document into one JSON array.

    Emits nothing when there was no input.
    """

    def _run(stream: Stream) -> None:
        items = [as_raw(value) for value in stream]
        if stream.cancelled or not items:
            return
        stream.push(raw_value_array(*items))

    return transform(_run, name="to_array", buffer=buffer)
