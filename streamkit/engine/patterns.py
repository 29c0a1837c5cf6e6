from __future__ import annotations

"""Reusable stage composition helpers.

These helpers are intentionally generic (no `ycat.*` dependencies) and work
for any payload moving through `streamkit.engine.pipeline`.
"""

from collections.abc import Callable
from typing import Any

from streamkit.engine.stream import ReadStream, Stream, WriteStream, drain
from streamkit.errors import TransformError
from streamkit.stage_types import Stage, consumer, producer, transform


__all__ = ["and_then", "collect", "drain", "map_values", "sequence"]


def sequence(*producers: Stage, name: str = "sequence", buffer: int | None = None) -> Stage:
    """Pattern: run several producers one after another as a single producer."""

    for stage in producers:
        if not isinstance(stage, Stage):
            raise TypeError(f"sequence() expects Stage instances (type={type(stage).__name__})")
        if stage.kind != "producer":
            raise ValueError(f"sequence() only accepts producers (stage={stage.name}, kind={stage.kind})")

    def _run(stream: WriteStream) -> None:
        for stage in producers:
            stage.run(stream)

    return producer(_run, name=name, buffer=buffer)


def and_then(stage: Stage, *, name: str | None = None) -> Stage:
    """Pattern: forward all upstream values, then hand the stream to `stage`.

    Lets a generating transform be appended mid-chain without discarding
    earlier output.
    """

    if not isinstance(stage, Stage):
        raise TypeError(f"and_then() expects a Stage (type={type(stage).__name__})")

    def _run(stream: Stream) -> None:
        if drain(stream):
            stage.run(stream)

    return transform(_run, name=name or f"and_then_{stage.name}", buffer=stage.buffer)


def map_values(
    fn: Callable[[Any], Any], *, name: str | None = None, buffer: int | None = None
) -> Stage:
    """Pattern: 1:1 transform applying `fn` to every value in order."""

    if not callable(fn):
        raise TypeError(f"map_values() fn must be callable (type={type(fn).__name__})")
    stage_name = name or str(getattr(fn, "__name__", "") or "").strip("<>") or "map_values"

    def _run(stream: Stream) -> None:
        for index, value in enumerate(stream):
            try:
                result = fn(value)
            except Exception as exc:
                raise TransformError(
                    f"{stage_name} failed on value #{index}: {exc}", index=index, stage=stage_name
                ) from exc
            if not stream.push(result):
                return

    return transform(_run, name=stage_name, buffer=buffer)


def collect(into: list[Any], *, name: str = "collect") -> Stage:
    """Pattern: terminal consumer appending every value to `into`."""

    if not isinstance(into, list):
        raise TypeError(f"collect() target must be a list (type={type(into).__name__})")

    def _run(stream: ReadStream) -> None:
        while True:
            value, ok = stream.next()
            if not ok:
                return
            into.append(value)

    return consumer(_run, name=name)
