from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Literal, get_args

StageKind = Literal["producer", "consumer", "transform"]
STAGE_KINDS: tuple[str, ...] = get_args(StageKind)

DEFAULT_BUFFERS: dict[str, int] = {"producer": 1, "consumer": 0, "transform": 0}

StageFn = Callable[[Any], Any]


def _callable_name(fn: Any) -> str:
    name = getattr(fn, "__name__", None) or type(fn).__name__
    return str(name).strip("<>") or "stage"


@dataclass(frozen=True)
class Stage:
    """One unit of pipeline work.

    `kind` decides how the orchestrator wires the stage:

    - producer: receives a WriteStream; upstream values are forwarded first.
    - consumer: receives a ReadStream; its output is closed from the start.
    - transform: receives a full Stream and may read/write in any ratio.

    `buffer` is the capacity of the stage's output channel (0 = rendezvous).
    """

    name: str
    kind: StageKind
    fn: StageFn
    buffer: int = 0
    doc: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("Stage.name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())

        normalized = str(self.kind).strip().lower()
        if normalized not in STAGE_KINDS:
            raise ValueError(
                f"Stage.kind must be one of: {', '.join(STAGE_KINDS)} (got {self.kind!r})"
            )
        object.__setattr__(self, "kind", normalized)

        if not callable(self.fn):
            raise TypeError(f"Stage fn must be callable (type={type(self.fn).__name__})")

        if isinstance(self.buffer, bool) or not isinstance(self.buffer, int):
            raise TypeError(f"Stage.buffer must be an int (type={type(self.buffer).__name__})")
        if self.buffer < 0:
            raise ValueError(f"Stage.buffer must be >= 0 (got {self.buffer})")

        if self.doc is not None and (not isinstance(self.doc, str) or not self.doc.strip()):
            raise TypeError("Stage.doc must be a non-empty string or None")

    def run(self, stream: Any) -> None:
        self.fn(stream)

    def source(self) -> str:
        module = getattr(self.fn, "__module__", None) or "<unknown_module>"
        qualname = getattr(self.fn, "__qualname__", None) or _callable_name(self.fn)
        return f"{module}.{qualname}"


def _make(
    kind: StageKind, fn: StageFn, *, name: str | None, buffer: int | None, doc: str | None
) -> Stage:
    return Stage(
        name=name or _callable_name(fn),
        kind=kind,
        fn=fn,
        buffer=DEFAULT_BUFFERS[kind] if buffer is None else buffer,
        doc=doc,
    )


def producer(
    fn: StageFn, *, name: str | None = None, buffer: int | None = None, doc: str | None = None
) -> Stage:
    return _make("producer", fn, name=name, buffer=buffer, doc=doc)


def consumer(fn: StageFn, *, name: str | None = None, doc: str | None = None) -> Stage:
    return _make("consumer", fn, name=name, buffer=0, doc=doc)


def transform(
    fn: StageFn, *, name: str | None = None, buffer: int | None = None, doc: str | None = None
) -> Stage:
    return _make("transform", fn, name=name, buffer=buffer, doc=doc)
