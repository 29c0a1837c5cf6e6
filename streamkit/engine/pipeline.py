"""Execution engine for linear stage chains.

Each stage runs in its own thread with its own output channel and error
channel; stage *i*'s output is stage *i+1*'s input. Per-stage error channels
are fanned into one merged error stream.

This module is intentionally app-agnostic and must not import `ycat.*`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Literal, Protocol, TypeAlias

from streamkit.engine.stream import CancelToken, Channel, Stream, drain
from streamkit.stage_types import Stage

StageState: TypeAlias = Literal["created", "running", "completed", "failed", "cancelled"]

logger = logging.getLogger(__name__)


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class StageRecorder(Protocol):
    def on_stage_start(self, path: str, **metrics: Any) -> None:
        ...

    def on_stage_end(self, record: dict[str, Any]) -> None:
        ...

    def on_stage_error(self, path: str, stage_name: str, exc: Exception) -> None:
        ...


class DefaultStageRecorder:
    def __init__(self, log: logging.Logger | None = None) -> None:
        self.logger = log or logger
        self.records: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def on_stage_start(self, path: str, **metrics: Any) -> None:
        tokens: list[str] = []
        kind = metrics.get("kind")
        if isinstance(kind, str) and kind.strip():
            tokens.append(f"kind={kind.strip()}")

        tokens.append(f"buffer={int(metrics.get('buffer', 0) or 0)}")

        source = metrics.get("source")
        if isinstance(source, str) and source.strip():
            tokens.append(f"source={source.strip()}")

        doc = metrics.get("doc")
        if isinstance(doc, str) and doc.strip():
            tokens.append(f"doc={doc.strip()!r}")

        self.logger.debug("Stage: %s (%s)", path, ", ".join(tokens))

    def on_stage_end(self, record: dict[str, Any]) -> None:
        with self._lock:
            self.records.append(record)
        self.logger.debug(
            "Stage %s %s (pulled=%d, pushed=%d)",
            record.get("path", "<unknown>"),
            record.get("state", "completed"),
            int(record.get("pulled", 0) or 0),
            int(record.get("pushed", 0) or 0),
        )

    def on_stage_error(self, path: str, stage_name: str, exc: Exception) -> None:
        self.logger.error("Stage failed: %s (%s)", path, exc)


class NullStageRecorder:
    def on_stage_start(self, path: str, **metrics: Any) -> None:
        return

    def on_stage_end(self, record: dict[str, Any]) -> None:
        return

    def on_stage_error(self, path: str, stage_name: str, exc: Exception) -> None:
        return


def _validate_recorder(recorder: StageRecorder) -> None:
    required = ("on_stage_start", "on_stage_end", "on_stage_error")
    for name in required:
        method = getattr(recorder, name, None)
        if method is None or not callable(method):
            raise TypeError(f"Stage recorder missing required method: {name}")


def _attach_pipeline_error(exc: Exception, *, path: str, stage: Stage, index: int) -> None:
    attrs = {
        "pipeline_path": path,
        "pipeline_stage": stage.name,
        "pipeline_stage_kind": stage.kind,
        "pipeline_stage_index": index,
    }
    for name, value in attrs.items():
        if hasattr(exc, name):
            continue
        try:
            setattr(exc, name, value)
        except (AttributeError, TypeError):
            pass


def _forward(source: Channel, out: Channel) -> None:
    for item in source:
        out.put(item)


def merge_errors(*sources: Channel) -> Channel:
    """Fan several error channels into one.

    The merged channel closes only after every source has closed, so no error
    is lost whatever order the stages finish in.
    """

    if len(sources) == 1:
        return sources[0]

    out = Channel(capacity=max(len(sources), 1))
    if not sources:
        out.close()
        return out

    forwarders: list[threading.Thread] = []
    for idx, source in enumerate(sources):
        thread = threading.Thread(
            target=_forward, args=(source, out), name=f"merge_errors-{idx}", daemon=True
        )
        thread.start()
        forwarders.append(thread)

    def _close_when_done() -> None:
        for thread in forwarders:
            thread.join()
        out.close()

    threading.Thread(target=_close_when_done, name="merge_errors-close", daemon=True).start()
    return out


@dataclass
class _StageRun:
    stage: Stage
    index: int
    path: str
    state: StageState = "created"
    thread: threading.Thread | None = None


class Pipeline:
    """A running chain of stages.

    `values()` yields the last stage's output; `errors()` yields every stage
    failure exactly once and ends when all stages finished.
    """

    def __init__(
        self,
        values: Channel,
        errors: Channel,
        cancel: CancelToken,
        *,
        name: str = "pipeline",
        recorder: StageRecorder | None = None,
        runs: list[_StageRun] | None = None,
    ) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Pipeline name must be a non-empty string")
        self.name = name.strip()
        self._values = values
        self._errors = errors
        self._cancel = cancel
        self._recorder = recorder or DefaultStageRecorder()
        _validate_recorder(self._recorder)
        self._runs: list[_StageRun] = list(runs or [])

    @classmethod
    def empty(
        cls,
        *,
        cancel: CancelToken | None = None,
        recorder: StageRecorder | None = None,
        name: str = "pipeline",
    ) -> "Pipeline":
        return cls(
            Channel.closed_channel(),
            Channel.closed_channel(),
            cancel or CancelToken(),
            name=name,
            recorder=recorder,
        )

    @classmethod
    def build(
        cls,
        stages: Iterable[Stage],
        *,
        cancel: CancelToken | None = None,
        recorder: StageRecorder | None = None,
        name: str = "pipeline",
    ) -> "Pipeline":
        return cls.empty(cancel=cancel, recorder=recorder, name=name).pipe(*stages)

    @property
    def cancel_token(self) -> CancelToken:
        return self._cancel

    @property
    def recorder(self) -> StageRecorder:
        return self._recorder

    def pipe(self, *stages: Stage) -> "Pipeline":
        """Start `stages` downstream of this pipeline and return the extended pipeline.

        The receiver's value and error streams are handed over to the result;
        keep using the returned pipeline only.
        """

        runs = list(self._runs)
        src = self._values
        error_sources = [self._errors]
        for stage in stages:
            if not isinstance(stage, Stage):
                raise TypeError(f"Pipeline stages must be Stage instances (type={type(stage).__name__})")
            index = len(runs)
            run = _StageRun(stage=stage, index=index, path=f"{self.name}/{index + 1:02d}_{stage.name}")
            src, errc = self._launch(run, src)
            runs.append(run)
            error_sources.append(errc)

        return Pipeline(
            src,
            merge_errors(*error_sources),
            self._cancel,
            name=self.name,
            recorder=self._recorder,
            runs=runs,
        )

    def _launch(self, run: _StageRun, src: Channel) -> tuple[Channel, Channel]:
        stage = run.stage
        errc = Channel(capacity=1)
        if stage.kind == "consumer":
            out = Channel.closed_channel()
        else:
            out = Channel(capacity=stage.buffer, cancel=self._cancel)

        stream = Stream(src, out, self._cancel)
        thread = threading.Thread(
            target=self._run_stage,
            args=(run, stream, src, out, errc),
            name=run.path,
            daemon=True,
        )
        run.thread = thread
        run.state = "running"
        thread.start()
        return out, errc

    def _run_stage(
        self, run: _StageRun, stream: Stream, src: Channel, out: Channel, errc: Channel
    ) -> None:
        stage = run.stage
        try:
            self._recorder.on_stage_start(
                run.path,
                kind=stage.kind,
                buffer=stage.buffer,
                source=stage.source(),
                doc=stage.doc,
            )
            if stage.kind == "producer":
                # Earlier stages' output goes first.
                drain(stream)
            stage.run(stream)
        except Exception as exc:
            run.state = "failed"
            try:
                self._recorder.on_stage_error(run.path, stage.name, exc)
            except Exception:
                logger.exception("Stage recorder failed during error handling for %s", run.path)
            _attach_pipeline_error(exc, path=run.path, stage=stage, index=run.index)
            errc.put(exc)
        else:
            run.state = "cancelled" if self._cancel.cancelled else "completed"
        finally:
            out.close()
            if stage.kind != "producer":
                for _ in src:
                    pass
            errc.close()

        record = {
            "type": stage.kind,
            "name": stage.name,
            "path": run.path,
            "index": run.index,
            "state": run.state,
            "pulled": stream.pulled,
            "pushed": stream.pushed,
            "created_at": utc_now_iso8601(),
        }
        try:
            self._recorder.on_stage_end(record)
        except Exception:
            logger.exception("Stage recorder failed while recording %s", run.path)

    def values(self) -> Iterator[Any]:
        return iter(self._values)

    def errors(self) -> Iterator[Exception]:
        return iter(self._errors)

    def cancel(self, reason: str | None = None) -> None:
        self._cancel.cancel(reason)

    def states(self) -> dict[str, StageState]:
        return {run.path: run.state for run in self._runs}

    def join(self, timeout: float | None = None) -> bool:
        """Wait for every stage thread; returns False if any is still alive."""

        for run in self._runs:
            if run.thread is not None:
                run.thread.join(timeout)
        return all(run.thread is None or not run.thread.is_alive() for run in self._runs)

    def wait(self, timeout: float | None = None) -> list[Exception]:
        """Discard remaining values, then return every stage error.

        `timeout` bounds the final join of each stage thread, not the draining.
        """

        for _ in self._values:
            pass
        errors = list(self._errors)
        self.join(timeout)
        return errors

    def __enter__(self) -> "Pipeline":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.cancel("pipeline context exited")
        self.join()
