"""Reusable streaming kernel (channels, stages, pipeline orchestration).

This package is intentionally independent of `ycat.*`. It moves opaque payloads
between stages; what a value is and how it is encoded lives in the consuming
application.
"""

from streamkit.config_namespace import ConfigNamespace
from streamkit.engine.patterns import and_then, collect, map_values, sequence
from streamkit.engine.pipeline import (
    DefaultStageRecorder,
    NullStageRecorder,
    Pipeline,
    StageRecorder,
    StageState,
    merge_errors,
    utc_now_iso8601,
)
from streamkit.engine.stream import CancelToken, Channel, ReadStream, Stream, WriteStream, drain
from streamkit.errors import TransformError
from streamkit.stage_types import STAGE_KINDS, Stage, StageKind, consumer, producer, transform

__all__ = [
    "STAGE_KINDS",
    "CancelToken",
    "Channel",
    "ConfigNamespace",
    "DefaultStageRecorder",
    "NullStageRecorder",
    "Pipeline",
    "ReadStream",
    "Stage",
    "StageKind",
    "StageRecorder",
    "StageState",
    "Stream",
    "TransformError",
    "WriteStream",
    "and_then",
    "collect",
    "consumer",
    "drain",
    "map_values",
    "merge_errors",
    "producer",
    "sequence",
    "transform",
    "utc_now_iso8601",
]
