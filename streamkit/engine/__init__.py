"""Engine primitives for building and running stage chains."""

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
from streamkit.engine.stream import (
    CancelToken,
    Channel,
    ReadStream,
    Stream,
    WriteStream,
    drain,
)

__all__ = [
    "CancelToken",
    "Channel",
    "DefaultStageRecorder",
    "NullStageRecorder",
    "Pipeline",
    "ReadStream",
    "StageRecorder",
    "StageState",
    "Stream",
    "WriteStream",
    "and_then",
    "collect",
    "drain",
    "map_values",
    "merge_errors",
    "sequence",
    "utc_now_iso8601",
]
