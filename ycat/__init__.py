"""Streaming YAML/JSON processing on top of `streamkit` pipelines."""

from ycat.codec import (
    DEFAULT_REGISTRY,
    Codec,
    CodecRegistry,
    Format,
    InputFile,
    detect_format,
    format_from_string,
    iter_json_documents,
    iter_yaml_documents,
    read_file,
    read_files,
    read_from,
    write_to,
)
from ycat.errors import CodecError, DecodeError, EncodeError, StreamIOError, TransformError, YcatError
from ycat.stages import null_stream, to_array
from ycat.values import (
    Delim,
    Map,
    Number,
    RawValue,
    Value,
    ValueType,
    as_raw,
    as_value,
    decode_json,
    decode_tokens,
    encode_json,
    iter_json_tokens,
    raw_value_array,
)
from ycat.yamlio import encode_yaml

__all__ = [
    "DEFAULT_REGISTRY",
    "Codec",
    "CodecError",
    "CodecRegistry",
    "DecodeError",
    "Delim",
    "EncodeError",
    "Format",
    "InputFile",
    "Map",
    "Number",
    "RawValue",
    "StreamIOError",
    "TransformError",
    "Value",
    "ValueType",
    "YcatError",
    "as_raw",
    "as_value",
    "decode_json",
    "decode_tokens",
    "detect_format",
    "encode_json",
    "encode_yaml",
    "format_from_string",
    "iter_json_documents",
    "iter_json_tokens",
    "iter_yaml_documents",
    "null_stream",
    "raw_value_array",
    "read_file",
    "read_files",
    "read_from",
    "to_array",
    "write_to",
]
