"""Per-format decode/encode loops and the stages that drive them."""

from __future__ import annotations

import difflib
import json
import logging
import os
import re
import sys
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Any, Callable, Iterable, Iterator

import yaml

from streamkit import ReadStream, Stage, WriteStream, consumer, producer, sequence
from ycat.errors import CodecError, EncodeError, StreamIOError
from ycat.values import RawValue, Value, encode_json
from ycat.yamlio import encode_yaml, load_documents

logger = logging.getLogger(__name__)

_WS = re.compile(r"[ \t\n\r]*")
_CHUNK_SIZE = 64 * 1024
_LOOKAHEAD = 16


class Format(str, Enum):
    AUTO = "auto"
    YAML = "yaml"
    JSON = "json"

    def __str__(self) -> str:
        return self.value


def _read_chunk(reader: IO[str], size: int) -> str:
    try:
        return reader.read(size)
    except OSError as exc:
        raise StreamIOError(f"Read failed: {exc}") from exc


class _NonFiniteNumber(ValueError):
    pass


def _reject_constant(name: str) -> Any:
    raise _NonFiniteNumber(name)


def _byte_len(text: str, start: int, end: int) -> int:
    return len(text[start:end].encode("utf-8"))


def _maybe_truncated(exc: json.JSONDecodeError, buf: str) -> bool:
    # Unterminated strings report where the string starts; other errors near
    # the end of the buffer may be a token cut by the chunk boundary.
    return exc.msg.startswith("Unterminated string") or exc.pos >= len(buf) - _LOOKAHEAD


def iter_json_documents(reader: IO[str], *, chunk_size: int = _CHUNK_SIZE) -> Iterator[RawValue]:
    """Yield the text of each JSON document in a concatenated or line-delimited stream.

    `NaN` and `Infinity` are rejected. Error offsets count UTF-8 bytes from the
    start of the input.
    """

    decoder = json.JSONDecoder(parse_constant=_reject_constant)
    buf = ""
    pos = 0
    consumed = 0  # bytes before buf[pos]
    index = 0
    eof = False
    while True:
        start = _WS.match(buf, pos).end()
        if start < len(buf):
            end: int | None = None
            try:
                _, end = decoder.raw_decode(buf, start)
            except _NonFiniteNumber as exc:
                raise CodecError(
                    f"Invalid JSON: {exc} is not allowed",
                    document=index,
                    offset=consumed + _byte_len(buf, pos, start),
                ) from exc
            except json.JSONDecodeError as exc:
                if eof or not _maybe_truncated(exc, buf):
                    raise CodecError(
                        f"Invalid JSON: {exc.msg}",
                        document=index,
                        offset=consumed + _byte_len(buf, pos, exc.pos),
                    ) from exc
            # A document touching the end of the buffer may continue in the next chunk.
            if end is not None and (end < len(buf) or eof):
                yield RawValue(buf[start:end])
                index += 1
                consumed += _byte_len(buf, pos, end)
                pos = end
                continue
        elif eof:
            return

        # Read at least as much as is pending so a large document is re-scanned
        # a logarithmic number of times.
        try:
            chunk = _read_chunk(reader, max(chunk_size, len(buf) - pos))
        except UnicodeDecodeError as exc:
            raise CodecError(f"Invalid UTF-8: {exc.reason}", document=index) from exc
        if chunk:
            buf = buf[pos:] + chunk
            pos = 0
        else:
            eof = True


def iter_yaml_documents(reader: IO[str] | str) -> Iterator[RawValue]:
    """Yield one canonical JSON text per YAML document; empty documents are null.

    Syntax errors carry the 1-based line and column of the problem.
    """

    documents = load_documents(reader)
    index = 0
    while True:
        try:
            native = next(documents)
        except StopIteration:
            return
        except yaml.MarkedYAMLError as exc:
            mark = exc.problem_mark or exc.context_mark
            raise CodecError(
                f"Invalid YAML: {exc.problem or exc.context or exc}",
                document=index,
                line=mark.line + 1 if mark is not None else None,
                column=mark.column + 1 if mark is not None else None,
            ) from exc
        except yaml.YAMLError as exc:
            raise CodecError(f"Invalid YAML: {exc}", document=index) from exc
        except UnicodeDecodeError as exc:
            raise CodecError(f"Invalid UTF-8: {exc.reason}", document=index) from exc
        except OSError as exc:
            raise StreamIOError(f"Read failed: {exc}") from exc

        try:
            raw = RawValue.from_yaml(native)
        except EncodeError as exc:
            raise CodecError(str(exc), document=index) from exc
        yield raw or RawValue("null")
        index += 1


def encode_json_document(x: Any) -> str:
    """One compact JSON document terminated by a newline."""

    if isinstance(x, (RawValue, Value)):
        return x.to_json() + "\n"
    return encode_json(x) + "\n"


@dataclass(frozen=True)
class Codec:
    id: str
    decode: Callable[[IO[str]], Iterator[RawValue]]
    encode: Callable[[Any], str]
    separator: str = ""
    aliases: tuple[str, ...] = ()
    extensions: tuple[str, ...] = ()
    doc: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise TypeError("Codec.id must be a non-empty string")
        object.__setattr__(self, "id", self.id.strip().lower())
        if not callable(self.decode) or not callable(self.encode):
            raise TypeError(f"Codec {self.id} decode/encode must be callable")
        object.__setattr__(
            self, "aliases", tuple(str(a).strip().lower() for a in self.aliases if str(a).strip())
        )
        object.__setattr__(
            self,
            "extensions",
            tuple(str(e).strip().lower() for e in self.extensions if str(e).strip()),
        )


@dataclass(frozen=True)
class CodecRegistry:
    _by_id: dict[str, Codec]
    _aliases: dict[str, str] = field(default_factory=dict)
    default: str = "yaml"

    @classmethod
    def from_codecs(cls, codecs: Iterable[Codec], *, default: str = "yaml") -> "CodecRegistry":
        entries: dict[str, Codec] = {}
        aliases: dict[str, str] = {}
        for codec in codecs:
            if codec.id in entries:
                raise ValueError(f"Duplicate codec id: {codec.id}")
            entries[codec.id] = codec
            for alias in codec.aliases:
                if alias in aliases or alias in entries:
                    raise ValueError(f"Duplicate codec alias: {alias}")
                aliases[alias] = codec.id
        if default not in entries:
            raise ValueError(f"Unknown default codec: {default}")
        return cls(_by_id=entries, _aliases=aliases, default=default)

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_id.keys()))

    def resolve(self, name: str | Format) -> Codec:
        key = str(name or "").strip().lower()
        if not key or key == Format.AUTO.value:
            return self._by_id[self.default]
        codec_id = self._aliases.get(key, key)
        codec = self._by_id.get(codec_id)
        if codec is None:
            available = ", ".join(self.available()) or "<none>"
            hint = ", ".join(self.suggest(key))
            suffix = f"; did you mean: {hint}" if hint else ""
            raise ValueError(f"Unknown format: {name} (available: {available}{suffix})")
        return codec

    def detect(self, path: str) -> Codec:
        ext = os.path.splitext(path)[1].lower()
        for codec in self._by_id.values():
            if ext and ext in codec.extensions:
                return codec
        return self._by_id[self.default]

    def suggest(self, name: str, *, limit: int = 3) -> tuple[str, ...]:
        key = (name or "").strip().lower()
        if not key:
            return ()
        candidates = [*self._by_id.keys(), *self._aliases.keys()]
        matches = difflib.get_close_matches(key, candidates, n=limit)
        resolved: list[str] = []
        for match in matches:
            codec_id = self._aliases.get(match, match)
            if codec_id not in resolved:
                resolved.append(codec_id)
        return tuple(resolved)


JSON_CODEC = Codec(
    id="json",
    decode=iter_json_documents,
    encode=encode_json_document,
    aliases=("j",),
    extensions=(".json",),
    doc="Newline-delimited compact JSON",
)
YAML_CODEC = Codec(
    id="yaml",
    decode=iter_yaml_documents,
    encode=encode_yaml,
    separator="---\n",
    aliases=("y", "yml"),
    extensions=(".yaml", ".yml"),
    doc="Multi-document YAML separated by ---",
)
DEFAULT_REGISTRY = CodecRegistry.from_codecs([YAML_CODEC, JSON_CODEC], default="yaml")


def format_from_string(name: str) -> Format:
    """Parse a format name or alias; unknown names mean AUTO."""

    try:
        return Format(DEFAULT_REGISTRY.resolve(name).id)
    except ValueError:
        return Format.AUTO


def detect_format(path: str) -> Format:
    return Format(DEFAULT_REGISTRY.detect(path).id)


@dataclass(frozen=True)
class InputFile:
    path: str
    format: Format = Format.AUTO


def _push_all(codec: Codec, reader: IO[str], stream: WriteStream, *, source: str) -> int:
    count = 0
    try:
        for value in codec.decode(reader):
            if not stream.push(value):
                logger.debug("Downstream stopped reading %s after %d values", source, count)
                break
            count += 1
    except CodecError as exc:
        if exc.source is None:
            exc.source = source
        raise
    return count


def read_from(
    reader: IO[str],
    fmt: Format | str = Format.YAML,
    *,
    close: bool = True,
    name: str | None = None,
    buffer: int | None = None,
    registry: CodecRegistry = DEFAULT_REGISTRY,
) -> Stage:
    """Producer decoding every document from an open reader.

    With `close=True` the reader is closed when the stage ends, however it ends.
    """

    codec = registry.resolve(fmt)
    source = name or getattr(reader, "name", None) or f"<{codec.id}>"

    def _read(stream: WriteStream) -> None:
        with ExitStack() as stack:
            if close:
                stack.callback(reader.close)
            _push_all(codec, reader, stream, source=str(source))

    return producer(_read, name=name or f"read_{codec.id}", buffer=buffer)


def read_file(
    path: str,
    fmt: Format | str = Format.AUTO,
    *,
    buffer: int | None = None,
    registry: CodecRegistry = DEFAULT_REGISTRY,
) -> Stage:
    """Producer decoding a file; `-` or an empty path reads stdin (left open)."""

    from_stdin = path in ("", "-")
    if str(fmt) == Format.AUTO.value and not from_stdin:
        codec = registry.detect(path)
    else:
        codec = registry.resolve(fmt)

    def _read(stream: WriteStream) -> None:
        if from_stdin:
            _push_all(codec, sys.stdin, stream, source="<stdin>")
            return
        try:
            handle = open(path, "r", encoding="utf-8")
        except OSError as exc:
            raise StreamIOError(f"Cannot open {path}: {exc.strerror or exc}") from exc
        with handle:
            logger.debug("Reading %s documents from %s", codec.id, path)
            _push_all(codec, handle, stream, source=path)

    label = "stdin" if from_stdin else os.path.basename(path)
    return producer(_read, name=f"read_{label}", buffer=buffer)


def read_files(*files: InputFile | str, buffer: int | None = None) -> Stage:
    """Producer reading each input in turn; plain strings detect their format."""

    stages = []
    for item in files:
        entry = item if isinstance(item, InputFile) else InputFile(str(item))
        stages.append(read_file(entry.path, entry.format, buffer=buffer))
    return sequence(*stages, name="read_files", buffer=buffer)


def _write_text(writer: IO[str], text: str) -> None:
    try:
        writer.write(text)
    except OSError as exc:
        raise StreamIOError(f"Write failed: {exc}") from exc


def write_to(
    writer: IO[str] | None,
    fmt: Format | str = Format.YAML,
    *,
    close: bool = True,
    name: str | None = None,
    registry: CodecRegistry = DEFAULT_REGISTRY,
) -> Stage:
    """Consumer encoding every value it reads.

    JSON is written one compact document per line; YAML documents after the
    first are preceded by `---`. `writer=None` means the current `sys.stdout`,
    which is never closed.
    """

    codec = registry.resolve(fmt)

    def _write(stream: ReadStream) -> None:
        out = sys.stdout if writer is None else writer
        with ExitStack() as stack:
            if close and writer is not None:
                stack.callback(writer.close)
            count = 0
            while True:
                value, ok = stream.next()
                if not ok:
                    break
                try:
                    text = codec.encode(value)
                except EncodeError as exc:
                    raise CodecError(str(exc), document=count) from exc
                if count and codec.separator:
                    text = codec.separator + text
                _write_text(out, text)
                count += 1
            try:
                out.flush()
            except OSError as exc:
                raise StreamIOError(f"Flush failed: {exc}") from exc
            logger.debug("Wrote %d %s documents", count, codec.id)

    return consumer(_write, name=name or f"write_{codec.id}")
