"""Order-preserving value model shared by every stage.

Objects are `Map` instances (lists of key/value pairs, never dicts) so key order
survives YAML <-> JSON conversions. `RawValue` keeps a document as JSON text
until a consumer needs its structure.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import IntEnum
from json.decoder import scanstring
from json.scanner import NUMBER_RE
from typing import Any

from ycat.errors import DecodeError, EncodeError


class ValueType(IntEnum):
    INVALID = -1
    NULL = 0
    OBJECT = 1
    ARRAY = 2
    STRING = 3
    NUMBER = 4
    BOOLEAN = 5

    def __str__(self) -> str:
        return self.name.capitalize()


class Number(str):
    """Numeric literal kept as decoded text so it re-encodes without loss."""

    def __repr__(self) -> str:
        return f"Number({str.__repr__(self)})"

    def is_integer(self) -> bool:
        return not any(c in self for c in ".eE")

    def to_native(self) -> int | float:
        if self.is_integer():
            return int(self)
        return float(self)


class Map(list):
    """Ordered mapping stored as a list of `(key, value)` pairs.

    Keys are not deduplicated. An empty `Map` is an empty object (`{}`), which
    is different from `None` (`null`).
    """

    @classmethod
    def of(cls, *pairs: Any) -> "Map":
        if len(pairs) % 2:
            raise ValueError(f"Map.of() needs key/value pairs (got {len(pairs)} arguments)")
        return cls(zip(pairs[::2], pairs[1::2]))

    def __repr__(self) -> str:
        return f"Map({list.__repr__(self)})"

    def keys(self) -> list[Any]:
        return [key for key, _ in self]

    def get(self, key: Any, default: Any = None) -> Any:
        for item_key, item_value in self:
            if item_key == key:
                return item_value
        return default


def type_of(x: Any) -> ValueType:
    if x is None:
        return ValueType.NULL
    if isinstance(x, bool):
        return ValueType.BOOLEAN
    if isinstance(x, (Map, Mapping)):
        return ValueType.OBJECT
    if isinstance(x, (list, tuple)):
        return ValueType.ARRAY
    if isinstance(x, (Number, int, float)):
        return ValueType.NUMBER
    if isinstance(x, str):
        return ValueType.STRING
    return ValueType.INVALID


def kind_of_json_byte(c: str) -> ValueType:
    if c == "{":
        return ValueType.OBJECT
    if c == "[":
        return ValueType.ARRAY
    if c == '"':
        return ValueType.STRING
    if c in ("t", "f"):
        return ValueType.BOOLEAN
    if c == "n":
        return ValueType.NULL
    if c == "-" or "0" <= c <= "9":
        return ValueType.NUMBER
    return ValueType.INVALID


# JSON token stream


class Delim(str):
    """Structural token: one of `{`, `}`, `[`, `]`."""

    def __repr__(self) -> str:
        return f"Delim({str.__repr__(self)})"


_WS = re.compile(r"[ \t\n\r]*")
_LITERALS: tuple[tuple[str, Any], ...] = (("true", True), ("false", False), ("null", None))


def _scan(text: str) -> Iterator[tuple[str, Any, int]]:
    """Yield `(lexeme, token, offset)` for every JSON lexeme, `,` and `:` included."""

    pos = 0
    end = len(text)
    while True:
        pos = _WS.match(text, pos).end()
        if pos >= end:
            return
        c = text[pos]
        if c in "{}[]":
            yield c, Delim(c), pos
            pos += 1
        elif c in ",:":
            yield c, c, pos
            pos += 1
        elif c == '"':
            try:
                value, stop = scanstring(text, pos + 1)
            except json.JSONDecodeError as exc:
                raise DecodeError(exc.msg, offset=exc.pos) from exc
            yield text[pos:stop], value, pos
            pos = stop
        else:
            match = NUMBER_RE.match(text, pos)
            if match is not None:
                lexeme = match.group()
                yield lexeme, Number(lexeme), pos
                pos = match.end()
                continue
            for word, literal in _LITERALS:
                if text.startswith(word, pos):
                    yield word, literal, pos
                    pos += len(word)
                    break
            else:
                raise DecodeError(f"Invalid character {c!r} in JSON text", offset=pos)


def iter_json_tokens(text: str) -> Iterator[Any]:
    """Lex JSON text into scalar tokens and `Delim` tokens."""

    for lexeme, token, _ in _scan(text):
        if lexeme in (",", ":"):
            continue
        yield token


def _next_token(tokens: Iterator[Any], where: str) -> Any:
    try:
        return next(tokens)
    except StopIteration:
        raise DecodeError(f"Unexpected end of tokens in {where}") from None


def _decode_token(token: Any, tokens: Iterator[Any]) -> Any:
    if isinstance(token, Delim):
        if token == "[":
            return _decode_array(tokens)
        if token == "{":
            return _decode_map(tokens)
        raise DecodeError(f"Unmatched delimiter {str(token)!r}")
    return token


def _decode_array(tokens: Iterator[Any]) -> list[Any]:
    arr: list[Any] = []
    while True:
        token = _next_token(tokens, "array")
        if isinstance(token, Delim) and token == "]":
            return arr
        arr.append(_decode_token(token, tokens))


def _decode_map(tokens: Iterator[Any]) -> Map:
    m = Map()
    while True:
        token = _next_token(tokens, "object")
        if isinstance(token, Delim):
            if token == "}":
                return m
            raise DecodeError(f"Invalid JSON key token {str(token)!r}")
        if not isinstance(token, str) or isinstance(token, Number):
            raise DecodeError(f"Invalid JSON key token {token!r}")
        m.append((str(token), _decode_token(_next_token(tokens, "object"), tokens)))


def decode_tokens(tokens: Iterable[Any]) -> "Value":
    """Build one Value from a token stream; no tokens at all decode to null."""

    it = iter(tokens)
    try:
        first = next(it)
    except StopIteration:
        return Value.null()
    return Value.of(_decode_token(first, it))


def decode_json(text: str) -> "Value":
    """Decode exactly one JSON document; empty text is null."""

    tokens = iter_json_tokens(text)
    value = decode_tokens(tokens)
    for extra in tokens:
        raise DecodeError(f"Unexpected trailing token {extra!r}")
    return value


# JSON encoding


def _encode_scalar(x: Any) -> str:
    if x is None:
        return "null"
    if x is True:
        return "true"
    if x is False:
        return "false"
    if isinstance(x, Number):
        return str(x)
    if isinstance(x, int):
        return str(int(x))
    if isinstance(x, float):
        try:
            return json.dumps(x, allow_nan=False)
        except ValueError as exc:
            raise EncodeError(f"Cannot encode {x!r} as JSON") from exc
    if isinstance(x, str):
        return json.dumps(x, ensure_ascii=False)
    raise EncodeError(f"Cannot encode {type(x).__name__} as JSON")


def _write_json(x: Any, parts: list[str], indent: int | None, level: int) -> None:
    if isinstance(x, Value):
        x = x.data
    elif isinstance(x, RawValue):
        if indent is None:
            parts.append(x.compact() or "null")
            return
        x = x.decode().data

    if isinstance(x, (Map, Mapping)):
        pairs = list(x.items()) if isinstance(x, Mapping) else list(x)
        if not pairs:
            parts.append("{}")
            return
        parts.append("{")
        for i, (key, value) in enumerate(pairs):
            if not isinstance(key, str):
                raise EncodeError(f"Invalid key {key!r}")
            if i > 0:
                parts.append(",")
            _newline(parts, indent, level + 1)
            parts.append(json.dumps(str(key), ensure_ascii=False))
            parts.append(":" if indent is None else ": ")
            _write_json(value, parts, indent, level + 1)
        _newline(parts, indent, level)
        parts.append("}")
        return

    if isinstance(x, (list, tuple)):
        if not x:
            parts.append("[]")
            return
        parts.append("[")
        for i, item in enumerate(x):
            if i > 0:
                parts.append(",")
            _newline(parts, indent, level + 1)
            _write_json(item, parts, indent, level + 1)
        _newline(parts, indent, level)
        parts.append("]")
        return

    parts.append(_encode_scalar(x))


def _newline(parts: list[str], indent: int | None, level: int) -> None:
    if indent is not None:
        parts.append("\n" + " " * (indent * level))


def encode_json(x: Any, indent: int | None = None) -> str:
    """Encode a value tree as JSON text, compact unless `indent` is given."""

    parts: list[str] = []
    _write_json(x, parts, indent, 0)
    return "".join(parts)


# Documents


@dataclass(frozen=True)
class Value:
    """One structured document: a kind plus its native data tree."""

    type: ValueType
    data: Any = None

    @classmethod
    def of(cls, x: Any) -> "Value":
        if isinstance(x, Value):
            return x
        if isinstance(x, RawValue):
            return x.decode()
        kind = type_of(x)
        if kind is ValueType.INVALID:
            raise TypeError(f"Cannot build a Value from {type(x).__name__}")
        return cls(kind, x)

    @classmethod
    def null(cls) -> "Value":
        return cls(ValueType.NULL, None)

    def kind(self) -> ValueType:
        return self.type

    def to_value(self) -> "Value":
        return self

    def to_raw(self) -> "RawValue":
        return RawValue(encode_json(self.data))

    def to_json(self, indent: int | None = None) -> str:
        return encode_json(self.data, indent)

    def to_yaml_native(self) -> Any:
        # A bare number at the document root is handed to YAML as a native scalar.
        if isinstance(self.data, Number):
            return self.data.to_native()
        return self.data


class RawValue(str):
    """JSON text of a single document, decoded only on demand.

    The empty string stands for null, never for an error.
    """

    def kind(self) -> ValueType:
        text = self.lstrip(" \t\r\n")
        if not text:
            return ValueType.NULL
        return kind_of_json_byte(text[0])

    def compact(self) -> "RawValue":
        if not self:
            return RawValue("")
        return RawValue("".join(lexeme for lexeme, _, _ in _scan(self)))

    def decode(self) -> Value:
        return decode_json(self)

    def to_value(self) -> Value:
        return self.decode()

    def to_raw(self) -> "RawValue":
        return self

    def to_json(self, indent: int | None = None) -> str:
        if indent is None:
            return self.compact() or "null"
        return encode_json(self.decode(), indent)

    def to_yaml_native(self) -> Any:
        if not self.strip():
            return None
        return self.decode().to_yaml_native()

    @classmethod
    def of(cls, x: Any) -> "RawValue":
        if isinstance(x, RawValue):
            return x
        if isinstance(x, Value):
            return x.to_raw()
        return cls(encode_json(x))

    @classmethod
    def from_yaml(cls, x: Any) -> "RawValue":
        """Canonical JSON text for a YAML-decoded tree.

        Tried in order: sequence, mapping, boolean, number, string.
        """

        if isinstance(x, (list, tuple)) and not isinstance(x, Map):
            if not x:
                return cls("[]")
            return raw_value_array(*(cls.from_yaml(item) for item in x))
        if isinstance(x, (Map, Mapping)):
            pairs = list(x.items()) if isinstance(x, Mapping) else list(x)
            if not pairs:
                return cls("{}")
            members = (
                f"{json.dumps(_yaml_key(key), ensure_ascii=False)}:{cls.from_yaml(value) or 'null'}"
                for key, value in pairs
            )
            return cls("{" + ",".join(members) + "}")
        if isinstance(x, bool):
            return cls("true" if x else "false")
        if isinstance(x, (Number, int, float)):
            return cls(_encode_scalar(x))
        if isinstance(x, str):
            return cls(_encode_scalar(x))
        if x is None:
            return cls("")
        raise EncodeError(f"Cannot convert YAML value of type {type(x).__name__} to JSON")


def _yaml_key(key: Any) -> str:
    if isinstance(key, str):
        return str(key)
    if key is None or isinstance(key, (bool, int, float)):
        return _encode_scalar(key)
    raise EncodeError(f"Invalid key {key!r}")


def raw_value_array(*values: str) -> RawValue:
    """Join encoded documents into one JSON array without re-parsing them."""

    return RawValue("[" + ",".join(str(v) or "null" for v in values) + "]")


def as_value(x: Any) -> Value:
    return Value.of(x)


def as_raw(x: Any) -> RawValue:
    return RawValue.of(x)
