import pytest

from ycat.errors import DecodeError, EncodeError
from ycat.values import (
    Delim,
    Map,
    Number,
    RawValue,
    Value,
    ValueType,
    decode_json,
    decode_tokens,
    encode_json,
    iter_json_tokens,
    raw_value_array,
)


def test_value_type_names():
    assert str(ValueType.OBJECT) == "Object"
    assert str(ValueType.ARRAY) == "Array"
    assert str(ValueType.NULL) == "Null"
    assert str(ValueType.INVALID) == "Invalid"
    assert int(ValueType.INVALID) == -1


def test_map_of_preserves_order_and_duplicates():
    m = Map.of("b", 1, "a", 2, "b", 3)

    assert m.keys() == ["b", "a", "b"]
    assert m.get("b") == 1
    assert m.get("missing", "dflt") == "dflt"
    assert Map.of() == []


def test_map_of_rejects_odd_arguments():
    with pytest.raises(ValueError, match=r"key/value pairs"):
        Map.of("a")


@pytest.mark.parametrize(
    "x, kind",
    [
        (None, ValueType.NULL),
        (True, ValueType.BOOLEAN),
        (Number("1.5"), ValueType.NUMBER),
        (3, ValueType.NUMBER),
        ("s", ValueType.STRING),
        ([1], ValueType.ARRAY),
        (Map.of(), ValueType.OBJECT),
    ],
)
def test_value_of_infers_kind(x, kind):
    assert Value.of(x).kind() is kind


def test_value_of_rejects_unknown_types():
    with pytest.raises(TypeError):
        Value.of(object())


@pytest.mark.parametrize(
    "text, kind",
    [
        ("", ValueType.NULL),
        ("  null", ValueType.NULL),
        ("  {}", ValueType.OBJECT),
        ("[1]", ValueType.ARRAY),
        ('"x"', ValueType.STRING),
        ("-1", ValueType.NUMBER),
        ("false", ValueType.BOOLEAN),
        ("x", ValueType.INVALID),
    ],
)
def test_raw_value_kind_uses_first_significant_byte(text, kind):
    assert RawValue(text).kind() is kind


def test_raw_value_compact_is_idempotent():
    raw = RawValue('{ "a" : [1, 2],\n "b": "x y" }')

    once = raw.compact()
    assert once == '{"a":[1,2],"b":"x y"}'
    assert once.compact() == once


def test_raw_value_decode_keeps_key_order_and_number_text():
    value = RawValue('{"b": 1.50, "a": [10, -0]}').decode()

    assert value.kind() is ValueType.OBJECT
    assert value.data.keys() == ["b", "a"]
    assert value.data.get("b") == "1.50"
    assert isinstance(value.data.get("b"), Number)
    assert value.to_json() == '{"b":1.50,"a":[10,-0]}'


def test_empty_raw_value_is_null():
    assert RawValue("").decode() == Value.null()
    assert RawValue("").to_json() == "null"
    assert RawValue("").to_yaml_native() is None


def test_raw_value_of_encodes_native_trees():
    assert RawValue.of(Map.of("a", [1, None])) == '{"a":[1,null]}'
    assert RawValue.of(Value.of("x")) == '"x"'


def test_raw_value_array_joins_without_reparsing():
    assert raw_value_array("1", "", '{"a":2}') == '[1,null,{"a":2}]'
    assert raw_value_array() == "[]"


def test_iter_json_tokens_skips_separators():
    tokens = list(iter_json_tokens('{"a": [1, "x", true, null]}'))

    assert tokens == [
        Delim("{"),
        "a",
        Delim("["),
        Number("1"),
        "x",
        True,
        None,
        Delim("]"),
        Delim("}"),
    ]
    assert isinstance(tokens[0], Delim)
    assert isinstance(tokens[3], Number)


def test_decode_tokens_empty_is_null():
    assert decode_tokens([]) == Value.null()


def test_decode_tokens_rejects_non_string_keys():
    with pytest.raises(DecodeError, match=r"Invalid JSON key token"):
        decode_tokens([Delim("{"), Number("1"), "x", Delim("}")])


def test_decode_tokens_rejects_unmatched_delimiter():
    with pytest.raises(DecodeError, match=r"Unmatched delimiter"):
        decode_tokens([Delim("]")])


def test_decode_tokens_rejects_truncated_stream():
    with pytest.raises(DecodeError, match=r"Unexpected end of tokens"):
        decode_tokens([Delim("["), Number("1")])


def test_decode_json_reports_offset_of_invalid_character():
    with pytest.raises(DecodeError) as excinfo:
        decode_json("[1, @]")

    assert excinfo.value.offset == 4


def test_decode_json_rejects_trailing_tokens():
    with pytest.raises(DecodeError, match=r"trailing"):
        decode_json("1 2")


def test_decode_json_unescapes_strings():
    assert decode_json('"caf\\u00e9"').data == "café"


def test_encode_json_compact_and_indented():
    x = Map.of("b", 1, "a", [True, None])

    assert encode_json(x) == '{"b":1,"a":[true,null]}'
    assert encode_json(x, indent=2) == '{\n  "b": 1,\n  "a": [\n    true,\n    null\n  ]\n}'


def test_encode_json_empty_containers_and_null():
    assert encode_json(Map()) == "{}"
    assert encode_json([]) == "[]"
    assert encode_json(None) == "null"


def test_encode_json_rejects_non_string_keys():
    with pytest.raises(EncodeError, match=r"Invalid key"):
        encode_json(Map([(1, 2)]))


def test_encode_json_rejects_nan():
    with pytest.raises(EncodeError):
        encode_json(float("nan"))


def test_top_level_number_becomes_native_for_yaml():
    native = Value.of(Number("42")).to_yaml_native()
    assert native == 42
    assert isinstance(native, int)

    assert RawValue("1.5").to_yaml_native() == 1.5


def test_nested_numbers_keep_their_text_for_yaml():
    native = RawValue('{"n": 1.50}').to_yaml_native()

    assert isinstance(native, Map)
    assert native.get("n") == "1.50"
    assert isinstance(native.get("n"), Number)


def test_from_yaml_trial_order_and_empty_containers():
    assert RawValue.from_yaml([]) == "[]"
    assert RawValue.from_yaml(Map()) == "{}"
    assert RawValue.from_yaml({}) == "{}"
    assert RawValue.from_yaml(None) == ""
    assert RawValue.from_yaml(True) == "true"
    assert RawValue.from_yaml(1.5) == "1.5"
    assert RawValue.from_yaml("2001-12-14") == '"2001-12-14"'


def test_from_yaml_keeps_map_order_and_nested_nulls():
    raw = RawValue.from_yaml(Map.of("b", [1, "x"], "a", None))

    assert raw == '{"b":[1,"x"],"a":null}'


def test_from_yaml_stringifies_scalar_keys():
    assert RawValue.from_yaml(Map([(1, "x"), (None, 2), (False, 3)])) == '{"1":"x","null":2,"false":3}'


def test_from_yaml_rejects_complex_keys():
    with pytest.raises(EncodeError, match=r"Invalid key"):
        RawValue.from_yaml(Map([((1, 2), "x")]))
