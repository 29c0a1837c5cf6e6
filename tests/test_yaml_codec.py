import io

import pytest

from ycat.codec import iter_yaml_documents
from ycat.errors import CodecError, EncodeError
from ycat.values import Map, Number, RawValue, Value
from ycat.yamlio import encode_yaml, load_documents


def test_encode_yaml_preserves_key_order():
    x = Map.of("b", Number("1"), "a", [Number("2"), "x"])

    assert encode_yaml(x) == "b: 1\na:\n- 2\n- x\n"


def test_encode_yaml_null_is_empty_body():
    assert encode_yaml(None) == ""
    assert encode_yaml(Value.null()) == ""
    assert encode_yaml(RawValue("")) == ""
    assert encode_yaml(RawValue("null")) == ""


def test_encode_yaml_scalars_have_no_document_end_marker():
    assert encode_yaml(Value.of(Number("42"))) == "42\n"
    assert encode_yaml("hello") == "hello\n"
    assert encode_yaml(True) == "true\n"


def test_encode_yaml_from_raw_value():
    assert encode_yaml(RawValue('{"z": 1, "a": {}}')) == "z: 1\na: {}\n"


def test_encode_yaml_allows_unicode():
    assert encode_yaml(Map.of("k", "héllo")) == "k: héllo\n"


def test_encode_yaml_rejects_unrepresentable_values():
    with pytest.raises(EncodeError):
        encode_yaml(object())


def test_loader_builds_ordered_maps_and_keeps_timestamps_as_text():
    docs = list(load_documents("z: 1\na: 2001-12-14\n"))

    assert docs == [Map([("z", 1), ("a", "2001-12-14")])]
    assert isinstance(docs[0], Map)


def test_loader_applies_merge_keys():
    docs = list(load_documents("base: &b {x: 1}\nchild:\n  <<: *b\n  y: 2\n"))

    child = docs[0].get("child")
    assert child.keys() == ["x", "y"]


def test_iter_yaml_documents_yields_canonical_json():
    stream = io.StringIO("a: 1\n---\nb: [1, 2]\n---\n- x\n- {c: null}\n")

    docs = list(iter_yaml_documents(stream))

    assert docs == ['{"a":1}', '{"b":[1,2]}', '["x",{"c":null}]']
    assert all(isinstance(doc, RawValue) for doc in docs)


def test_iter_yaml_documents_null_documents_become_null_text():
    docs = list(iter_yaml_documents(io.StringIO("---\n---\nx: 1\n")))

    assert docs == ["null", '{"x":1}']


def test_iter_yaml_documents_empty_input_yields_nothing():
    assert list(iter_yaml_documents(io.StringIO(""))) == []


def test_iter_yaml_documents_reports_document_and_position():
    docs: list[str] = []

    with pytest.raises(CodecError) as excinfo:
        for doc in iter_yaml_documents(io.StringIO("a: 1\n---\nb: [1, 2\n")):
            docs.append(doc)

    assert docs == ['{"a":1}']
    assert excinfo.value.document == 1
    assert excinfo.value.line is not None
    assert excinfo.value.column is not None
    assert "Invalid YAML" in str(excinfo.value)


def test_iter_yaml_documents_rejects_non_finite_numbers():
    with pytest.raises(CodecError) as excinfo:
        list(iter_yaml_documents(io.StringIO("x: .inf\n")))

    assert excinfo.value.document == 0
