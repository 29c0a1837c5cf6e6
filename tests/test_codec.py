import io

import pytest

from streamkit import NullStageRecorder, Pipeline, collect, producer
from ycat.codec import (
    DEFAULT_REGISTRY,
    Format,
    InputFile,
    detect_format,
    format_from_string,
    iter_json_documents,
    read_file,
    read_files,
    read_from,
    write_to,
)
from ycat.errors import CodecError, StreamIOError
from ycat.values import Map, RawValue, Value


class _KeepOnClose(io.StringIO):
    def close(self):
        self.final = self.getvalue()
        super().close()


def _run(*stages):
    pipeline = Pipeline.build(stages, recorder=NullStageRecorder())
    values = list(pipeline.values())
    errors = pipeline.wait()
    return values, errors


def test_detect_format_by_extension():
    assert detect_format("a.json") is Format.JSON
    assert detect_format("A.JSON") is Format.JSON
    assert detect_format("a.yml") is Format.YAML
    assert detect_format("a.txt") is Format.YAML
    assert detect_format("-") is Format.YAML


def test_format_from_string_accepts_aliases():
    assert format_from_string("j") is Format.JSON
    assert format_from_string("JSON") is Format.JSON
    assert format_from_string("y") is Format.YAML
    assert format_from_string("bogus") is Format.AUTO


def test_registry_resolve_and_suggest():
    assert DEFAULT_REGISTRY.available() == ("json", "yaml")
    assert DEFAULT_REGISTRY.resolve("Y").id == "yaml"
    assert DEFAULT_REGISTRY.resolve("").id == "yaml"
    assert DEFAULT_REGISTRY.resolve(Format.JSON).id == "json"

    with pytest.raises(ValueError, match=r"did you mean: json"):
        DEFAULT_REGISTRY.resolve("jsn")


def test_iter_json_documents_concatenated_and_line_delimited():
    stream = io.StringIO('{"a": 1} [2]\n"x"\n3')

    assert list(iter_json_documents(stream)) == ['{"a": 1}', "[2]", '"x"', "3"]


def test_iter_json_documents_across_chunk_boundaries():
    stream = io.StringIO("12345 [1, 2]")

    assert list(iter_json_documents(stream, chunk_size=3)) == ["12345", "[1, 2]"]


def test_iter_json_documents_reports_document_and_offset():
    with pytest.raises(CodecError) as excinfo:
        list(iter_json_documents(io.StringIO('1 {"a": }')))

    assert excinfo.value.document == 1
    assert excinfo.value.offset == 8


def test_read_from_json_to_yaml_writer():
    out = io.StringIO()

    values, errors = _run(
        read_from(io.StringIO('{"a": 1}\n[2]\n'), Format.JSON),
        write_to(out, Format.YAML, close=False),
    )

    assert values == []
    assert errors == []
    assert out.getvalue() == "a: 1\n---\n- 2\n"


def test_read_from_closes_reader_unless_asked_not_to():
    closed = io.StringIO("a: 1\n")
    kept = io.StringIO("b: 2\n")

    values, errors = _run(read_from(closed, "yaml"), read_from(kept, "yaml", close=False))

    assert errors == []
    assert values == ['{"a":1}', '{"b":2}']
    assert closed.closed
    assert not kept.closed


def test_write_to_json_writes_one_compact_document_per_line_and_closes():
    out = _KeepOnClose()
    items = [RawValue('{"a": [1, 2]}'), Value.of(Map.of("b", None)), "x"]

    _, errors = _run(_emit_all(items), write_to(out, "json"))

    assert errors == []
    assert out.closed
    assert out.final == '{"a":[1,2]}\n{"b":null}\n"x"\n'


def _emit_all(items):
    def _emit(stream):
        for item in items:
            if not stream.push(item):
                return

    return producer(_emit, name="emit")


def test_write_to_yaml_separates_documents():
    out = io.StringIO()

    _, errors = _run(_emit_all([Map.of("a", 1), Map.of("b", 2)]), write_to(out, "y", close=False))

    assert errors == []
    assert out.getvalue() == "a: 1\n---\nb: 2\n"


def test_read_file_detects_format_and_tags_errors(tmp_path):
    good = tmp_path / "good.json"
    good.write_text('{"z": 1, "a": 2}\n', encoding="utf-8")
    bad = tmp_path / "bad.yaml"
    bad.write_text("a: [1\n", encoding="utf-8")

    values, errors = _run(read_files(str(good), InputFile(str(bad))))

    assert values == ['{"z": 1, "a": 2}']
    assert len(errors) == 1
    assert isinstance(errors[0], CodecError)
    assert errors[0].source == str(bad)
    assert str(bad) in str(errors[0])


def test_read_file_missing_path_is_stream_io_error(tmp_path):
    missing = tmp_path / "missing.yaml"

    values, errors = _run(read_file(str(missing)))

    assert values == []
    assert len(errors) == 1
    assert isinstance(errors[0], StreamIOError)
    assert isinstance(errors[0], OSError)


def test_read_file_dash_reads_stdin_without_closing(monkeypatch):
    stdin = io.StringIO("a: 1\n")
    monkeypatch.setattr("sys.stdin", stdin)

    values, errors = _run(read_file("-"))

    assert errors == []
    assert values == ['{"a":1}']
    assert not stdin.closed


def test_read_file_forced_format_overrides_extension(tmp_path):
    path = tmp_path / "data.yaml"
    path.write_text('{"a":1}{"b":2}', encoding="utf-8")

    collected: list = []
    values, errors = _run(read_file(str(path), Format.JSON), collect(collected))

    assert errors == []
    assert values == []
    assert collected == ['{"a":1}', '{"b":2}']


def test_codec_error_message_includes_location():
    exc = CodecError("Invalid JSON: Expecting value", source="a.json", document=2, offset=10)

    assert str(exc) == "a.json: Invalid JSON: Expecting value (document=2, offset=10)"


@pytest.mark.parametrize("text", ['{"a": NaN}\n', "[1, Infinity]", "-Infinity"])
def test_iter_json_documents_rejects_non_finite_constants(text):
    with pytest.raises(CodecError, match=r"is not allowed") as excinfo:
        list(iter_json_documents(io.StringIO(text)))

    assert excinfo.value.document == 0
    assert excinfo.value.offset == 0


def test_read_file_non_finite_json_fails_in_reader(tmp_path):
    path = tmp_path / "nan.json"
    path.write_text('{"ok": 1}\n{"a": NaN}\n{"never": 2}\n', encoding="utf-8")
    out = io.StringIO()

    _, errors = _run(read_file(str(path)), write_to(out, "json", close=False))

    assert out.getvalue() == '{"ok":1}\n'
    assert len(errors) == 1
    assert isinstance(errors[0], CodecError)
    assert errors[0].document == 1
    assert errors[0].source == str(path)


@pytest.mark.parametrize("name", ["bad.json", "bad.yaml"])
def test_read_file_invalid_utf8_is_codec_error(tmp_path, name):
    path = tmp_path / name
    path.write_bytes(b'{"a": "\xff\xfe"}\n')

    values, errors = _run(read_file(str(path)))

    assert values == []
    assert len(errors) == 1
    assert isinstance(errors[0], CodecError)
    assert "Invalid UTF-8" in str(errors[0])
    assert errors[0].document == 0


def test_iter_json_documents_offset_counts_bytes():
    with pytest.raises(CodecError) as excinfo:
        list(iter_json_documents(io.StringIO('"héllo" {"é": ]')))

    assert excinfo.value.document == 1
    assert excinfo.value.offset == 16


def test_iter_json_documents_stops_at_early_error_without_reading_everything():
    text = "[1, }" + " 1" * 500
    stream = io.StringIO(text)

    with pytest.raises(CodecError) as excinfo:
        list(iter_json_documents(stream, chunk_size=64))

    assert excinfo.value.offset == 4
    assert stream.tell() < len(text)


def test_iter_json_documents_long_string_across_many_chunks():
    body = "x" * 5000
    stream = io.StringIO(f'"{body}"\n{{"k": [1, 2]}}')

    assert list(iter_json_documents(stream, chunk_size=7)) == [f'"{body}"', '{"k": [1, 2]}']
