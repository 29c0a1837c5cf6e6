"""PyYAML loader/dumper that keep mapping order and literal numbers."""

from __future__ import annotations

from typing import IO, Any, Iterator

import yaml
from yaml.representer import RepresenterError

from ycat.errors import EncodeError
from ycat.values import Map, Number, RawValue, Value

_DOCUMENT_END = "...\n"


class YamlLoader(yaml.SafeLoader):
    """Safe loader building `Map` for every mapping; timestamps stay text."""


def _construct_map(loader: YamlLoader, node: yaml.MappingNode) -> Map:
    loader.flatten_mapping(node)
    return Map(
        (loader.construct_object(key_node, deep=True), loader.construct_object(value_node, deep=True))
        for key_node, value_node in node.value
    )


def _construct_text(loader: YamlLoader, node: yaml.ScalarNode) -> str:
    return str(loader.construct_scalar(node))


YamlLoader.add_constructor(yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_map)
YamlLoader.add_constructor("tag:yaml.org,2002:timestamp", _construct_text)
YamlLoader.add_constructor("tag:yaml.org,2002:binary", _construct_text)


class YamlDumper(yaml.SafeDumper):
    def ignore_aliases(self, data: Any) -> bool:
        return True


def _represent_map(dumper: YamlDumper, data: Map) -> yaml.MappingNode:
    return dumper.represent_mapping(yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, list(data))


def _represent_number(dumper: YamlDumper, data: Number) -> yaml.ScalarNode:
    if data.is_integer():
        return dumper.represent_scalar("tag:yaml.org,2002:int", str(data))
    return dumper.represent_float(float(data))


def _represent_raw(dumper: YamlDumper, data: RawValue) -> yaml.Node:
    return dumper.represent_data(data.decode().data)


def _represent_value(dumper: YamlDumper, data: Value) -> yaml.Node:
    return dumper.represent_data(data.data)


YamlDumper.add_representer(Map, _represent_map)
YamlDumper.add_representer(Number, _represent_number)
YamlDumper.add_representer(RawValue, _represent_raw)
YamlDumper.add_representer(Value, _represent_value)


def encode_yaml(x: Any) -> str:
    """Encode one YAML document body; null is the empty body."""

    if isinstance(x, (Value, RawValue)):
        native = x.to_yaml_native()
    elif isinstance(x, Number):
        native = x.to_native()
    else:
        native = x
    if native is None:
        return ""
    try:
        text = yaml.dump(
            native,
            Dumper=YamlDumper,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )
    except RepresenterError as exc:
        raise EncodeError(f"Cannot encode {type(native).__name__} as YAML: {exc}") from exc
    # Plain top-level scalars get an explicit end marker.
    if text.endswith("\n" + _DOCUMENT_END):
        text = text[: -len(_DOCUMENT_END)]
    return text


def load_documents(stream: IO[str] | str) -> Iterator[Any]:
    """Lazily yield the native tree of each YAML document in `stream`."""

    return yaml.load_all(stream, Loader=YamlLoader)
