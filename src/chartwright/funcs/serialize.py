"""YAML and JSON conversion of value trees."""

from __future__ import annotations

from typing import Any

import msgspec
import yaml

from chartwright.errors import DecodeError, InvalidArgumentError
from chartwright.funcs.coerce import as_str
from chartwright.funcs.registry import FunctionLibrary
from chartwright.values import to_plain

library = FunctionLibrary()

_NO_WRAP = 1 << 30


class ManifestDumper(yaml.SafeDumper):
    """SafeDumper emitting multi-line strings as literal blocks."""


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


ManifestDumper.add_representer(str, _represent_str)


def dump_yaml(value: Any) -> str:
    """Block-style YAML, 2-space indent, keys sorted, no trailing newline."""
    try:
        text = yaml.dump(
            to_plain(value),
            Dumper=ManifestDumper,
            default_flow_style=False,
            sort_keys=True,
            allow_unicode=True,
            indent=2,
            width=_NO_WRAP,
        )
    except yaml.YAMLError as exc:
        raise InvalidArgumentError(f"toYaml: {exc}", function="toYaml") from exc
    if text.endswith("\n...\n"):
        text = text[: -len("...\n")]
    return text[:-1] if text.endswith("\n") else text


def load_yaml(text: str, func: str = "fromYaml") -> Any:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DecodeError(f"{func}: failed to parse YAML: {exc}", function=func) from exc
    return {} if data is None else data


@library.register("toYaml", 1)
def to_yaml(value: Any) -> str:
    return dump_yaml(value)


@library.register("fromYaml", 1)
def from_yaml(value: Any) -> Any:
    return load_yaml(as_str(value, "fromYaml"))


@library.register("toJson", 1)
def to_json(value: Any) -> str:
    """Compact JSON; mapping keys keep their insertion order."""
    try:
        return msgspec.json.encode(to_plain(value)).decode("utf-8")
    except (TypeError, msgspec.EncodeError) as exc:
        raise InvalidArgumentError(f"toJson: {exc}", function="toJson") from exc


@library.register("toPrettyJson", 1)
def to_pretty_json(value: Any) -> str:
    return msgspec.json.format(to_json(value), indent=2)


@library.register("fromJson", 1)
def from_json(value: Any) -> Any:
    try:
        return msgspec.json.decode(as_str(value, "fromJson"))
    except msgspec.DecodeError as exc:
        raise DecodeError(f"fromJson: {exc}", function="fromJson") from exc
