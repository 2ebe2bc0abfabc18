# Copyright 2025 CrownOps Engineering
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""Canonical JSON types and helpers used across tscfiles.

This module defines the JSON value shapes and generic helpers for working
with JSON-compatible data: reading ``package.json`` manifests, rendering the
ephemeral configuration documents and serialising structured log records.
It intentionally has no dependencies on logging or configuration layers to
keep the dependency graph simple and acyclic.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import TypeAlias, cast

from pydantic import JsonValue

__all__ = [
    "JSONMapping",
    "JSONValue",
    "as_mapping",
    "as_str",
    "dump_json",
    "normalize_enums_for_json",
    "read_json_file",
]

JSONValue: TypeAlias = JsonValue
JSONMapping = dict[str, JsonValue]


def read_json_file(path: Path) -> JSONMapping:
    """Read a strict JSON document and return it as a mapping.

    Args:
        path: JSON file to read (for example a ``package.json``).

    Returns:
        Parsed mapping, or an empty mapping when the document is not an object.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the content is not valid JSON.
    """
    return as_mapping(json.loads(path.read_text(encoding="utf-8")))


def dump_json(payload: JSONMapping) -> str:
    """Serialise a mapping with stable two-space indentation.

    Args:
        payload: JSON-compatible mapping.

    Returns:
        Pretty printed JSON text terminated by a newline.
    """
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def as_mapping(value: object) -> JSONMapping:
    """Return `value` as a JSON mapping if it is a dict, else an empty mapping.

    Args:
        value: Arbitrary value to convert.

    Returns:
        A `dict` when `value` is already a mapping, otherwise an empty mapping.
    """
    return cast("JSONMapping", value) if isinstance(value, dict) else {}


def as_str(value: object, default: str = "") -> str:
    """Return `value` as a string if already a string, else `default`.

    Args:
        value: Arbitrary value to convert.
        default: Fallback string to return when `value` is not a string.

    Returns:
        The original string value or the `default` fallback.
    """
    if isinstance(value, str):
        return value
    return default


def normalize_enums_for_json(value: object) -> JSONValue:
    """Recursively convert Enum keys/values to their string payloads for JSON serialisation.

    Args:
        value: Arbitrary Python object hierarchy that may include `Enum`
            instances, mappings, or sequences.

    Returns:
        A JSON-compatible structure (built from `dict`/`list`/primitives)
        with all enum keys and values replaced by their `.value` payloads.
    """

    def _convert(obj: object) -> JSONValue:
        if isinstance(obj, Enum):
            return cast("JSONValue", obj.value)
        if isinstance(obj, dict):
            mapping_obj = cast("dict[object, object]", obj)
            result: dict[str, JSONValue] = {}
            for key, raw_val in mapping_obj.items():
                norm_key = str(key.value) if isinstance(key, Enum) else str(key)
                result[norm_key] = _convert(raw_val)
            return cast("JSONValue", result)
        if isinstance(obj, (list, tuple)):
            items = cast("list[object] | tuple[object, ...]", obj)
            return cast("JSONValue", [_convert(item) for item in items])
        if isinstance(obj, (str, int, float, bool)) or obj is None:
            return cast("JSONValue", obj)
        return cast("JSONValue", str(obj))

    return _convert(value)
