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


"""Models for TypeScript project configuration documents.

``tsconfig.json`` files are JSONC: comments and trailing commas are allowed.
They are parsed with ``json5`` and validated with ``TsconfigDocument``, which
keeps unknown top-level keys and treats ``compilerOptions`` as an opaque bag.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

import json5
from pydantic import BaseModel, ConfigDict, Field, JsonValue, ValidationError, field_validator

from tscfiles._internal.exceptions import ConfigInvalidError

if TYPE_CHECKING:
    from pathlib import Path


class TsconfigDocument(BaseModel):
    """A single, unmerged ``tsconfig.json`` document.

    Attributes:
        extends: Base configuration reference(s), as written.
        compiler_options: Raw ``compilerOptions`` mapping.
        files: Explicit file list relative to the declaring document.
        include: Include patterns, or ``None`` when not declared.
        exclude: Exclude patterns, or ``None`` when not declared.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="allow", populate_by_name=True)

    extends: str | list[str] | None = None
    compiler_options: dict[str, JsonValue] = Field(default_factory=dict, alias="compilerOptions")
    files: list[str] | None = None
    include: list[str] | None = None
    exclude: list[str] | None = None

    @field_validator("compiler_options", mode="before")
    @classmethod
    def _default_options(cls, value: object) -> object:
        return {} if value is None else value

    @field_validator("extends")
    @classmethod
    def _non_empty_extends(cls, value: str | list[str] | None) -> str | list[str] | None:
        entries = [value] if isinstance(value, str) else (value or [])
        if any(not entry.strip() for entry in entries):
            message = "extends entries must be non-empty strings"
            raise ValueError(message)
        return value

    @property
    def extends_list(self) -> list[str]:
        """Return ``extends`` as a list, in merge order."""
        if self.extends is None:
            return []
        if isinstance(self.extends, str):
            return [self.extends]
        return list(self.extends)


def parse_tsconfig_text(text: str, path: Path) -> TsconfigDocument:
    """Parse and validate JSONC text as a ``tsconfig.json`` document.

    Args:
        text: Raw document text.
        path: Source path, used for error messages.

    Returns:
        The validated document. Blank documents are treated as ``{}``.

    Raises:
        ConfigInvalidError: If the text is not valid JSONC or not an object of
            the expected shape.
    """
    if not text.strip():
        return TsconfigDocument()
    try:
        raw: object = json5.loads(text)
    except ValueError as exc:
        raise ConfigInvalidError(path, f"malformed JSON ({exc})") from exc
    if not isinstance(raw, dict):
        raise ConfigInvalidError(path, "top-level value must be an object")
    try:
        return TsconfigDocument.model_validate(raw)
    except ValidationError as exc:
        raise ConfigInvalidError(path, exc) from exc


def read_tsconfig(path: Path) -> TsconfigDocument:
    """Read a ``tsconfig.json`` document from disk.

    Args:
        path: Absolute path of the document.

    Returns:
        The validated document.

    Raises:
        ConfigInvalidError: If the file cannot be read or parsed.
    """
    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigInvalidError(path, exc) from exc
    return parse_tsconfig_text(text, path)


__all__ = ["TsconfigDocument", "parse_tsconfig_text", "read_tsconfig"]
