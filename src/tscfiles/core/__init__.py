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


"""Core type definitions and data structures for tscfiles.

- Model types: Enums for severities, compilers, package managers and logging
- Type aliases: Common type aliases used across the codebase
- Core types: Dataclasses for diagnostics, file groups and check results
"""

from __future__ import annotations

from . import model_types, type_aliases, types

__all__ = [
    "model_types",
    "type_aliases",
    "types",
]
