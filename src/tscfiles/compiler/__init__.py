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


"""Compiler discovery and execution."""

from __future__ import annotations

from .executor import CompilerExecutor, ExecutionOutput, compiler_arguments
from .locator import CompilerCandidate, CompilerLocator, alternate_incompatibilities
from .platforms import PlatformAdapter, PosixPlatform, WindowsPlatform, current_platform

__all__ = [
    "CompilerCandidate",
    "CompilerExecutor",
    "CompilerLocator",
    "ExecutionOutput",
    "PlatformAdapter",
    "PosixPlatform",
    "WindowsPlatform",
    "alternate_incompatibilities",
    "compiler_arguments",
    "current_platform",
]
