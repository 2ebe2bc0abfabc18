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

"""Common Hypothesis strategies for compiler output and project layouts."""

from __future__ import annotations

from hypothesis import strategies as st

_SEGMENT = st.from_regex(r"[a-z][a-z0-9_-]{0,7}", fullmatch=True)
_MESSAGE = st.from_regex(r"[A-Za-z][A-Za-z0-9 '.,:;{}<>-]{0,40}", fullmatch=True).map(str.rstrip)


def diagnostic_lines(max_size: int = 8) -> st.SearchStrategy[list[tuple[str, int, int, str, int, str]]]:
    """Return primary diagnostic lines as ``(file, line, column, severity, code, message)``."""
    entry = st.tuples(
        st.lists(_SEGMENT, min_size=1, max_size=3).map(lambda parts: "/".join(parts) + ".ts"),
        st.integers(min_value=1, max_value=99_999),
        st.integers(min_value=1, max_value=999),
        st.sampled_from(["error", "warning"]),
        st.integers(min_value=1000, max_value=99_999),
        _MESSAGE,
    )
    return st.lists(entry, max_size=max_size)


def package_layouts(max_packages: int = 4) -> st.SearchStrategy[dict[str, tuple[bool, list[str]]]]:
    """Return package name -> (has own tsconfig, source file names)."""
    files = st.lists(_SEGMENT.map(lambda name: f"{name}.ts"), min_size=1, max_size=4, unique=True)
    return st.dictionaries(_SEGMENT, st.tuples(st.booleans(), files), min_size=1, max_size=max_packages)
