# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

from typing import Any, Iterable

FIELD_NAME_SEGMENT_SEPARATOR = "."
MISSING = object()


def split_field_path(field_path: str) -> list[str]:
    """
    Split a dotted field path into its segments, refusing empty segments.

    Example:
        >>> split_field_path("a.b.0")
        ['a', 'b', '0']
    """

    segments = field_path.split(FIELD_NAME_SEGMENT_SEPARATOR)
    if any(segment == "" for segment in segments):
        raise ValueError(
            f"Field path specification cannot be empty or have empty segments: "
            f"'{field_path}'"
        )
    return segments


def _maybe_valid_list_index(segment: str) -> int | None:
    # '0', '1' is good. '00', '01', '-30' are not.
    try:
        index = int(segment)
        if index >= 0 and segment == str(index):
            return index
        else:
            return None
    except ValueError:
        return None


def _extract(segments: list[str], value: Any) -> Iterable[Any]:
    if segments == []:
        yield value
        return
    segment, rest = segments[0], segments[1:]
    if isinstance(value, dict):
        if segment in value:
            yield from _extract(rest, value[segment])
        return
    elif isinstance(value, list):
        index = _maybe_valid_list_index(segment)
        if index is not None:
            if len(value) > index:
                yield from _extract(rest, value[index])
        else:
            # auto-unroll of lists
            for item in value:
                yield from _extract(segments, item)
        return
    else:
        # the path is deeper than the document. Nothing to extract.
        return


def extract_path_values(document: dict[str, Any], field_path: str) -> list[Any]:
    """
    Collect the values found at a dotted path in a document, unrolling lists
    met along the way. The values themselves are returned as they are: a list
    at the end of the path is one value (see `expand_arrays`).

    Returns:
        the (possibly empty) list of values reached by the path.
    """

    return list(_extract(split_field_path(field_path), document))


def expand_arrays(values: Iterable[Any]) -> list[Any]:
    """Expand each list among the values into its items, keeping the lists too."""

    expanded: list[Any] = []
    for value in values:
        if isinstance(value, list):
            expanded.extend(value)
        expanded.append(value)
    return expanded


def get_path_value(document: dict[str, Any], field_path: str) -> Any:
    """
    Follow a dotted path through nested dicts only and return the value found,
    or the MISSING sentinel if the path cannot be followed.
    """

    value: Any = document
    for segment in split_field_path(field_path):
        if isinstance(value, dict) and segment in value:
            value = value[segment]
        else:
            return MISSING
    return value


def set_path_value(document: dict[str, Any], field_path: str, value: Any) -> None:
    """Set a value at a dotted path, creating intermediate dicts as needed."""

    segments = split_field_path(field_path)
    target = document
    for segment in segments[:-1]:
        target = target.setdefault(segment, {})
    target[segments[-1]] = value
