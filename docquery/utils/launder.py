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

"""
Functions turning untrusted input (such as query-string values) into values
that filters can accept. They never raise: bad input yields a fallback value.
"""

from __future__ import annotations

from typing import Any

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}
_NULL_STRINGS = {"", "null", "any", "none"}


def launder_string(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def launder_strings(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [launder_string(item) for item in value]


def launder_integer(
    value: Any,
    default: int = 0,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    """
    Launder an integer, clamping it to the [minimum, maximum] range.

    Example:
        >>> launder_integer("12", minimum=1)
        12
        >>> launder_integer("x", default=1, minimum=1)
        1
        >>> launder_integer("-5", minimum=0)
        0
    """

    result: int
    if isinstance(value, bool):
        result = default
    elif isinstance(value, int):
        result = value
    elif isinstance(value, float):
        result = int(value)
    elif isinstance(value, str):
        try:
            result = int(value.strip())
        except ValueError:
            result = default
    else:
        result = default
    if minimum is not None and result < minimum:
        result = minimum
    if maximum is not None and result > maximum:
        result = maximum
    return result


def launder_boolean(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return default


def launder_boolean_or_none(value: Any) -> bool | None:
    """
    Launder a three-state flag: True, False, or None for "either".
    Unrecognized input yields None.
    """

    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _NULL_STRINGS:
            return None
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None
