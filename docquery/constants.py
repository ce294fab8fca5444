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

from typing import Any, Dict

DocumentType = Dict[str, Any]
CriteriaType = Dict[str, Any]
ProjectionType = Dict[str, Any]
SortType = Dict[str, Any]
ChoiceType = Dict[str, Any]


class SortMode:
    """
    Admitted values for the directions in a `sort` specification,
    e.g. `cursor.sort({"title": SortMode.ASCENDING})`.
    """

    def __init__(self) -> None:
        raise NotImplementedError

    ASCENDING = 1
    DESCENDING = -1


class SafeFor:
    """
    Admitted values for the `safe_for` attribute of a filter, which decides
    whether `query_to_filters` may apply the filter from a user-supplied query.
    """

    def __init__(self) -> None:
        raise NotImplementedError

    PUBLIC = "public"
    MANAGE = "manage"
