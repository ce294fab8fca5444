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

import os
from copy import deepcopy
from dataclasses import dataclass

from docquery.constants import SortType
from docquery.settings.defaults import (
    DEFAULT_MAX_FINALIZE_PASSES,
    DEFAULT_PERMISSION,
    DEFAULT_SORT,
    LOG_ALL_QUERIES_ENV_VAR,
    NEVER_MATCH_ID,
    TEXT_SCORE_FIELD,
    TRUTHY_ENV_VALUES,
)
from docquery.utils.unset import _UNSET, UnsetType


@dataclass
class QueryOptions:
    """
    The settings that govern how cursors build and run their queries.

    This class is used to override default settings when creating objects such
    as DocManager and the cursors it spawns. Values that are left unspecified
    keep the values inherited from the "spawner" object: see `FullQueryOptions`
    and its `with_override` method.

    Attributes:
        log_all_queries: if True, the final criteria of every query are logged
            at INFO level, as if the `log` filter were set on every cursor.
            Defaults to False, unless the DOCQUERY_LOG_ALL_QUERIES environment
            variable is set to a truthy value.
        max_finalize_passes: the maximum number of finalization passes (the first
            one plus all restarts requested by finalizers) before a cursor gives
            up with a CursorException. Defaults to 16.
        default_permission: the permission checked by the `permission` filter
            when it is never called or called with None. Defaults to "view".
        default_sort: the sort applied when no sort is specified and no text
            search is active. Defaults to `{"title": 1}`.
        text_score_field: the name of the projected field holding the text
            search score. Defaults to "textScore".
        never_match_id: an `_id` value guaranteed to match no document, used to
            build deliberately unsatisfiable criteria. Defaults to "__iNeverMatch".

    Example:
        >>> from docquery import DocManager, MemoryStore
        >>> from docquery.utils.query_options import QueryOptions
        >>> manager = DocManager(
        ...     store=MemoryStore(),
        ...     permissions=my_permissions,
        ...     options=QueryOptions(max_finalize_passes=4, log_all_queries=True),
        ... )
    """

    log_all_queries: bool | UnsetType = _UNSET
    max_finalize_passes: int | UnsetType = _UNSET
    default_permission: str | UnsetType = _UNSET
    default_sort: SortType | UnsetType = _UNSET
    text_score_field: str | UnsetType = _UNSET
    never_match_id: str | UnsetType = _UNSET


@dataclass
class FullQueryOptions(QueryOptions):
    """
    The settings that govern how cursors build and run their queries.

    This is the "full" version of the class, with the guarantee that all of its
    members have defined values. As such, this is what DocManager and the cursors
    have in their `.options` attribute -- as opposed to the (non-full)
    `QueryOptions` counterpart class: the latter admits "unset" attributes
    and is used to override specific settings.

    See `QueryOptions` for a description of the attributes.
    """

    log_all_queries: bool
    max_finalize_passes: int
    default_permission: str
    default_sort: SortType
    text_score_field: str
    never_match_id: str

    def __init__(
        self,
        *,
        log_all_queries: bool,
        max_finalize_passes: int,
        default_permission: str,
        default_sort: SortType,
        text_score_field: str,
        never_match_id: str,
    ) -> None:
        if max_finalize_passes < 1:
            raise ValueError("max_finalize_passes must be a positive integer.")
        QueryOptions.__init__(
            self,
            log_all_queries=log_all_queries,
            max_finalize_passes=max_finalize_passes,
            default_permission=default_permission,
            default_sort=default_sort,
            text_score_field=text_score_field,
            never_match_id=never_match_id,
        )

    def with_override(self, other: QueryOptions | None | UnsetType) -> FullQueryOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.

        Args:
            other: a not-necessarily-fully-specified options object. All its defined
                settings take precedence. None and _UNSET leave everything as is.
        """

        if other is None or isinstance(other, UnsetType):
            return self
        return FullQueryOptions(
            log_all_queries=(
                other.log_all_queries
                if not isinstance(other.log_all_queries, UnsetType)
                else self.log_all_queries
            ),
            max_finalize_passes=(
                other.max_finalize_passes
                if not isinstance(other.max_finalize_passes, UnsetType)
                else self.max_finalize_passes
            ),
            default_permission=(
                other.default_permission
                if not isinstance(other.default_permission, UnsetType)
                else self.default_permission
            ),
            default_sort=(
                deepcopy(other.default_sort)
                if not isinstance(other.default_sort, UnsetType)
                else self.default_sort
            ),
            text_score_field=(
                other.text_score_field
                if not isinstance(other.text_score_field, UnsetType)
                else self.text_score_field
            ),
            never_match_id=(
                other.never_match_id
                if not isinstance(other.never_match_id, UnsetType)
                else self.never_match_id
            ),
        )


def _log_all_queries_from_env() -> bool:
    env_value = os.environ.get(LOG_ALL_QUERIES_ENV_VAR, "")
    return env_value.strip().lower() in TRUTHY_ENV_VALUES


def defaultQueryOptions() -> FullQueryOptions:
    """
    Return the default FullQueryOptions object, based on the 'grand defaults'
    hardcoded in docquery and on the DOCQUERY_LOG_ALL_QUERIES environment variable.
    The environment is read at each invocation.
    """

    return FullQueryOptions(
        log_all_queries=_log_all_queries_from_env(),
        max_finalize_passes=DEFAULT_MAX_FINALIZE_PASSES,
        default_permission=DEFAULT_PERMISSION,
        default_sort=deepcopy(DEFAULT_SORT),
        text_score_field=TEXT_SCORE_FIELD,
        never_match_id=NEVER_MATCH_ID,
    )
