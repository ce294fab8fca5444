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

# Environment variable that, when set to a truthy value, turns on
# the logging of the final criteria of every query.
LOG_ALL_QUERIES_ENV_VAR = "DOCQUERY_LOG_ALL_QUERIES"
TRUTHY_ENV_VALUES = {"1", "true", "yes", "on"}

# Finalization
DEFAULT_MAX_FINALIZE_PASSES = 16

# Permission checked when the `permission` filter is never called
DEFAULT_PERMISSION = "view"
# Suffix applied to unqualified permission names when no doc type is set
DEFAULT_PERMISSION_TYPE = "doc"

# Sort used when neither `sort` nor `default_sort` are given
DEFAULT_SORT = {"title": 1}
SORTIFIED_FIELD_SUFFIX = "Sortified"
DEFAULT_SORTIFIED_FIELDS = frozenset({"title"})

# Text search
TEXT_SCORE_FIELD = "textScore"
HIGH_SEARCH_TEXT_FIELD = "highSearchText"
HIGH_SEARCH_WORDS_FIELD = "highSearchWords"
LOW_SEARCH_TEXT_FIELD = "lowSearchText"
SEARCHIFY_WORD_GAP = ".{0,20}?"
HIGH_SEARCH_TEXT_WEIGHT = 10
LOW_SEARCH_TEXT_WEIGHT = 1

# An _id no document will ever have: criteria on it match nothing
NEVER_MATCH_ID = "__iNeverMatch"

# Key property used by `explicit_order` when none is given
DEFAULT_EXPLICIT_ORDER_PROPERTY = "_id"

# Values for the `safe_for` attribute of filters
SAFE_FOR_PUBLIC = "public"
SAFE_FOR_MANAGE = "manage"

# Store error codes that signal a unique-constraint violation.
# 11000/11001 are the MongoDB server codes, 12582 the mongos one.
DUPLICATE_KEY_ERROR_CODE = 11000
UNIQUE_CONSTRAINT_ERROR_CODES = frozenset({11000, 11001, 12582})
