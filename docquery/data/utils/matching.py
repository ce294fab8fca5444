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
Evaluation of MongoDB-style criteria, projections and sorts over plain
Python documents. This is the query engine of the in-memory store; it covers
the subset of the query language the cursor filters produce, plus the common
comparison operators.
"""

from __future__ import annotations

import datetime
import re
from functools import cmp_to_key
from typing import Any, Callable

from docquery.constants import CriteriaType, DocumentType, ProjectionType, SortType
from docquery.data.utils.document_paths import (
    MISSING,
    expand_arrays,
    extract_path_values,
    get_path_value,
    set_path_value,
)
from docquery.exceptions import StoreException
from docquery.settings.defaults import (
    HIGH_SEARCH_TEXT_FIELD,
    HIGH_SEARCH_TEXT_WEIGHT,
    LOW_SEARCH_TEXT_FIELD,
    LOW_SEARCH_TEXT_WEIGHT,
)
from docquery.utils.text import sortify, split_words

TEXT_OPERATOR = "$text"
META_OPERATOR = "$meta"
TEXT_SCORE_META = "textScore"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_rank(value: Any) -> int:
    # Loosely follows the MongoDB comparison order of BSON types
    if value is None or value is MISSING:
        return 0
    if _is_number(value):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, dict):
        return 3
    if isinstance(value, list):
        return 4
    if isinstance(value, bool):
        return 5
    if isinstance(value, (datetime.datetime, datetime.date)):
        return 6
    return 7


def compare_values(left: Any, right: Any) -> int:
    """Total order over values, first by type rank then by value."""

    l_rank, r_rank = _type_rank(left), _type_rank(right)
    if l_rank != r_rank:
        return -1 if l_rank < r_rank else 1
    if l_rank in {0, 3, 4, 7}:
        l_str, r_str = repr(left), repr(right)
        return (l_str > r_str) - (l_str < r_str)
    return (left > right) - (left < right)


def _comparable(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return True
    return (
        _type_rank(left) == _type_rank(right)
        and _type_rank(left) in {2, 5, 6}
    )


def values_equal(value: Any, expected: Any) -> bool:
    if isinstance(value, bool) or isinstance(expected, bool):
        return value is expected
    return bool(value == expected)


def _equals(candidates: list[Any], expected: Any) -> bool:
    if expected is None:
        # null matches both explicit nulls and missing fields
        return candidates == [] or any(value is None for value in candidates)
    return any(values_equal(value, expected) for value in expand_arrays(candidates))


def _matches_pattern(candidates: list[Any], pattern: re.Pattern[str]) -> bool:
    return any(
        isinstance(value, str) and pattern.search(value) is not None
        for value in expand_arrays(candidates)
    )


def _as_pattern(regex: Any, options: str = "") -> re.Pattern[str]:
    if isinstance(regex, re.Pattern):
        return regex
    flags = 0
    if "i" in options:
        flags |= re.IGNORECASE
    if "m" in options:
        flags |= re.MULTILINE
    if "s" in options:
        flags |= re.DOTALL
    return re.compile(str(regex), flags)


def _order_operator(op: Callable[[int], bool]) -> Callable[[list[Any], Any], bool]:
    def _check(candidates: list[Any], operand: Any) -> bool:
        return any(
            _comparable(value, operand) and op(compare_values(value, operand))
            for value in expand_arrays(candidates)
        )

    return _check


_ORDER_OPERATORS: dict[str, Callable[[list[Any], Any], bool]] = {
    "$gt": _order_operator(lambda c: c > 0),
    "$gte": _order_operator(lambda c: c >= 0),
    "$lt": _order_operator(lambda c: c < 0),
    "$lte": _order_operator(lambda c: c <= 0),
}


def _match_operators(
    document: DocumentType,
    field_path: str,
    candidates: list[Any],
    operators: dict[str, Any],
) -> bool:
    for operator, operand in operators.items():
        if operator == "$eq":
            if not _equals(candidates, operand):
                return False
        elif operator == "$ne":
            if _equals(candidates, operand):
                return False
        elif operator == "$in":
            if not any(_in_operand(candidates, item) for item in operand):
                return False
        elif operator == "$nin":
            if any(_in_operand(candidates, item) for item in operand):
                return False
        elif operator == "$exists":
            if bool(operand) != (candidates != []):
                return False
        elif operator in _ORDER_OPERATORS:
            if not _ORDER_OPERATORS[operator](candidates, operand):
                return False
        elif operator == "$regex":
            pattern = _as_pattern(operand, operators.get("$options", ""))
            if not _matches_pattern(candidates, pattern):
                return False
        elif operator == "$options":
            continue
        elif operator == "$not":
            if _match_condition(document, field_path, candidates, operand):
                return False
        elif operator == "$size":
            if not any(
                isinstance(value, list) and len(value) == operand
                for value in candidates
            ):
                return False
        else:
            raise StoreException(f"Unsupported query operator: {operator}")
    return True


def _in_operand(candidates: list[Any], item: Any) -> bool:
    if isinstance(item, re.Pattern):
        return _matches_pattern(candidates, item)
    return _equals(candidates, item)


def _is_operator_dict(condition: Any) -> bool:
    return (
        isinstance(condition, dict)
        and len(condition) > 0
        and all(isinstance(key, str) and key.startswith("$") for key in condition)
    )


def _match_condition(
    document: DocumentType,
    field_path: str,
    candidates: list[Any],
    condition: Any,
) -> bool:
    if isinstance(condition, re.Pattern):
        return _matches_pattern(candidates, condition)
    if _is_operator_dict(condition):
        return _match_operators(document, field_path, candidates, condition)
    return _equals(candidates, condition)


def text_score(document: DocumentType, phrase: str) -> float:
    """
    Score a document against a text search phrase: each search term found
    among the words of the high-priority text counts ten times as much as
    one found in the low-priority text. A score of zero means no match.
    """

    terms = set(split_words(sortify(phrase)))
    if not terms:
        return 0.0
    score = 0.0
    for field_name, weight in (
        (HIGH_SEARCH_TEXT_FIELD, HIGH_SEARCH_TEXT_WEIGHT),
        (LOW_SEARCH_TEXT_FIELD, LOW_SEARCH_TEXT_WEIGHT),
    ):
        text = document.get(field_name)
        if not isinstance(text, str):
            continue
        words = split_words(sortify(text))
        if not words:
            continue
        hits = sum(1 for word in words if word in terms)
        score += weight * hits / len(words)
    return score


def find_text_search(criteria: CriteriaType) -> str | None:
    """
    Locate the (only) text search clause in criteria, at the top level or
    within top-level `$and` clauses, and return its search phrase.
    More than one text clause is an error, as it would be for MongoDB.
    """

    found: list[str] = []

    def _visit(clause: CriteriaType) -> None:
        for key, value in clause.items():
            if key == TEXT_OPERATOR:
                found.append(value["$search"])
            elif key == "$and":
                for sub_clause in value:
                    _visit(sub_clause)

    _visit(criteria)
    if len(found) > 1:
        raise StoreException("Too many text expressions in the query criteria.")
    return found[0] if found else None


def match_document(document: DocumentType, criteria: CriteriaType) -> bool:
    """Tell whether a document satisfies the criteria."""

    for key, condition in criteria.items():
        if key == "$and":
            if not all(match_document(document, clause) for clause in condition):
                return False
        elif key == "$or":
            if not any(match_document(document, clause) for clause in condition):
                return False
        elif key == "$nor":
            if any(match_document(document, clause) for clause in condition):
                return False
        elif key == TEXT_OPERATOR:
            if text_score(document, condition["$search"]) <= 0:
                return False
        elif key.startswith("$"):
            raise StoreException(f"Unsupported top-level query operator: {key}")
        else:
            candidates = extract_path_values(document, key)
            if not _match_condition(document, key, candidates, condition):
                return False
    return True


def _is_meta_score(spec: Any) -> bool:
    return isinstance(spec, dict) and spec.get(META_OPERATOR) == TEXT_SCORE_META


def project_document(
    document: DocumentType,
    projection: ProjectionType | None,
    score: float | None = None,
) -> DocumentType:
    """
    Apply an inclusion or exclusion projection. `{"$meta": "textScore"}`
    entries receive the text score of the document.
    """

    if not projection:
        return document
    meta_fields = [key for key, spec in projection.items() if _is_meta_score(spec)]
    plain = {
        key: spec for key, spec in projection.items() if not _is_meta_score(spec)
    }
    inclusions = {key for key, spec in plain.items() if spec and key != "_id"}
    exclusions = {key for key, spec in plain.items() if not spec and key != "_id"}
    if inclusions and exclusions:
        raise StoreException("Cannot mix inclusion and exclusion in a projection.")
    result: DocumentType
    if inclusions:
        result = {}
        if plain.get("_id", True) and "_id" in document:
            result["_id"] = document["_id"]
        for field_path in inclusions:
            value = get_path_value(document, field_path)
            if value is not MISSING:
                set_path_value(result, field_path, value)
    else:
        result = dict(document)
        for field_path in exclusions:
            result.pop(field_path, None)
        if "_id" in plain and not plain["_id"]:
            result.pop("_id", None)
    for field_name in meta_fields:
        if score is None:
            raise StoreException(
                "A textScore projection requires a text search in the criteria."
            )
        result[field_name] = score
    return result


def sort_documents(
    documents: list[DocumentType],
    sort: SortType,
    scores: dict[int, float] | None = None,
) -> list[DocumentType]:
    """
    Sort documents by a (possibly multi-key) sort specification. Keys map to
    1 / -1, or to `{"$meta": "textScore"}` for a descending sort by score,
    in which case `scores` must map `id(document)` to the text score.
    """

    def _compare(left: DocumentType, right: DocumentType) -> int:
        for field_path, direction in sort.items():
            if _is_meta_score(direction):
                if scores is None:
                    raise StoreException(
                        "A textScore sort requires a text search in the criteria."
                    )
                l_score, r_score = scores[id(left)], scores[id(right)]
                result = (r_score > l_score) - (r_score < l_score)
            else:
                result = compare_values(
                    _sort_key(left, field_path, direction),
                    _sort_key(right, field_path, direction),
                )
                if direction == -1:
                    result = -result
            if result != 0:
                return result
        return 0

    return sorted(documents, key=cmp_to_key(_compare))


def _sort_key(document: DocumentType, field_path: str, direction: Any) -> Any:
    values = extract_path_values(document, field_path)
    if not values:
        return None
    flat = expand_arrays(values)
    scalars = [value for value in flat if not isinstance(value, list)] or flat
    # arrays sort by their smallest (ascending) or largest (descending) item
    ordered = sorted(scalars, key=cmp_to_key(compare_values))
    return ordered[-1] if direction == -1 else ordered[0]
