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
The two-phase autocomplete performed when finalizing a cursor.

Phase one looks up, among the documents the cursor would otherwise match,
the distinct high-priority words starting with the typed words. Phase two
rewrites the cursor into a regular text search for the words found (asking
for a new finalization pass, so that projection and sort see the search),
or into a query matching nothing if no word was found.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from docquery.data.cursors.filters import FinalizeOutcome
from docquery.settings.defaults import HIGH_SEARCH_TEXT_FIELD, HIGH_SEARCH_WORDS_FIELD
from docquery.utils.text import searchify, sortify, split_words

if TYPE_CHECKING:
    from docquery.data.cursors.cursor import BaseDocCursor
    from docquery.data.cursors.doc_cursor import AsyncDocCursor, DocCursor


logger = logging.getLogger(__name__)


def autocomplete_words(phrase: Any) -> list[str]:
    """The sortified words of an autocomplete phrase (empty for no phrase)."""

    if not isinstance(phrase, str):
        return []
    return split_words(sortify(phrase))


def _word_lookup_cursor(cursor: BaseDocCursor, words: list[str]) -> Any:
    lookup = cursor.clone().unset("autocomplete")
    clauses: list[dict[str, Any]] = [
        {HIGH_SEARCH_WORDS_FIELD: searchify(word, prefix=True)} for word in words
    ]
    clauses.append({HIGH_SEARCH_TEXT_FIELD: searchify(" ".join(words))})
    return lookup.criteria({"$and": [lookup.get("criteria") or {}, *clauses]})


def _rewrite_cursor(
    cursor: BaseDocCursor,
    typed_words: list[str],
    found_words: list[Any],
) -> FinalizeOutcome | None:
    words = [
        word
        for word in found_words
        if isinstance(word, str)
        and any(word.startswith(typed) for typed in typed_words)
    ]
    cursor.unset("autocomplete")
    if not words:
        logger.debug(f"autocomplete found no words for {typed_words}")
        cursor.and_({"_id": cursor.options.never_match_id})
        return None
    logger.debug(f"autocomplete turned {typed_words} into a search for {words}")
    cursor.search(" ".join(words))
    return FinalizeOutcome.REFINALIZE


def finalize_autocomplete(cursor: DocCursor) -> FinalizeOutcome | None:
    typed_words = autocomplete_words(cursor.get("autocomplete"))
    if not typed_words:
        return None
    lookup = _word_lookup_cursor(cursor, typed_words)
    found_words = lookup.to_distinct(HIGH_SEARCH_WORDS_FIELD)
    return _rewrite_cursor(cursor, typed_words, found_words)


async def async_finalize_autocomplete(
    cursor: AsyncDocCursor,
) -> FinalizeOutcome | None:
    typed_words = autocomplete_words(cursor.get("autocomplete"))
    if not typed_words:
        return None
    lookup = _word_lookup_cursor(cursor, typed_words)
    found_words = await lookup.to_distinct(HIGH_SEARCH_WORDS_FIELD)
    return _rewrite_cursor(cursor, typed_words, found_words)
