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
Text normalization shared by the `search` and `autocomplete` filters,
and by the in-memory store when it evaluates text predicates.
"""

from __future__ import annotations

import re

from slugify import slugify

from docquery.settings.defaults import SEARCHIFY_WORD_GAP


def sortify(text: str | None) -> str:
    """
    Turn a string into its comparable form: lower case, transliterated to
    ASCII, punctuation dropped and runs of whitespace collapsed to one space.

    Example:
        >>> sortify("  Héllo,   World! ")
        'hello world'
    """

    if not text:
        return ""
    return slugify(text, separator=" ")


def searchify(text: str, prefix: bool = False) -> re.Pattern[str]:
    """
    Turn a user-entered phrase into a regular expression over sortified text.

    Consecutive words must appear in the same order, with at least one space
    between them, but up to a few extra characters may be skipped in between.

    Args:
        text: the phrase as typed by the user.
        prefix: if True, the match must occur at the start of the text.

    Returns:
        a compiled pattern, suitable as the value of a criteria clause.
    """

    pattern = (" " + SEARCHIFY_WORD_GAP).join(
        re.escape(word) for word in split_words(sortify(text))
    )
    if prefix:
        pattern = "^" + pattern
    return re.compile(pattern)


def split_words(text: str) -> list[str]:
    return [word for word in text.split(" ") if word]
