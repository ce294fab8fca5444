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

from docquery.constants import DocumentType
from docquery.data.utils.document_paths import MISSING, get_path_value
from docquery.settings.defaults import DEFAULT_EXPLICIT_ORDER_PROPERTY


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_hashable(item) for item in value)
    if isinstance(value, dict):
        return tuple(sorted((key, _hashable(item)) for key, item in value.items()))
    return value


def order_by_key(
    keys: Iterable[Any],
    documents: Iterable[DocumentType],
    key_property: str = DEFAULT_EXPLICIT_ORDER_PROPERTY,
) -> list[DocumentType]:
    """
    Arrange documents in the order given by a list of keys.

    Documents are matched to keys through the value of `key_property` (a
    dotted path is accepted). Keys with no matching document are skipped, and
    so are documents whose key is not listed: the result length may differ
    from both inputs.

    Args:
        keys: the desired sequence of key values.
        documents: the documents to rearrange.
        key_property: the document property holding the key.

    Returns:
        a new list of documents.

    Example:
        >>> docs = [{"_id": "a"}, {"_id": "b"}, {"_id": "c"}]
        >>> order_by_key(["c", "a", "x"], docs)
        [{'_id': 'c'}, {'_id': 'a'}]
    """

    by_key: dict[Any, DocumentType] = {}
    for document in documents:
        value = get_path_value(document, key_property)
        if value is not MISSING:
            by_key[_hashable(value)] = document
    return [by_key[_hashable(key)] for key in keys if _hashable(key) in by_key]
