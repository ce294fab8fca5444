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

import copy
import logging
import uuid
from typing import Any, Iterable

from typing_extensions import override

from docquery.constants import CriteriaType, DocumentType, ProjectionType, SortType
from docquery.data.utils.document_paths import expand_arrays, extract_path_values
from docquery.data.utils.matching import (
    find_text_search,
    match_document,
    project_document,
    sort_documents,
    text_score,
    values_equal,
)
from docquery.exceptions import DuplicateKeyException
from docquery.settings.defaults import DUPLICATE_KEY_ERROR_CODE

logger = logging.getLogger(__name__)


class _MemoryData:
    """The document list shared by the sync and async faces of a store."""

    def __init__(self, documents: Iterable[DocumentType] | None = None) -> None:
        self.documents: list[DocumentType] = []
        for document in documents or []:
            self.insert(document)

    def insert(self, document: DocumentType) -> Any:
        stored = copy.deepcopy(document)
        if "_id" not in stored:
            stored["_id"] = uuid.uuid4().hex
        if any(values_equal(doc["_id"], stored["_id"]) for doc in self.documents):
            raise DuplicateKeyException(
                f"A document with _id '{stored['_id']}' exists already.",
                code=DUPLICATE_KEY_ERROR_CODE,
                key=stored["_id"],
            )
        self.documents.append(stored)
        return stored["_id"]

    def run_find(
        self,
        criteria: CriteriaType,
        projection: ProjectionType | None,
        sort: SortType | None,
        skip: int,
        limit: int,
    ) -> list[DocumentType]:
        phrase = find_text_search(criteria)
        matches = [doc for doc in self.documents if match_document(doc, criteria)]
        scores: dict[int, float] | None = None
        if phrase is not None:
            scores = {id(doc): text_score(doc, phrase) for doc in matches}
        if sort:
            matches = sort_documents(matches, sort, scores)
        matches = matches[skip:]
        if limit > 0:
            matches = matches[:limit]
        return [
            project_document(
                copy.deepcopy(doc),
                projection,
                None if scores is None else scores[id(doc)],
            )
            for doc in matches
        ]

    def run_count(self, criteria: CriteriaType) -> int:
        find_text_search(criteria)
        return sum(1 for doc in self.documents if match_document(doc, criteria))

    def run_distinct(self, field: str, criteria: CriteriaType) -> list[Any]:
        find_text_search(criteria)
        values: list[Any] = []
        for doc in self.documents:
            if not match_document(doc, criteria):
                continue
            for value in expand_arrays(extract_path_values(doc, field)):
                if isinstance(value, list):
                    continue
                if not any(values_equal(value, seen) for seen in values):
                    values.append(copy.deepcopy(value))
        return values


class MemoryFind:
    """
    A lazy query on a memory store. As with a pymongo cursor, `skip`, `limit`
    and `sort` may be chained in any order: sorting always happens first.
    Nothing is evaluated until `to_list` is called.
    """

    def __init__(
        self,
        data: _MemoryData,
        criteria: CriteriaType,
        projection: ProjectionType | None = None,
    ) -> None:
        self._data = data
        self._criteria = criteria
        self._projection = projection
        self._sort: SortType | None = None
        self._skip = 0
        self._limit = 0

    def skip(self, skip: int) -> MemoryFind:
        self._skip = skip
        return self

    def limit(self, limit: int) -> MemoryFind:
        self._limit = limit
        return self

    def sort(self, sort: SortType) -> MemoryFind:
        self._sort = sort
        return self

    def to_list(self) -> list[DocumentType]:
        return self._data.run_find(
            self._criteria, self._projection, self._sort, self._skip, self._limit
        )


class AsyncMemoryFind(MemoryFind):
    @override
    async def to_list(self) -> list[DocumentType]:  # type: ignore[override]
        return self._data.run_find(
            self._criteria, self._projection, self._sort, self._skip, self._limit
        )


class MemoryStore:
    """
    A document store keeping its documents in a Python list, with a query
    engine supporting the subset of MongoDB criteria, projection and sort
    syntax produced by the cursors (including text search and text score).

    Suitable for tests and for small embedded datasets. Documents are
    deep-copied on the way in and on the way out.

    Args:
        name: a name for the store, used in log messages.
        documents: an optional iterable of documents to insert at creation.

    Example:
        >>> store = MemoryStore(documents=[{"_id": "a", "title": "Apple"}])
        >>> store.find({"title": "Apple"}).to_list()
        [{'_id': 'a', 'title': 'Apple'}]
        >>> store.count({})
        1
    """

    def __init__(
        self,
        name: str = "docs",
        documents: Iterable[DocumentType] | None = None,
        *,
        _data: _MemoryData | None = None,
    ) -> None:
        self.name = name
        self._data = _data if _data is not None else _MemoryData(documents)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(name="{self.name}")'

    def to_async(self) -> AsyncMemoryStore:
        """Return an async store sharing the very same documents."""

        return AsyncMemoryStore(self.name, _data=self._data)

    def insert_one(self, document: DocumentType) -> Any:
        """
        Insert a document, assigning it a random `_id` if it has none.

        Returns:
            the `_id` of the inserted document.

        Raises:
            DuplicateKeyException: if the `_id` is taken already.
        """

        inserted_id = self._data.insert(document)
        logger.debug(f"inserted document {inserted_id!r} into {self.name}")
        return inserted_id

    def insert_many(self, documents: Iterable[DocumentType]) -> list[Any]:
        return [self.insert_one(document) for document in documents]

    def find(
        self,
        criteria: CriteriaType,
        projection: ProjectionType | None = None,
    ) -> MemoryFind:
        return MemoryFind(self._data, criteria, projection)

    def count(self, criteria: CriteriaType) -> int:
        return self._data.run_count(criteria)

    def distinct(self, field: str, criteria: CriteriaType) -> list[Any]:
        return self._data.run_distinct(field, criteria)


class AsyncMemoryStore:
    """
    The asynchronous counterpart of `MemoryStore`: `count`, `distinct` and
    the `to_list` of a find are coroutines. See `MemoryStore` for details.
    """

    def __init__(
        self,
        name: str = "docs",
        documents: Iterable[DocumentType] | None = None,
        *,
        _data: _MemoryData | None = None,
    ) -> None:
        self.name = name
        self._data = _data if _data is not None else _MemoryData(documents)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(name="{self.name}")'

    def to_sync(self) -> MemoryStore:
        """Return a sync store sharing the very same documents."""

        return MemoryStore(self.name, _data=self._data)

    async def insert_one(self, document: DocumentType) -> Any:
        inserted_id = self._data.insert(document)
        logger.debug(f"inserted document {inserted_id!r} into {self.name}")
        return inserted_id

    async def insert_many(self, documents: Iterable[DocumentType]) -> list[Any]:
        return [await self.insert_one(document) for document in documents]

    def find(
        self,
        criteria: CriteriaType,
        projection: ProjectionType | None = None,
    ) -> AsyncMemoryFind:
        return AsyncMemoryFind(self._data, criteria, projection)

    async def count(self, criteria: CriteriaType) -> int:
        return self._data.run_count(criteria)

    async def distinct(self, field: str, criteria: CriteriaType) -> list[Any]:
        return self._data.run_distinct(field, criteria)
