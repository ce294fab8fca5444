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
Adapters exposing pymongo collections as document stores.

pymongo is an optional dependency (`pip install docquery[mongo]`): these
adapters only rely on the collection methods, so the module imports fine
without it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from docquery.constants import CriteriaType, DocumentType, ProjectionType, SortType

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection
    from pymongo.asynchronous.cursor import AsyncCursor
    from pymongo.collection import Collection
    from pymongo.cursor import Cursor


def _sort_spec(sort: SortType) -> list[tuple[str, Any]]:
    # pymongo wants a list of pairs to preserve the key order
    return list(sort.items())


class PyMongoFind:
    """A thin wrapper around a pymongo `Cursor`."""

    def __init__(self, cursor: Cursor[DocumentType]) -> None:
        self._cursor = cursor

    def skip(self, skip: int) -> PyMongoFind:
        self._cursor = self._cursor.skip(skip)
        return self

    def limit(self, limit: int) -> PyMongoFind:
        self._cursor = self._cursor.limit(limit)
        return self

    def sort(self, sort: SortType) -> PyMongoFind:
        self._cursor = self._cursor.sort(_sort_spec(sort))
        return self

    def to_list(self) -> list[DocumentType]:
        return list(self._cursor)


class AsyncPyMongoFind:
    """A thin wrapper around a pymongo `AsyncCursor`."""

    def __init__(self, cursor: AsyncCursor[DocumentType]) -> None:
        self._cursor = cursor

    def skip(self, skip: int) -> AsyncPyMongoFind:
        self._cursor = self._cursor.skip(skip)
        return self

    def limit(self, limit: int) -> AsyncPyMongoFind:
        self._cursor = self._cursor.limit(limit)
        return self

    def sort(self, sort: SortType) -> AsyncPyMongoFind:
        self._cursor = self._cursor.sort(_sort_spec(sort))
        return self

    async def to_list(self) -> list[DocumentType]:
        return await self._cursor.to_list(None)


class PyMongoStore:
    """
    A document store backed by a pymongo `Collection`.

    Args:
        collection: the pymongo collection holding the documents. Text search
            requires a text index covering `highSearchText` (weight 10) and
            `lowSearchText` (weight 1) on the collection.

    Example:
        >>> from pymongo import MongoClient
        >>> collection = MongoClient()["site"]["docs"]
        >>> store = PyMongoStore(collection)
        >>> store.count({"type": "article"})
        12
    """

    def __init__(self, collection: Collection[DocumentType]) -> None:
        self.collection = collection
        self.name = collection.name

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(name="{self.name}")'

    def find(
        self,
        criteria: CriteriaType,
        projection: ProjectionType | None = None,
    ) -> PyMongoFind:
        return PyMongoFind(self.collection.find(criteria, projection or None))

    def count(self, criteria: CriteriaType) -> int:
        return self.collection.count_documents(criteria)

    def distinct(self, field: str, criteria: CriteriaType) -> list[Any]:
        return self.collection.distinct(field, criteria)


class AsyncPyMongoStore:
    """
    A document store backed by a pymongo `AsyncCollection`.
    See `PyMongoStore` for details.
    """

    def __init__(self, collection: AsyncCollection[DocumentType]) -> None:
        self.collection = collection
        self.name = collection.name

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(name="{self.name}")'

    def find(
        self,
        criteria: CriteriaType,
        projection: ProjectionType | None = None,
    ) -> AsyncPyMongoFind:
        return AsyncPyMongoFind(self.collection.find(criteria, projection or None))

    async def count(self, criteria: CriteriaType) -> int:
        return await self.collection.count_documents(criteria)

    async def distinct(self, field: str, criteria: CriteriaType) -> list[Any]:
        return await self.collection.distinct(field, criteria)
