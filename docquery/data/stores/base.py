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
The contracts a document store must honour to be queried by cursors.

A store is any object exposing `find`, `count` and `distinct`; `find`
returns a chainable query object that is eventually materialized with
`to_list`. Protocols are structural: stores do not need to inherit from them.
"""

from __future__ import annotations

from typing import Any, Awaitable, Protocol, runtime_checkable

from docquery.constants import CriteriaType, DocumentType, ProjectionType, SortType


class StoreFind(Protocol):
    def skip(self, skip: int) -> StoreFind: ...

    def limit(self, limit: int) -> StoreFind: ...

    def sort(self, sort: SortType) -> StoreFind: ...

    def to_list(self) -> list[DocumentType]: ...


class AsyncStoreFind(Protocol):
    def skip(self, skip: int) -> AsyncStoreFind: ...

    def limit(self, limit: int) -> AsyncStoreFind: ...

    def sort(self, sort: SortType) -> AsyncStoreFind: ...

    def to_list(self) -> Awaitable[list[DocumentType]]: ...


@runtime_checkable
class DocumentStore(Protocol):
    """
    A synchronous document store.

    Methods:
        find: start a query with the given criteria and (optional) projection.
        count: the number of documents matching the criteria.
        distinct: the distinct values of a (possibly dotted) field among the
            documents matching the criteria. Array values contribute each item.
    """

    name: str

    def find(
        self,
        criteria: CriteriaType,
        projection: ProjectionType | None = None,
    ) -> StoreFind: ...

    def count(self, criteria: CriteriaType) -> int: ...

    def distinct(self, field: str, criteria: CriteriaType) -> list[Any]: ...


@runtime_checkable
class AsyncDocumentStore(Protocol):
    """
    An asynchronous document store. See `DocumentStore`: the only difference is
    that `count`, `distinct` and the `to_list` of a find are awaitable.
    """

    name: str

    def find(
        self,
        criteria: CriteriaType,
        projection: ProjectionType | None = None,
    ) -> AsyncStoreFind: ...

    async def count(self, criteria: CriteriaType) -> int: ...

    async def distinct(self, field: str, criteria: CriteriaType) -> list[Any]: ...
