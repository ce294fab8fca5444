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

import re
from typing import Any

import pytest

from docquery.constants import DocumentType
from docquery.data.stores.base import AsyncDocumentStore, DocumentStore
from docquery.exceptions import (
    DuplicateKeyException,
    StoreException,
    is_unique_constraint_violation,
)
from docquery.stores import (
    AsyncMemoryStore,
    AsyncPyMongoStore,
    MemoryStore,
    PyMongoStore,
)

from ...conftest import ids

SHAPES = [
    {"_id": 1, "shape": "circle", "sides": 0, "tags": ["round"], "size": {"w": 3}},
    {"_id": 2, "shape": "triangle", "sides": 3, "tags": ["pointy", "small"]},
    {"_id": 3, "shape": "square", "sides": 4, "tags": ["small"], "size": {"w": 1}},
    {"_id": 4, "shape": "line", "sides": None, "flat": True},
    {
        "_id": 5,
        "shape": "hexagon",
        "sides": 6,
        "highSearchText": "big hexagon",
        "lowSearchText": "a hexagon has six sides",
    },
]


class FakeCursor:
    def __init__(self, docs: list[DocumentType], calls: list[Any]) -> None:
        self.docs = docs
        self.calls = calls

    def skip(self, skip: int) -> FakeCursor:
        self.calls.append(("skip", skip))
        return self

    def limit(self, limit: int) -> FakeCursor:
        self.calls.append(("limit", limit))
        return self

    def sort(self, sort: Any) -> FakeCursor:
        self.calls.append(("sort", sort))
        return self

    def __iter__(self) -> Any:
        return iter(self.docs)

    async def to_list(self, length: int | None) -> list[DocumentType]:
        self.calls.append(("to_list", length))
        return self.docs


class FakeCollection:
    name = "fake"

    def __init__(self) -> None:
        self.calls: list[Any] = []

    def find(self, criteria: Any, projection: Any) -> FakeCursor:
        self.calls.append(("find", criteria, projection))
        return FakeCursor([{"_id": "x"}], self.calls)

    def count_documents(self, criteria: Any) -> int:
        self.calls.append(("count_documents", criteria))
        return 7

    def distinct(self, field: str, criteria: Any) -> list[Any]:
        self.calls.append(("distinct", field, criteria))
        return ["v"]


class AsyncFakeCollection(FakeCollection):
    async def count_documents(self, criteria: Any) -> int:  # type: ignore[override]
        return FakeCollection.count_documents(self, criteria)

    async def distinct(  # type: ignore[override]
        self, field: str, criteria: Any
    ) -> list[Any]:
        return FakeCollection.distinct(self, field, criteria)


@pytest.fixture
def shapes() -> MemoryStore:
    return MemoryStore("shapes", documents=SHAPES)


class TestMemoryStore:
    @pytest.mark.describe("test of memory store equality and operators")
    def test_operators(self, shapes: MemoryStore) -> None:
        def _find(criteria: dict[str, Any]) -> list[Any]:
            return ids(shapes.find(criteria).sort({"_id": 1}).to_list())

        assert _find({"shape": "square"}) == [3]
        assert _find({"tags": "small"}) == [2, 3]
        assert _find({"tags": ["pointy", "small"]}) == [2]
        assert _find({"sides": {"$gt": 0, "$lt": 5}}) == [2, 3]
        assert _find({"sides": {"$gte": 4}}) == [3, 5]
        assert _find({"sides": {"$lte": 0}}) == [1]
        assert _find({"sides": None}) == [4]
        assert _find({"flat": None}) == [1, 2, 3, 5]
        assert _find({"flat": {"$exists": True}}) == [4]
        assert _find({"flat": {"$ne": True}}) == [1, 2, 3, 5]
        assert _find({"sides": {"$in": [0, 6]}}) == [1, 5]
        assert _find({"sides": {"$nin": [0, 6, None]}}) == [2, 3]
        assert _find({"size.w": {"$gt": 2}}) == [1]
        assert _find({"tags": {"$size": 2}}) == [2]
        assert _find({"shape": {"$not": {"$in": ["circle", "line"]}}}) == [2, 3, 5]
        assert _find({"sides": 0.0}) == [1]
        assert _find({"flat": 1}) == []

    @pytest.mark.describe("test of memory store logical operators")
    def test_logical(self, shapes: MemoryStore) -> None:
        def _count(criteria: dict[str, Any]) -> int:
            return shapes.count(criteria)

        assert _count({}) == 5
        assert _count({"$and": [{"tags": "small"}, {"sides": 4}]}) == 1
        assert _count({"$or": [{"sides": 0}, {"sides": 6}]}) == 2
        assert _count({"$nor": [{"sides": 0}, {"sides": 6}]}) == 3
        assert _count({"$and": [{}, {"$or": [{"flat": True}]}]}) == 1

    @pytest.mark.describe("test of memory store regular expressions")
    def test_regex(self, shapes: MemoryStore) -> None:
        assert shapes.count({"shape": re.compile("^s")}) == 1
        assert shapes.count({"shape": {"$regex": "GON$", "$options": "i"}}) == 1
        assert shapes.count({"tags": re.compile("^po")}) == 1
        assert shapes.count({"shape": {"$in": [re.compile("^c"), "line"]}}) == 2

    @pytest.mark.describe("test of memory store sort, skip and limit")
    def test_sort_skip_limit(self, shapes: MemoryStore) -> None:
        by_sides = shapes.find({}).limit(2).skip(1).sort({"sides": -1}).to_list()
        assert ids(by_sides) == [3, 2]
        # missing and null values sort first
        assert ids(shapes.find({}).sort({"flat": 1, "_id": -1}).to_list()) == [
            5,
            3,
            2,
            1,
            4,
        ]
        assert ids(shapes.find({}).sort({"tags": 1, "_id": 1}).to_list()) == [
            4,
            5,
            2,
            1,
            3,
        ]

    @pytest.mark.describe("test of memory store projections")
    def test_projection(self, shapes: MemoryStore) -> None:
        assert shapes.find({"_id": 1}, {"size.w": 1}).to_list() == [
            {"_id": 1, "size": {"w": 3}}
        ]
        assert shapes.find({"_id": 3}, {"shape": 1, "_id": 0}).to_list() == [
            {"shape": "square"}
        ]
        excluded = shapes.find({"_id": 4}, {"flat": 0}).to_list()
        assert excluded == [{"_id": 4, "shape": "line", "sides": None}]
        with pytest.raises(StoreException):
            shapes.find({}, {"shape": 1, "sides": 0}).to_list()

    @pytest.mark.describe("test of memory store text search")
    def test_text_search(self, shapes: MemoryStore) -> None:
        criteria = {"$text": {"$search": "hexagon sides"}}
        projection = {"score": {"$meta": "textScore"}, "shape": 1}
        docs = shapes.find(criteria, projection).to_list()
        assert docs == [{"_id": 5, "shape": "hexagon", "score": pytest.approx(5.4)}]
        with pytest.raises(StoreException):
            shapes.find({}, {"score": {"$meta": "textScore"}}).to_list()
        with pytest.raises(StoreException):
            shapes.count({"$and": [criteria, criteria]})

    @pytest.mark.describe("test of memory store distinct")
    def test_distinct(self, shapes: MemoryStore) -> None:
        assert shapes.distinct("tags", {}) == ["round", "pointy", "small"]
        assert shapes.distinct("size.w", {"sides": {"$gt": 0}}) == [1]
        assert shapes.distinct("sides", {"_id": {"$lte": 2}}) == [0, 3]

    @pytest.mark.describe("test of memory store documents being copies")
    def test_copies(self, shapes: MemoryStore) -> None:
        doc = shapes.find({"_id": 2}).to_list()[0]
        doc["tags"].append("changed")
        assert shapes.distinct("tags", {"_id": 2}) == ["pointy", "small"]

    @pytest.mark.describe("test of memory store inserts")
    def test_insert(self) -> None:
        store = MemoryStore()
        assert store.insert_one({"_id": "k", "v": 1}) == "k"
        generated_id = store.insert_one({"v": 2})
        assert isinstance(generated_id, str)
        assert store.insert_many([{"_id": "m"}, {"_id": "n"}]) == ["m", "n"]
        assert store.count({}) == 4

        with pytest.raises(DuplicateKeyException) as exc_info:
            store.insert_one({"_id": "k"})
        assert exc_info.value.key == "k"
        assert is_unique_constraint_violation(exc_info.value)
        assert not is_unique_constraint_violation(ValueError("k"))
        assert store.count({}) == 4

    @pytest.mark.describe("test of the store protocols")
    def test_protocols(self) -> None:
        store = MemoryStore()
        assert isinstance(store, DocumentStore)
        assert isinstance(store.to_async(), AsyncDocumentStore)

    @pytest.mark.describe("test of the async memory store")
    async def test_async_memory_store(self, shapes: MemoryStore) -> None:
        async_shapes = shapes.to_async()
        assert isinstance(async_shapes, AsyncMemoryStore)
        assert await async_shapes.count({"tags": "small"}) == 2
        docs = await async_shapes.find({"tags": "small"}).sort({"_id": -1}).to_list()
        assert ids(docs) == [3, 2]
        assert await async_shapes.distinct("tags", {"_id": 1}) == ["round"]
        await async_shapes.insert_one({"_id": 9, "shape": "dot"})
        assert async_shapes.to_sync().count({}) == 6
        assert shapes.count({}) == 6


class TestPyMongoStore:
    @pytest.mark.describe("test of the pymongo store adapter")
    def test_pymongo_store(self) -> None:
        collection = FakeCollection()
        store = PyMongoStore(collection)  # type: ignore[arg-type]
        assert store.name == "fake"
        docs = store.find({"a": 1}, {}).sort({"b": -1, "c": 1}).skip(2).to_list()
        assert docs == [{"_id": "x"}]
        assert store.count({"a": 1}) == 7
        assert store.distinct("d", {"a": 1}) == ["v"]
        assert collection.calls == [
            ("find", {"a": 1}, None),
            ("sort", [("b", -1), ("c", 1)]),
            ("skip", 2),
            ("count_documents", {"a": 1}),
            ("distinct", "d", {"a": 1}),
        ]

    @pytest.mark.describe("test of the async pymongo store adapter")
    async def test_async_pymongo_store(self) -> None:
        collection = AsyncFakeCollection()
        store = AsyncPyMongoStore(collection)  # type: ignore[arg-type]
        docs = await store.find({"a": 1}, {"a": 1}).limit(3).to_list()
        assert docs == [{"_id": "x"}]
        assert await store.count({}) == 7
        assert await store.distinct("d", {}) == ["v"]
        assert collection.calls == [
            ("find", {"a": 1}, {"a": 1}),
            ("limit", 3),
            ("to_list", None),
            ("count_documents", {}),
            ("distinct", "d", {}),
        ]
