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

from typing import Any

import pytest

from docquery import AsyncDocManager, DocManager, MemoryStore, RequestContext
from docquery.cursors import AsyncDocCursor, DocCursor
from docquery.data.cursors.autocomplete import autocomplete_words

from ...conftest import ids, make_doc


class DistinctSpyCursor(DocCursor):
    """Records the criteria of the distinct queries it runs."""

    distinct_criteria: list[Any] = []

    def to_distinct(self, property: str) -> list[Any]:
        self.distinct_criteria.append(self.to_store_query().criteria)
        return super().to_distinct(property)


class TestAutocomplete:
    @pytest.mark.describe("test of autocomplete_words")
    def test_autocomplete_words(self) -> None:
        assert autocomplete_words("  Johnny  APP ") == ["johnny", "app"]
        assert autocomplete_words("") == []
        assert autocomplete_words("?!") == []
        assert autocomplete_words(None) == []

    @pytest.mark.describe("test of autocomplete turning prefixes into a search")
    def test_autocomplete_prefix(
        self, manager: DocManager, task_req: RequestContext
    ) -> None:
        cursor = manager.find(task_req).autocomplete("app")
        query = cursor.to_store_query()
        assert {"$text": {"$search": "appleseed applesauce"}} == (
            query.criteria["$and"][0]["$and"][0]
        )
        assert query.sort == {"textScore": {"$meta": "textScore"}}
        assert query.projection == {"textScore": {"$meta": "textScore"}}

        docs = cursor.to_array()
        assert sorted(ids(docs)) == ["a1", "a2"]
        assert all(doc["textScore"] > 0 for doc in docs)
        # the declared cursor still holds the phrase, not the search
        assert cursor.get("autocomplete") == "app"
        assert cursor.get("search") is None

    @pytest.mark.describe("test of autocomplete within the other filters")
    def test_autocomplete_narrowed(
        self,
        manager: DocManager,
        task_req: RequestContext,
        anon_req: RequestContext,
    ) -> None:
        # a2 is hidden from anonymous visitors, so is its vocabulary
        anon_docs = manager.find(anon_req).autocomplete("app").to_array()
        assert ids(anon_docs) == ["a1"]
        product_cursor = manager.find(task_req).doc_type("product").autocomplete("app")
        assert product_cursor.to_array() == []

    @pytest.mark.describe("test of autocomplete with several words")
    def test_autocomplete_phrase(
        self, manager: DocManager, task_req: RequestContext
    ) -> None:
        assert ids(manager.find(task_req).autocomplete("johnny app").to_array()) == [
            "a1"
        ]
        assert manager.find(task_req).autocomplete("app johnny").to_count() == 0

    @pytest.mark.describe("test of autocomplete without candidate words")
    def test_autocomplete_no_match(
        self, manager: DocManager, task_req: RequestContext
    ) -> None:
        cursor = manager.find(task_req).autocomplete("xylophone")
        assert cursor.to_array() == []
        assert cursor.to_count() == 0
        query = cursor.to_store_query()
        assert "__iNeverMatch" in repr(query.criteria)
        assert "$text" not in repr(query.criteria)

    @pytest.mark.describe("test of an empty autocomplete phrase")
    def test_autocomplete_empty(
        self, manager: DocManager, task_req: RequestContext
    ) -> None:
        plain = manager.find(task_req).to_store_query()
        assert manager.find(task_req).autocomplete("  ").to_store_query() == plain
        assert manager.find(task_req).autocomplete("...").to_count() == 5

    @pytest.mark.describe("test of the candidate word lookup")
    def test_autocomplete_lookup(self, task_req: RequestContext) -> None:
        store = MemoryStore(
            documents=[
                make_doc("w1", "Appleseed"),
                make_doc("w2", "Applesauce"),
                make_doc("w3", "Banana"),
                # 'happy' contains 'app' but does not start with it
                make_doc("w4", "Happy Apple Day", highSearchWords=["happy", "day"]),
            ]
        )
        DistinctSpyCursor.distinct_criteria = []
        manager = DocManager(store=store, cursor_class=DistinctSpyCursor)
        docs = manager.find(task_req).autocomplete("app").to_array()
        assert sorted(ids(docs)) == ["w1", "w2"]
        assert len(DistinctSpyCursor.distinct_criteria) == 1
        lookup_criteria = repr(DistinctSpyCursor.distinct_criteria[0])
        assert "highSearchWords" in lookup_criteria
        assert "highSearchText" in lookup_criteria

    @pytest.mark.describe("test of autocomplete on an async cursor")
    async def test_autocomplete_async(
        self, async_manager: AsyncDocManager, task_req: RequestContext
    ) -> None:
        cursor = async_manager.find(task_req).autocomplete("app")
        assert isinstance(cursor, AsyncDocCursor)
        docs = await cursor.to_array()
        assert sorted(ids(docs)) == ["a1", "a2"]
        assert await cursor.clone().autocomplete("xylophone").to_array() == []
        assert await cursor.to_count() == 2
