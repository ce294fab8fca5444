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

import asyncio
import inspect
import math
from typing import TYPE_CHECKING, Any

from deprecation import deprecated

from docquery import __version__
from docquery.constants import ChoiceType, DocumentType
from docquery.data.cursors.cursor import (
    BaseDocCursor,
    CursorState,
    StoreQuery,
    logger,
)
from docquery.exceptions import CursorException

if TYPE_CHECKING:
    from docquery.data.manager import AsyncDocManager, DocManager


_PAGING_KEYS = ("skip", "limit", "page", "per_page")


def _close_if_coroutine(value: Any) -> None:
    if inspect.iscoroutine(value):
        value.close()


class DocCursor(BaseDocCursor):
    """
    A chainable cursor over the documents of a document manager.

    Calling filters records their values; nothing reaches the store until one
    of the yielding methods (`to_array`, `to_object`, `to_count`,
    `to_distinct`, `to_choices`, `to_store_query`) is called. Each of those
    finalizes a fresh clone, leaving this cursor untouched and reusable.

    This class is not meant to be directly instantiated by the user: use the
    `find` method of a `DocManager` instead.

    Example:
        >>> cursor = manager.find(request_context, {"color": "red"})
        >>> cursor.doc_type("product").sort({"price": 1}).limit(2)
        DocCursor("docs", idle)
        >>> [doc["title"] for doc in cursor.to_array()]
        ['Red Hat', 'Red Scarf']
        >>> cursor.to_count()
        7
    """

    manager: DocManager

    def finalize(self) -> DocCursor:
        """
        Finalize the cursor in place: apply the defaults of all filters still
        undefined and run all finalizers in registration order, restarting
        from the first filter whenever a finalizer asks for it.

        Calling this method again on a finalized cursor does nothing. If any
        finalizer raises, the cursor goes back to its state before this call
        and the error propagates.

        Returns:
            the cursor itself, now finalized.

        Raises:
            CursorException: if a filter can only be finalized asynchronously,
                if a finalizer returns an invalid outcome, or if the finalizers
                keep requesting new passes beyond `max_finalize_passes`.
        """

        if self._cursor_state == CursorState.FINALIZED:
            return self
        declared_state, criteria_snapshot = self._start_finalization()
        try:
            pass_number = 1
            while not self._run_finalize_pass(pass_number, criteria_snapshot):
                pass_number += 1
        except BaseException:
            self._abort_finalization(declared_state)
            raise
        self._complete_finalization(declared_state)
        return self

    def _run_finalize_pass(self, pass_number: int, criteria_snapshot: Any) -> bool:
        self._start_pass(pass_number, criteria_snapshot)
        for definition in self._filter_registry:
            self._apply_default(definition)
            if definition.finalize is None:
                if definition.async_finalize is not None:
                    raise CursorException(
                        text=(
                            f"Filter '{definition.name}' can only be finalized "
                            "by an async cursor."
                        ),
                        cursor_state=self._cursor_state.value,
                    )
                continue
            outcome = definition.finalize(self)
            if inspect.isawaitable(outcome):
                _close_if_coroutine(outcome)
                raise CursorException(
                    text=(
                        f"The finalizer of filter '{definition.name}' returned "
                        "an awaitable, which a sync cursor cannot wait for."
                    ),
                    cursor_state=self._cursor_state.value,
                )
            if self._wants_refinalize(definition, outcome):
                return False
        return True

    def _finalized_clone(self) -> DocCursor:
        return self.clone().finalize()

    def _run_after_hooks(self, rows: list[DocumentType]) -> list[DocumentType]:
        for definition in self._filter_registry:
            if definition.after is None:
                continue
            result = definition.after(self, rows)
            if inspect.isawaitable(result):
                _close_if_coroutine(result)
                raise CursorException(
                    text=(
                        f"The after hook of filter '{definition.name}' returned "
                        "an awaitable, which a sync cursor cannot wait for."
                    ),
                    cursor_state=self._cursor_state.value,
                )
            if result is not None:
                rows = result
        return rows

    def to_store_query(self) -> StoreQuery:
        """
        Finalize a clone of this cursor and return the query it would run.

        Returns:
            a StoreQuery with criteria, projection, sort, skip and limit.
        """

        return self._finalized_clone()._build_store_query()

    @deprecated(
        deprecated_in="1.1.0",
        removed_in="2.0.0",
        current_version=__version__,
        details="Use the 'to_store_query' method instead.",
    )
    def to_mongo(self) -> StoreQuery:
        """An alias of `to_store_query`."""

        return self.to_store_query()

    def to_array(self) -> list[DocumentType]:
        """
        Run the query and return the matching documents.

        After loading, the `after` hooks of the filters run in registration
        order (for instance, explicit-order resequencing and permission
        annotation), then the after-load hooks of the manager.

        Returns:
            a list of documents.

        Example:
            >>> manager.find(request_context).doc_type("article").to_array()
            [{'_id': 'a1', 'type': 'article', 'title': 'Hello', ...}, ...]
        """

        cursor = self._finalized_clone()
        query = cursor._build_store_query()
        cursor._log_query(query, "find")
        store = self.manager.store
        find = store.find(query.criteria, query.projection or None)
        if query.sort:
            find = find.sort(query.sort)
        if query.skip:
            find = find.skip(query.skip)
        if query.limit:
            find = find.limit(query.limit)
        logger.info(f"cursor fetching documents from {store.name}")
        rows = find.to_list()
        logger.info(f"cursor finished fetching documents from {store.name}")
        rows = cursor._run_after_hooks(rows)
        return self.manager.docs_after_loaded(self.request_context, rows)

    def to_object(self) -> DocumentType | None:
        """
        Run the query with a limit of one and return the first document,
        or None if nothing matches.
        """

        rows = self.clone().set("limit", 1).to_array()
        return rows[0] if rows else None

    def to_count(self) -> int:
        """
        Count the documents matching the query, disregarding skip, limit and
        pagination. If `per_page` is set, the number of pages is stored on
        this cursor as `total_pages`.

        Returns:
            the number of matching documents.
        """

        cursor = self.clone()
        for key in _PAGING_KEYS:
            cursor.unset(key)
        cursor.finalize()
        query = cursor._build_store_query()
        cursor._log_query(query, "count")
        store = self.manager.store
        logger.info(f"cursor counting documents in {store.name}")
        count = store.count(query.criteria)
        logger.info(f"cursor finished counting documents in {store.name}")
        per_page = self.get("per_page")
        if per_page:
            self.set("total_pages", math.ceil(count / per_page))
        return count

    def to_distinct(self, property: str) -> list[Any]:
        """
        Return the distinct values of a (possibly dotted) property among the
        documents matching the query. Array values contribute their items.
        """

        cursor = self._finalized_clone()
        query = cursor._build_store_query()
        cursor._log_query(query, "distinct")
        store = self.manager.store
        logger.info(f"cursor fetching distinct '{property}' from {store.name}")
        values = store.distinct(property, query.criteria)
        logger.info(
            f"cursor finished fetching distinct '{property}' from {store.name}"
        )
        return values

    def to_choices(self, property: str, counts: bool = False) -> list[ChoiceType]:
        """
        Return the choices available for a filter or property, given all the
        other filters of this cursor: the filter's own `choices` hook if it
        has one, the distinct values of the property otherwise.

        Args:
            property: a filter name, or a document property.
            counts: if True, each choice also gets the number of documents
                that would match if it were picked.

        Returns:
            a list of choices, dictionaries with "label" and "value"
            (and "count") keys.

        Example:
            >>> manager.find(request_context).to_choices("color", counts=True)
            [{'label': 'red', 'value': 'red', 'count': 7}, ...]
        """

        cursor = self._choice_cursor(property)
        definition = self._filter_registry.get(property)
        if definition is not None and definition.choices is not None:
            values = definition.choices(cursor)
        else:
            values = cursor.to_distinct(property)
        choices = self._normalize_choices(values)
        if counts:
            for choice in choices:
                choice["count"] = (
                    cursor._narrowed_to_choice(property, choice["value"]).to_count()
                )
        return choices


class AsyncDocCursor(BaseDocCursor):
    """
    A chainable cursor over the documents of an async document manager.

    This class is the async counterpart of the DocCursor, for use with
    asyncio: finalization and all yielding methods are coroutines, while
    filters are set synchronously as with DocCursor. Filters may provide an
    `async_finalize` coroutine, which this cursor prefers over `finalize`.

    This class is not meant to be directly instantiated by the user: use the
    `find` method of an `AsyncDocManager` instead.

    Example:
        >>> cursor = async_manager.find(request_context).autocomplete("app")
        >>> [doc["title"] for doc in await cursor.to_array()]
        ['Johnny Appleseed', 'Applesauce']
    """

    manager: AsyncDocManager

    async def finalize(self) -> AsyncDocCursor:
        """
        Finalize the cursor in place. See `DocCursor.finalize`: the only
        difference is that finalizers returning awaitables are awaited.

        Returns:
            the cursor itself, now finalized.
        """

        if self._cursor_state == CursorState.FINALIZED:
            return self
        declared_state, criteria_snapshot = self._start_finalization()
        try:
            pass_number = 1
            while not await self._run_finalize_pass(pass_number, criteria_snapshot):
                pass_number += 1
        except BaseException:
            self._abort_finalization(declared_state)
            raise
        self._complete_finalization(declared_state)
        return self

    async def _run_finalize_pass(
        self,
        pass_number: int,
        criteria_snapshot: Any,
    ) -> bool:
        self._start_pass(pass_number, criteria_snapshot)
        for definition in self._filter_registry:
            self._apply_default(definition)
            finalizer = definition.async_finalize or definition.finalize
            if finalizer is None:
                continue
            outcome = finalizer(self)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if self._wants_refinalize(definition, outcome):
                return False
        return True

    async def _finalized_clone(self) -> AsyncDocCursor:
        return await self.clone().finalize()

    async def _run_after_hooks(self, rows: list[DocumentType]) -> list[DocumentType]:
        for definition in self._filter_registry:
            if definition.after is None:
                continue
            result = definition.after(self, rows)
            if inspect.isawaitable(result):
                result = await result
            if result is not None:
                rows = result
        return rows

    async def to_store_query(self) -> StoreQuery:
        """
        Finalize a clone of this cursor and return the query it would run.
        Async version of `DocCursor.to_store_query`.
        """

        cursor = await self._finalized_clone()
        return cursor._build_store_query()

    @deprecated(
        deprecated_in="1.1.0",
        removed_in="2.0.0",
        current_version=__version__,
        details="Use the 'to_store_query' method instead.",
    )
    async def to_mongo(self) -> StoreQuery:
        """An alias of `to_store_query`."""

        return await self.to_store_query()

    async def to_array(self) -> list[DocumentType]:
        """
        Run the query and return the matching documents.
        Async version of `DocCursor.to_array`.
        """

        cursor = await self._finalized_clone()
        query = cursor._build_store_query()
        cursor._log_query(query, "find")
        store = self.manager.store
        find = store.find(query.criteria, query.projection or None)
        if query.sort:
            find = find.sort(query.sort)
        if query.skip:
            find = find.skip(query.skip)
        if query.limit:
            find = find.limit(query.limit)
        logger.info(f"cursor fetching documents from {store.name}, async")
        rows = await find.to_list()
        logger.info(f"cursor finished fetching documents from {store.name}, async")
        rows = await cursor._run_after_hooks(rows)
        return await self.manager.docs_after_loaded(self.request_context, rows)

    async def to_object(self) -> DocumentType | None:
        """
        Run the query with a limit of one and return the first document,
        or None if nothing matches.
        """

        rows = await self.clone().set("limit", 1).to_array()
        return rows[0] if rows else None

    async def to_count(self) -> int:
        """
        Count the documents matching the query, disregarding skip, limit and
        pagination. Async version of `DocCursor.to_count`.
        """

        cursor = self.clone()
        for key in _PAGING_KEYS:
            cursor.unset(key)
        await cursor.finalize()
        query = cursor._build_store_query()
        cursor._log_query(query, "count")
        store = self.manager.store
        logger.info(f"cursor counting documents in {store.name}, async")
        count = await store.count(query.criteria)
        logger.info(f"cursor finished counting documents in {store.name}, async")
        per_page = self.get("per_page")
        if per_page:
            self.set("total_pages", math.ceil(count / per_page))
        return count

    async def to_distinct(self, property: str) -> list[Any]:
        """
        Return the distinct values of a property among the matching documents.
        Async version of `DocCursor.to_distinct`.
        """

        cursor = await self._finalized_clone()
        query = cursor._build_store_query()
        cursor._log_query(query, "distinct")
        store = self.manager.store
        logger.info(f"cursor fetching distinct '{property}' from {store.name}, async")
        values = await store.distinct(property, query.criteria)
        logger.info(
            f"cursor finished fetching distinct '{property}' from {store.name}, async"
        )
        return values

    async def to_choices(
        self,
        property: str,
        counts: bool = False,
    ) -> list[ChoiceType]:
        """
        Return the choices available for a filter or property.
        Async version of `DocCursor.to_choices`: with `counts`, the counts
        for all choices are computed concurrently.
        """

        cursor = self._choice_cursor(property)
        definition = self._filter_registry.get(property)
        if definition is not None and definition.choices is not None:
            values = definition.choices(cursor)
            if inspect.isawaitable(values):
                values = await values
        else:
            values = await cursor.to_distinct(property)
        choices = self._normalize_choices(values)
        if counts:
            choice_counts = await asyncio.gather(
                *[
                    cursor._narrowed_to_choice(property, choice["value"]).to_count()
                    for choice in choices
                ]
            )
            for choice, count in zip(choices, choice_counts):
                choice["count"] = count
        return choices
