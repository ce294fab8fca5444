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

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Protocol, TypeVar

from docquery.constants import CriteriaType, DocumentType, ProjectionType
from docquery.data.cursors.doc_cursor import AsyncDocCursor, DocCursor
from docquery.data.stores.base import AsyncDocumentStore, DocumentStore
from docquery.request_context import RequestContext
from docquery.settings.defaults import DEFAULT_SORTIFIED_FIELDS, SORTIFIED_FIELD_SUFFIX
from docquery.utils.query_options import (
    FullQueryOptions,
    QueryOptions,
    defaultQueryOptions,
)

TSTORE = TypeVar("TSTORE")
TCURSOR = TypeVar("TCURSOR")


class PermissionEvaluator(Protocol):
    """
    The permission policy consulted by the `permission` filter.

    Methods:
        criteria: return the criteria restricting a query to the documents on
            which the request context holds the permission (such as
            "view-article"). An empty dict means no restriction.

    An evaluator may also provide `annotate(request_context, permission, docs)`,
    which is called on the loaded documents (for instance to flag which ones
    the user can edit). It may be a coroutine function with async managers.
    """

    def criteria(
        self,
        request_context: RequestContext,
        permission: str,
    ) -> CriteriaType: ...


@dataclass(frozen=True)
class DocTypeManager:
    """
    What the cursors need to know about a document type.

    Attributes:
        name: the type name, as found in the `type` property of documents.
        sortified_fields: the fields having a sortified companion field
            (`title` -> `titleSortified`) to be used in place of them
            when sorting.
    """

    name: str
    sortified_fields: frozenset[str] = DEFAULT_SORTIFIED_FIELDS


class TypeRegistry:
    """
    The document types known to the application, populated at startup.
    Once frozen, the registry rejects further registrations.

    Example:
        >>> registry = TypeRegistry([
        ...     DocTypeManager("article", frozenset({"title", "author"})),
        ... ])
        >>> registry.sortified_fields("article")
        frozenset({'title', 'author'})
        >>> registry.sortified_fields(None)
        frozenset({'title'})
    """

    def __init__(self, managers: Iterable[DocTypeManager] = ()) -> None:
        self._managers: dict[str, DocTypeManager] = {}
        self._frozen = False
        for manager in managers:
            self.register(manager)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(self._managers)})"

    def __contains__(self, name: object) -> bool:
        return name in self._managers

    def register(self, manager: DocTypeManager) -> None:
        if self._frozen:
            raise ValueError(
                f"Cannot register type '{manager.name}': the registry is frozen."
            )
        self._managers[manager.name] = manager

    def freeze(self) -> None:
        self._frozen = True

    def get(self, name: str | None) -> DocTypeManager | None:
        if name is None:
            return None
        return self._managers.get(name)

    def sortified_fields(self, doc_type: str | None) -> frozenset[str]:
        """
        The sortified fields of a type, or the fields common to all types
        if the type is not given or unknown.
        """

        manager = self.get(doc_type)
        if manager is None:
            return DEFAULT_SORTIFIED_FIELDS
        return manager.sortified_fields


class BaseDocManager(Generic[TSTORE, TCURSOR]):
    """
    The entry point to query a store: it binds the store with the permission
    evaluator, the type registry, the query options and the after-load hooks,
    and creates cursors.

    Not meant to be instantiated directly: use DocManager or AsyncDocManager.
    """

    default_cursor_class: type[Any]

    def __init__(
        self,
        *,
        store: TSTORE,
        permissions: PermissionEvaluator | None = None,
        type_registry: TypeRegistry | None = None,
        options: QueryOptions | None = None,
        cursor_class: type[TCURSOR] | None = None,
    ) -> None:
        self.store = store
        self.permissions = permissions
        self.type_registry = (
            type_registry if type_registry is not None else TypeRegistry()
        )
        self.options: FullQueryOptions = defaultQueryOptions().with_override(options)
        self.cursor_class: type[TCURSOR] = (
            cursor_class if cursor_class is not None else self.default_cursor_class
        )
        self._after_load_hooks: list[Callable[..., Any]] = []

    def __repr__(self) -> str:
        store_name = getattr(self.store, "name", "(unnamed)")
        return f'{self.__class__.__name__}(store="{store_name}")'

    def add_after_load_hook(self, hook: Callable[..., Any]) -> None:
        """
        Register a function to be called as `hook(request_context, docs)` on the
        documents loaded by every cursor of this manager, after the filters'
        own `after` hooks. Hooks run in registration order and may return a
        new list of documents (returning None keeps the list).
        """

        self._after_load_hooks.append(hook)

    def sortified_fields(self, doc_type: str | None) -> frozenset[str]:
        return self.type_registry.sortified_fields(doc_type)

    @staticmethod
    def sortified_field_name(field_name: str) -> str:
        return f"{field_name}{SORTIFIED_FIELD_SUFFIX}"

    def find(
        self,
        request_context: RequestContext | None,
        criteria: CriteriaType | None = None,
        projection: ProjectionType | None = None,
    ) -> TCURSOR:
        """
        Create a cursor over the documents of the store.

        Args:
            request_context: the context the query runs in. Required: use
                `RequestContext.task()` for code not serving a request.
            criteria: the base criteria of the query.
            projection: the projection of the query.

        Returns:
            a cursor of the class `cursor_class`, yet to be refined by
            calling its filters.

        Raises:
            CursorException: if no request context is given.
        """

        cursor = self.cursor_class(manager=self, request_context=request_context)
        if criteria is not None:
            cursor.criteria(criteria)
        if projection is not None:
            cursor.projection(projection)
        return cursor


class DocManager(BaseDocManager[DocumentStore, DocCursor]):
    """
    A synchronous document manager, spawning DocCursor objects.

    Args:
        store: a DocumentStore, such as MemoryStore or PyMongoStore.
        permissions: the PermissionEvaluator used by the `permission` filter.
            If None, the filter does not narrow queries.
        type_registry: the known document types (for sortified fields).
        options: a QueryOptions overriding the defaults, if needed.
        cursor_class: the cursor class to spawn, a DocCursor subclass
            possibly declaring additional filters.

    Example:
        >>> from docquery import DocManager, MemoryStore, RequestContext
        >>> manager = DocManager(store=MemoryStore(documents=my_docs))
        >>> manager.find(RequestContext.task()).doc_type("article").to_count()
        12
    """

    default_cursor_class = DocCursor

    def with_options(self, *, options: QueryOptions | None = None) -> DocManager:
        """
        Create a clone of this manager with some changed options.
        Store, evaluator, registry, cursor class and hooks are shared.
        """

        manager = DocManager(
            store=self.store,
            permissions=self.permissions,
            type_registry=self.type_registry,
            options=self.options.with_override(options),
            cursor_class=self.cursor_class,
        )
        manager._after_load_hooks = self._after_load_hooks
        return manager

    def docs_after_loaded(
        self,
        request_context: RequestContext,
        docs: list[DocumentType],
    ) -> list[DocumentType]:
        for hook in self._after_load_hooks:
            result = hook(request_context, docs)
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise TypeError(
                    "After-load hooks of a sync DocManager cannot be coroutines."
                )
            if result is not None:
                docs = result
        return docs


class AsyncDocManager(BaseDocManager[AsyncDocumentStore, AsyncDocCursor]):
    """
    An asynchronous document manager, spawning AsyncDocCursor objects.

    This class is the async counterpart of DocManager: see it for the
    parameters. The store must be an AsyncDocumentStore, and the after-load
    hooks may be coroutine functions.
    """

    default_cursor_class = AsyncDocCursor

    def with_options(self, *, options: QueryOptions | None = None) -> AsyncDocManager:
        """
        Create a clone of this manager with some changed options.
        Store, evaluator, registry, cursor class and hooks are shared.
        """

        manager = AsyncDocManager(
            store=self.store,
            permissions=self.permissions,
            type_registry=self.type_registry,
            options=self.options.with_override(options),
            cursor_class=self.cursor_class,
        )
        manager._after_load_hooks = self._after_load_hooks
        return manager

    async def docs_after_loaded(
        self,
        request_context: RequestContext,
        docs: list[DocumentType],
    ) -> list[DocumentType]:
        for hook in self._after_load_hooks:
            result = hook(request_context, docs)
            if inspect.isawaitable(result):
                result = await result
            if result is not None:
                docs = result
        return docs
