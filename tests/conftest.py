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
Main conftest for shared fixtures: document stores seeded with a small
catalog of articles and products, a fake permission evaluator, managers.
"""

from __future__ import annotations

import functools
import warnings
from collections.abc import Iterator
from typing import Any, Awaitable, Callable

import pytest
from blockbuster import BlockBuster, blockbuster_ctx
from deprecation import UnsupportedWarning

import docquery
from docquery import (
    AsyncDocManager,
    AsyncMemoryStore,
    DocManager,
    DocTypeManager,
    MemoryStore,
    RequestContext,
    TypeRegistry,
)
from docquery.constants import CriteriaType, DocumentType
from docquery.utils.text import sortify, split_words


@pytest.fixture(autouse=True)
def blockbuster() -> Iterator[BlockBuster]:
    with blockbuster_ctx("docquery") as bb:
        yield bb


def make_doc(_id: str, title: str, **fields: Any) -> DocumentType:
    """
    Build a document the way an application would store it, with the
    sortified title and the search fields derived from the title and from
    an optional `body` field.
    """

    high_text = sortify(title)
    low_parts = [high_text, sortify(fields.get("body"))]
    low_text = " ".join(part for part in low_parts if part)
    doc: DocumentType = {
        "_id": _id,
        "title": title,
        "titleSortified": high_text,
        "highSearchText": high_text,
        "highSearchWords": split_words(high_text),
        "lowSearchText": low_text,
        "published": True,
    }
    doc.update(fields)
    return doc


def catalog_docs() -> list[DocumentType]:
    return [
        make_doc(
            "a1",
            "Johnny Appleseed",
            type="article",
            tags=["people", "trees"],
            color="red",
            body="He planted apple trees across the country.",
        ),
        make_doc(
            "a2",
            "Applesauce Recipes",
            type="article",
            tags=["food"],
            color="red",
            private=True,
            body="Cook the apples slowly.",
        ),
        make_doc(
            "a3",
            "Banana Bread",
            type="article",
            tags=["food"],
            color="yellow",
            body="Ripe bananas make the best bread.",
        ),
        make_doc("a4", "Draft Article", type="article", published=False, color="blue"),
        make_doc("a5", "Trashed Article", type="article", trash=True, color="red"),
        make_doc("p1", "Cherry Pie", type="product", tags=["food"], orphan=True),
        make_doc("p2", "Zucchini", type="product", color="green"),
    ]


# ids of the documents matched by a plain privileged query (published, not trash)
VISIBLE_IDS = ["a2", "a3", "p1", "a1", "p2"]


class FakePermissions:
    """
    A permission evaluator hiding `private` documents from non-privileged
    contexts, and recording the permission names it is asked about.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.annotated: list[str] = []

    def criteria(
        self,
        request_context: RequestContext,
        permission: str,
    ) -> CriteriaType:
        self.calls.append(permission)
        if request_context.privileged:
            return {}
        return {"private": {"$ne": True}}

    def annotate(
        self,
        request_context: RequestContext,
        permission: str,
        docs: list[DocumentType],
    ) -> None:
        self.annotated.append(permission)
        for doc in docs:
            doc["_edit"] = request_context.privileged


class AsyncFakePermissions(FakePermissions):
    async def annotate(  # type: ignore[override]
        self,
        request_context: RequestContext,
        permission: str,
        docs: list[DocumentType],
    ) -> None:
        FakePermissions.annotate(self, request_context, permission, docs)


def make_type_registry() -> TypeRegistry:
    return TypeRegistry(
        [
            DocTypeManager("article", frozenset({"title", "color"})),
            DocTypeManager("product"),
        ]
    )


@pytest.fixture
def task_req() -> RequestContext:
    return RequestContext.task()


@pytest.fixture
def anon_req() -> RequestContext:
    return RequestContext.anonymous()


@pytest.fixture
def permissions() -> FakePermissions:
    return FakePermissions()


@pytest.fixture
def async_permissions() -> AsyncFakePermissions:
    return AsyncFakePermissions()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore("catalog", documents=catalog_docs())


@pytest.fixture
def async_store() -> AsyncMemoryStore:
    return AsyncMemoryStore("catalog", documents=catalog_docs())


@pytest.fixture
def manager(store: MemoryStore, permissions: FakePermissions) -> DocManager:
    return DocManager(
        store=store,
        permissions=permissions,
        type_registry=make_type_registry(),
    )


@pytest.fixture
def async_manager(
    async_store: AsyncMemoryStore,
    async_permissions: AsyncFakePermissions,
) -> AsyncDocManager:
    return AsyncDocManager(
        store=async_store,
        permissions=async_permissions,
        type_registry=make_type_registry(),
    )


def ids(docs: list[DocumentType]) -> list[str]:
    return [doc["_id"] for doc in docs]


def is_future_version(v_string: str) -> bool:
    current_tuple = tuple(int(pc) for pc in docquery.__version__.split("."))
    v_tuple = tuple(int(pc) for pc in v_string.split("."))
    return v_tuple > current_tuple


def async_fail_if_not_removed(
    method: Callable[..., Awaitable[Any]],
) -> Callable[..., Awaitable[Any]]:
    """
    Decorate a test async method to track removal of deprecated code.

    This is a customized+typed version of the deprecation package's
    `fail_if_not_removed` decorator (see), to handle async test functions.
    """

    @functools.wraps(method)
    async def test_inner(*args: Any, **kwargs: Any) -> Any:
        with warnings.catch_warnings(record=True) as caught_warnings:
            warnings.simplefilter("always")
            rv = await method(*args, **kwargs)

        for warning in caught_warnings:
            if warning.category == UnsupportedWarning:
                raise AssertionError(
                    f"{method} uses a function that should be removed: {str(warning.message)}"
                )
        return rv

    return test_inner


def sync_fail_if_not_removed(method: Callable[..., Any]) -> Callable[..., Any]:
    """
    Decorate a test sync method to track removal of deprecated code.

    This is a typed version of the deprecation package's
    `fail_if_not_removed` decorator (see), with added minimal typing.
    """

    @functools.wraps(method)
    def test_inner(*args: Any, **kwargs: Any) -> Any:
        with warnings.catch_warnings(record=True) as caught_warnings:
            warnings.simplefilter("always")
            rv = method(*args, **kwargs)

        for warning in caught_warnings:
            if warning.category == UnsupportedWarning:
                raise AssertionError(
                    f"{method} uses a function that should be removed: {str(warning.message)}"
                )
        return rv

    return test_inner
