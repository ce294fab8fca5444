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
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, TypeVar

from docquery.constants import CriteriaType, DocumentType, ProjectionType, SortType
from docquery.data.cursors.autocomplete import (
    async_finalize_autocomplete,
    autocomplete_words,
    finalize_autocomplete,
)
from docquery.data.cursors.filters import (
    Filter,
    FilterDefinition,
    FilterHost,
    FilterRegistry,
    FilterSetter,
    FinalizeOutcome,
)
from docquery.data.utils.document_paths import MISSING, get_path_value
from docquery.data.utils.explicit_order import order_by_key
from docquery.exceptions import CursorException, UnknownFilterException
from docquery.request_context import RequestContext
from docquery.settings.defaults import (
    DEFAULT_EXPLICIT_ORDER_PROPERTY,
    DEFAULT_PERMISSION_TYPE,
    HIGH_SEARCH_TEXT_FIELD,
    SAFE_FOR_MANAGE,
    SAFE_FOR_PUBLIC,
)
from docquery.utils.launder import (
    launder_boolean,
    launder_boolean_or_none,
    launder_integer,
    launder_string,
    launder_strings,
)
from docquery.utils.query_options import FullQueryOptions, QueryOptions
from docquery.utils.text import searchify
from docquery.utils.unset import _UNSET, UnsetType

if TYPE_CHECKING:
    from docquery.data.manager import BaseDocManager


logger = logging.getLogger(__name__)

TCURSOR = TypeVar("TCURSOR", bound="BaseDocCursor")

SORT_SCORE_DIRECTIVE = "search"
TEXT_SCORE_META = {"$meta": "textScore"}


class CursorState(Enum):
    """
    This enum expresses the possible states for a cursor.

    Values:
        IDLE: the cursor is being built: filters can be set freely.
        FINALIZING: the finalizers are running.
        FINALIZED: the cursor was finalized in place. Its filters cannot
            change anymore (clone it to derive a variant).
    """

    IDLE = "idle"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"


@dataclass
class StoreQuery:
    """
    A query ready to be handed over to a document store: the outcome of
    finalizing a cursor.

    Attributes:
        criteria: the complete criteria, late criteria included.
        projection: the projection (an empty dict means "all fields").
        sort: the store-facing sort, or None for no sort.
        skip: the number of documents to skip (0 for none).
        limit: the maximum number of documents to return (0 for no limit).
    """

    criteria: CriteriaType
    projection: ProjectionType = field(default_factory=dict)
    sort: SortType | None = None
    skip: int = 0
    limit: int = 0


async def _await_and_discard(awaitable: Awaitable[Any]) -> None:
    await awaitable


def _positive_integer(value: Any) -> int:
    return launder_integer(value, default=1, minimum=1)


def _non_negative_integer(value: Any) -> int:
    return launder_integer(value, default=0, minimum=0)


def _with_subclasses(cls: type) -> list[type]:
    classes = [cls]
    for subclass in cls.__subclasses__():
        classes.extend(_with_subclasses(subclass))
    return classes


class BaseDocCursor(FilterHost):
    """
    The machinery common to the sync and async document cursors: the state
    store, the filter registry and the standard filter catalog.

    This class is not meant to be directly instantiated by the user: cursors
    are obtained from a document manager's `find` method, and are instances of
    `DocCursor` or `AsyncDocCursor` (or of application-defined subclasses).

    A cursor is a declarative description of a query: calling filters (all
    chainable) only records values. The query is derived when the cursor is
    finalized, which each of the yielding methods (`to_array`, `to_count` ...)
    does on a fresh clone, so that the cursor can be reused and modified
    between calls.

    Standard filters, in finalization order: `criteria`, `and_`,
    `add_late_criteria`, `log`, `projection`, `default_sort`, `sort`, `skip`,
    `limit`, `per_page`, `page`, `doc_type`, `permission`, `autocomplete`,
    `regex_search`, `search`, `tag`, `tags`, `trash`, `orphan`, `published`,
    `explicit_order`, `previous`, `next`.
    """

    _state: dict[str, Any]
    _declared_state: dict[str, Any] | None
    _cursor_state: CursorState

    def __init__(
        self,
        *,
        manager: BaseDocManager,
        request_context: RequestContext | None,
        options: QueryOptions | None = None,
    ) -> None:
        if request_context is None:
            raise CursorException(
                text="A cursor cannot be created without a request context.",
                cursor_state=CursorState.IDLE.value,
            )
        self.manager = manager
        self.request_context = request_context
        self.options: FullQueryOptions = manager.options.with_override(options)
        self._state = {}
        self._declared_state = None
        self._cursor_state = CursorState.IDLE

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}("{self.manager.store.name}", '
            f"{self._cursor_state.value})"
        )

    # State store

    def set(self: TCURSOR, key: str, value: Any) -> TCURSOR:
        """
        Store a value in the cursor state. This is the low-level primitive
        filter setters are built upon; it does not check the cursor state.

        Returns:
            the cursor itself.
        """

        self._state[key] = value
        return self

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a value from the cursor state, returning `default` if the key was
        never set (or was unset). Note that None is a regular value.
        """

        value = self._state.get(key, _UNSET)
        if isinstance(value, UnsetType):
            return default
        return value

    def is_set(self, key: str) -> bool:
        return not isinstance(self._state.get(key, _UNSET), UnsetType)

    def unset(self: TCURSOR, key: str) -> TCURSOR:
        """Bring a state key back to its "undefined" condition (chainable)."""

        self._state.pop(key, None)
        return self

    @property
    def state(self) -> dict[str, Any]:
        """A deep copy of the cursor state, for inspection."""

        return copy.deepcopy(
            {k: v for k, v in self._state.items() if not isinstance(v, UnsetType)}
        )

    @property
    def cursor_state(self) -> CursorState:
        """
        The current state of this cursor.

        Returns:
            a value in `docquery.data.cursors.cursor.CursorState`.
        """

        return self._cursor_state

    @property
    def finalized(self) -> bool:
        return self._cursor_state == CursorState.FINALIZED

    # Filter registry

    @classmethod
    def filter_registry(cls) -> FilterRegistry:
        """The registry of the filters known to this cursor class, in order."""

        return cls._filter_registry

    @classmethod
    def add_filter(
        cls,
        name: str,
        *,
        default: Any = _UNSET,
        set: Callable[..., Any] | None = None,
        finalize: Callable[..., Any] | None = None,
        async_finalize: Callable[..., Any] | None = None,
        after: Callable[..., Any] | None = None,
        launder: Callable[[Any], Any] | None = None,
        safe_for: str | None = None,
        choices: Callable[..., Any] | None = None,
    ) -> None:
        """
        Register a filter on this cursor class and on all of its subclasses,
        and install its chainable setter method.

        This is meant to be called while the application is being set up:
        the registry must not change while requests are being served.
        Registering an existing name replaces the definition but keeps its
        position in the finalization order.

        Args:
            name: the filter name, also the name of the setter method.
            default: see `FilterDefinition`.
            set: see `FilterDefinition`.
            finalize: see `FilterDefinition`.
            async_finalize: see `FilterDefinition`.
            after: see `FilterDefinition`.
            launder: see `FilterDefinition`.
            safe_for: see `FilterDefinition`.
            choices: see `FilterDefinition`.

        Example:
            >>> def finalize_color(cursor):
            ...     if cursor.get("color"):
            ...         cursor.and_({"color": cursor.get("color")})
            ...
            >>> DocCursor.add_filter("color", finalize=finalize_color)
            >>> manager.find(request_context).color("red").to_count()
            3
        """

        existing = getattr(cls, name, None)
        if existing is not None and not isinstance(existing, FilterSetter):
            raise ValueError(
                f"Cannot add filter '{name}': the name is taken by another "
                f"attribute of {cls.__name__}."
            )
        definition = FilterDefinition(
            name=name,
            default=default,
            set=set,
            finalize=finalize,
            async_finalize=async_finalize,
            after=after,
            launder=launder,
            safe_for=safe_for,
            choices=choices,
        )
        for cursor_class in _with_subclasses(cls):
            cursor_class._filter_registry.register(definition)
        if existing is None:
            setattr(cls, name, FilterSetter(name))

    def _get_filter_definition(self, name: str) -> FilterDefinition:
        definition = self._filter_registry.get(name)
        if definition is None:
            raise UnknownFilterException(
                text=f"Unknown filter '{name}' for {self.__class__.__name__}.",
                cursor_state=self._cursor_state.value,
                filter_name=name,
            )
        return definition

    def _apply_filter(self: TCURSOR, name: str, *args: Any, **kwargs: Any) -> TCURSOR:
        if self._cursor_state == CursorState.FINALIZED:
            raise CursorException(
                text=(
                    f"Cannot set filter '{name}' on a finalized cursor. "
                    "Clone the cursor to derive a modified query."
                ),
                cursor_state=self._cursor_state.value,
            )
        self._get_filter_definition(name).apply_set(self, *args, **kwargs)
        return self

    def apply_filters(self: TCURSOR, filters: dict[str, Any]) -> TCURSOR:
        """
        Apply the filters named in a mapping, each with its value. Values are
        NOT laundered: use `query_to_filters` for anything coming from a user.

        Raises:
            UnknownFilterException: if a name is not a registered filter.
        """

        for name, value in filters.items():
            self._apply_filter(name, value)
        return self

    def query_to_filters(
        self: TCURSOR,
        query: dict[str, Any],
        safe_for: str | None = SAFE_FOR_PUBLIC,
    ) -> TCURSOR:
        """
        Apply the filters found in an untrusted query mapping (for instance,
        query-string parameters), laundering each value first.

        Names that are not registered filters are ignored, as are filters
        without a `launder` function. Unless `safe_for` is "manage" (or None),
        only filters whose `safe_for` equals it are applied.

        Args:
            query: a mapping from filter names to raw values.
            safe_for: the trust domain of the query, "public" by default.

        Returns:
            the cursor itself.
        """

        for name, value in query.items():
            definition = self._filter_registry.get(name)
            if definition is None or definition.launder is None:
                continue
            if (
                safe_for
                and safe_for != SAFE_FOR_MANAGE
                and safe_for != definition.safe_for
            ):
                continue
            self._apply_filter(name, definition.launder(value))
        return self

    # Cloning

    def _copy(self: TCURSOR, state: dict[str, Any]) -> TCURSOR:
        clone = self.__class__(
            manager=self.manager,
            request_context=self.request_context,
            options=self.options,
        )
        clone._state = copy.deepcopy(state)
        return clone

    def clone(self: TCURSOR) -> TCURSOR:
        """
        Create an independent copy of this cursor, bound to the same manager,
        request context and options, with a deep copy of its filter values.
        The clone is not finalized: the clone of a cursor finalized in place
        starts from the values the cursor had before finalization.

        Returns:
            a new cursor of the same class.

        Example:
            >>> base = manager.find(request_context).doc_type("article")
            >>> drafts = base.clone().published(False)
            >>> base.to_count(), drafts.to_count()
            (12, 3)
        """

        if self._declared_state is not None:
            return self._copy(self._declared_state)
        return self._copy(self._state)

    # Finalization engine (the pass loops live in the concrete cursors)

    def _start_finalization(self) -> tuple[dict[str, Any], Any]:
        declared_state = copy.deepcopy(self._state)
        criteria_snapshot = copy.deepcopy(self._state.get("criteria", _UNSET))
        self._cursor_state = CursorState.FINALIZING
        return declared_state, criteria_snapshot

    def _start_pass(self, pass_number: int, criteria_snapshot: Any) -> None:
        max_passes = self.options.max_finalize_passes
        if pass_number > max_passes:
            raise CursorException(
                text=(
                    f"Finalization did not settle after {max_passes} passes: "
                    "some finalizer keeps asking for a new pass."
                ),
                cursor_state=self._cursor_state.value,
            )
        if pass_number > 1:
            logger.debug(f"cursor restarting finalization, pass {pass_number}")
            self._state["criteria"] = copy.deepcopy(criteria_snapshot)
        else:
            logger.debug("cursor starting finalization")

    def _apply_default(self, definition: FilterDefinition) -> None:
        if isinstance(definition.default, UnsetType):
            return
        if not self.is_set(definition.name):
            definition.apply_set(self, copy.deepcopy(definition.default))

    def _wants_refinalize(self, definition: FilterDefinition, outcome: Any) -> bool:
        if outcome is None or outcome == FinalizeOutcome.CONTINUE:
            return False
        if outcome == FinalizeOutcome.REFINALIZE:
            logger.debug(f"filter '{definition.name}' requested a new pass")
            return True
        raise CursorException(
            text=(
                f"The finalizer of filter '{definition.name}' returned "
                f"{outcome!r}, which is not a FinalizeOutcome."
            ),
            cursor_state=self._cursor_state.value,
        )

    def _complete_finalization(self, declared_state: dict[str, Any]) -> None:
        self._declared_state = declared_state
        self._cursor_state = CursorState.FINALIZED
        logger.debug("cursor finalized")

    def _abort_finalization(self, declared_state: dict[str, Any]) -> None:
        self._state = declared_state
        self._cursor_state = CursorState.IDLE

    # Materialization helpers

    def _build_store_query(self) -> StoreQuery:
        criteria = self.get("criteria") or {}
        late_criteria = self.get("late_criteria")
        if late_criteria:
            criteria = {**criteria, **late_criteria}
        if self.get("explicit_order") is not None:
            # applied after resequencing, see _after_explicit_order
            skip, limit = 0, 0
        else:
            skip, limit = self.get("skip") or 0, self.get("limit") or 0
        return StoreQuery(
            criteria=criteria,
            projection=self.get("projection") or {},
            sort=self.get("store_sort"),
            skip=skip,
            limit=limit,
        )

    def _log_query(self, query: StoreQuery, operation: str) -> None:
        if self.get("log") or self.options.log_all_queries:
            logger.info(
                f"cursor {operation} on {self.manager.store.name}: "
                f"criteria={query.criteria!r}, projection={query.projection!r}, "
                f"sort={query.sort!r}, skip={query.skip}, limit={query.limit}"
            )

    def _choice_cursor(self: TCURSOR, property: str) -> TCURSOR:
        choice_cursor = self.clone()
        choice_cursor.unset(property)
        for key in ("skip", "limit", "page", "per_page"):
            choice_cursor.unset(key)
        return choice_cursor

    def _narrowed_to_choice(self: TCURSOR, property: str, value: Any) -> TCURSOR:
        narrowed = self.clone()
        if property in self._filter_registry:
            return narrowed._apply_filter(property, value)
        return narrowed.and_({property: value})

    @staticmethod
    def _normalize_choices(values: Iterable[Any]) -> list[dict[str, Any]]:
        choices: list[dict[str, Any]] = []
        for value in values:
            if isinstance(value, dict) and "value" in value:
                choices.append({"label": str(value["value"]), **value})
            else:
                choices.append({"label": str(value), "value": value})
        return choices

    # Standard filter catalog

    criteria = Filter(default={})

    @criteria.setter
    def _set_criteria(self, criteria: CriteriaType) -> None:
        self.set("criteria", copy.deepcopy(criteria))

    and_ = Filter()

    @and_.setter
    def _set_and(self, criteria: CriteriaType | None) -> None:
        if not criteria:
            return
        existing = self.get("criteria")
        if not existing:
            self.set("criteria", copy.deepcopy(criteria))
        else:
            self.set("criteria", {"$and": [existing, copy.deepcopy(criteria)]})

    add_late_criteria = Filter()

    @add_late_criteria.setter
    def _set_late_criteria(self, criteria: CriteriaType | None) -> None:
        if not criteria:
            return
        late_criteria = self.get("late_criteria") or {}
        self.set("late_criteria", {**late_criteria, **copy.deepcopy(criteria)})

    log = Filter(default=False)

    projection = Filter()

    @projection.finalizer
    def _finalize_projection(self) -> None:
        if self.get("search") and not self.get("regex_search"):
            projection = dict(self.get("projection") or {})
            projection[self.options.text_score_field] = dict(TEXT_SCORE_META)
            self.set("projection", projection)

    default_sort = Filter()

    sort = Filter()

    @sort.finalizer
    def _finalize_sort(self) -> None:
        if autocomplete_words(self.get("autocomplete")):
            # the sort depends on the search autocomplete is about to set
            return
        sort = self.get("sort")
        search = self.get("search")
        if not search and sort == SORT_SCORE_DIRECTIVE:
            sort = None
        resolved: SortType | None
        if sort is False:
            resolved = None
        elif search and (not sort or sort == SORT_SCORE_DIRECTIVE):
            if self.get("regex_search"):
                resolved = self._default_sort()
            else:
                resolved = {self.options.text_score_field: dict(TEXT_SCORE_META)}
        elif not sort:
            resolved = self._default_sort()
        else:
            resolved = copy.deepcopy(sort)
        self.set("resolved_sort", resolved)
        self.set("store_sort", self._sortified_sort(resolved))

    def _default_sort(self) -> SortType:
        default_sort = self.get("default_sort")
        if not default_sort or default_sort == SORT_SCORE_DIRECTIVE:
            default_sort = self.options.default_sort
        return copy.deepcopy(default_sort)

    def _sortified_sort(self, sort: SortType | None) -> SortType | None:
        if not sort:
            return None
        sortified_fields = self.manager.sortified_fields(self.get("doc_type"))
        return {
            (
                self.manager.sortified_field_name(key)
                if key in sortified_fields
                else key
            ): value
            for key, value in sort.items()
        }

    skip = Filter(launder=_non_negative_integer, safe_for=SAFE_FOR_PUBLIC)

    limit = Filter(launder=_non_negative_integer, safe_for=SAFE_FOR_PUBLIC)

    per_page = Filter(launder=_positive_integer, safe_for=SAFE_FOR_MANAGE)

    page = Filter(default=1, launder=_positive_integer, safe_for=SAFE_FOR_PUBLIC)

    @page.finalizer
    def _finalize_page(self) -> None:
        per_page = self.get("per_page")
        if per_page:
            self.set("skip", (self.get("page", 1) - 1) * per_page)
            self.set("limit", per_page)

    doc_type = Filter(launder=launder_string, safe_for=SAFE_FOR_MANAGE)

    @doc_type.finalizer
    def _finalize_doc_type(self) -> None:
        doc_type = self.get("doc_type")
        if doc_type:
            self.and_({"type": doc_type})

    @doc_type.choices
    def _doc_type_choices(self) -> Any:
        return self.to_distinct("type")  # type: ignore[attr-defined]

    permission = Filter()

    def _resolved_permission(self) -> str | None:
        permission = self.get("permission")
        if permission is False:
            return None
        if permission is None:
            permission = self.options.default_permission
        if "-" not in permission:
            doc_type = self.get("doc_type") or DEFAULT_PERMISSION_TYPE
            permission = f"{permission}-{doc_type}"
        return permission

    @permission.finalizer
    def _finalize_permission(self) -> None:
        permission = self._resolved_permission()
        evaluator = self.manager.permissions
        if permission is None or evaluator is None:
            return
        self.and_(evaluator.criteria(self.request_context, permission))

    @permission.after
    def _after_permission(self, rows: list[DocumentType]) -> Any:
        permission = self._resolved_permission()
        annotate = getattr(self.manager.permissions, "annotate", None)
        if permission is None or annotate is None:
            return None
        annotated = annotate(self.request_context, permission, rows)
        if inspect.isawaitable(annotated):
            return _await_and_discard(annotated)
        return None

    autocomplete = Filter(launder=launder_string, safe_for=SAFE_FOR_PUBLIC)

    @autocomplete.finalizer
    def _finalize_autocomplete(self) -> FinalizeOutcome | None:
        return finalize_autocomplete(self)  # type: ignore[arg-type]

    @autocomplete.async_finalizer
    async def _async_finalize_autocomplete(self) -> FinalizeOutcome | None:
        return await async_finalize_autocomplete(self)  # type: ignore[arg-type]

    regex_search = Filter(launder=launder_boolean, safe_for=SAFE_FOR_MANAGE)

    search = Filter(launder=launder_string, safe_for=SAFE_FOR_PUBLIC)

    @search.finalizer
    def _finalize_search(self) -> None:
        search = self.get("search")
        if not search:
            return
        if self.get("regex_search"):
            self.and_({HIGH_SEARCH_TEXT_FIELD: searchify(search)})
        else:
            self.and_({"$text": {"$search": search}})

    tag = Filter(launder=launder_string, safe_for=SAFE_FOR_PUBLIC)

    @tag.finalizer
    def _finalize_tag(self) -> None:
        tag = self.get("tag")
        if tag:
            self.and_({"tags": tag})

    @tag.choices
    def _tag_choices(self) -> Any:
        return self.to_distinct("tags")  # type: ignore[attr-defined]

    tags = Filter(launder=launder_strings, safe_for=SAFE_FOR_PUBLIC)

    @tags.setter
    def _set_tags(self, tags: str | Iterable[str] | None) -> None:
        if isinstance(tags, str):
            tags = [tags]
        self.set("tags", None if tags is None else list(tags))

    @tags.finalizer
    def _finalize_tags(self) -> None:
        tags = self.get("tags")
        if tags:
            self.and_({"tags": {"$in": list(tags)}})

    @tags.choices
    def _tags_choices(self) -> Any:
        return self.to_distinct("tags")  # type: ignore[attr-defined]

    trash = Filter(
        default=False, launder=launder_boolean_or_none, safe_for=SAFE_FOR_MANAGE
    )

    @trash.finalizer
    def _finalize_trash(self) -> None:
        trash = self.get("trash", False)
        if trash is None:
            return
        if trash:
            self.and_({"trash": True})
        else:
            self.and_({"trash": {"$ne": True}})

    orphan = Filter(launder=launder_boolean_or_none, safe_for=SAFE_FOR_MANAGE)

    @orphan.finalizer
    def _finalize_orphan(self) -> None:
        orphan = self.get("orphan")
        if orphan is None:
            return
        if orphan:
            self.and_({"orphan": True})
        else:
            self.and_({"orphan": {"$ne": True}})

    published = Filter(
        default=True, launder=launder_boolean_or_none, safe_for=SAFE_FOR_MANAGE
    )

    @published.finalizer
    def _finalize_published(self) -> None:
        published = self.get("published", True)
        if published is None:
            return
        if published:
            self.and_({"published": True})
        else:
            self.and_({"published": {"$ne": True}})

    explicit_order = Filter()

    @explicit_order.setter
    def _set_explicit_order(
        self,
        values: Iterable[Any] | None,
        property: str = DEFAULT_EXPLICIT_ORDER_PROPERTY,
    ) -> None:
        self.set("explicit_order", None if values is None else list(values))
        self.set("explicit_order_property", property)

    @explicit_order.finalizer
    def _finalize_explicit_order(self) -> None:
        values = self.get("explicit_order")
        if values is None:
            return
        if not values:
            self.and_({"_id": self.options.never_match_id})
            return
        property = self.get("explicit_order_property", DEFAULT_EXPLICIT_ORDER_PROPERTY)
        self.and_({property: {"$in": values}})

    @explicit_order.after
    def _after_explicit_order(self, rows: list[DocumentType]) -> list[DocumentType]:
        values = self.get("explicit_order")
        if values is None:
            return rows
        property = self.get("explicit_order_property", DEFAULT_EXPLICIT_ORDER_PROPERTY)
        ordered = order_by_key(values, rows, property)
        skip = self.get("skip") or 0
        limit = self.get("limit") or 0
        ordered = ordered[skip:]
        if limit:
            ordered = ordered[:limit]
        return ordered

    previous = Filter()

    @previous.finalizer
    def _finalize_previous(self) -> None:
        self._narrow_to_neighbors(self.get("previous"), -1)

    next = Filter()

    @next.finalizer
    def _finalize_next(self) -> None:
        self._narrow_to_neighbors(self.get("next"), 1)

    def _narrow_to_neighbors(
        self,
        document: DocumentType | None,
        direction: int,
    ) -> None:
        """
        Narrow the query to the documents coming after (direction 1) or before
        (direction -1) a given document in the sort order, nearest first.
        For the sort `{"a": 1, "b": 1}` and direction 1 these are the documents
        with `a` greater than the document's, or equal `a` and greater `b`,
        or equal `a` and `b` and greater `_id`.
        """

        sort = self.get("store_sort")
        if not document or not sort:
            return
        clauses: list[CriteriaType] = []
        left_hand: CriteriaType = {}
        for key, order in sort.items():
            if order not in (1, -1):
                # text score and other special sorts cannot be bracketed
                continue
            value = get_path_value(document, key)
            value = None if value is MISSING else value
            operator = "$gt" if order == direction else "$lt"
            clauses.append({**left_hand, key: {operator: value}})
            left_hand[key] = value
        neighbor_sort = dict(sort)
        if direction == -1:
            # walking backwards: nearest first means the reverse order
            for key, order in sort.items():
                if order in (1, -1):
                    neighbor_sort[key] = -order
        if "_id" not in sort:
            operator = "$gt" if direction == 1 else "$lt"
            clauses.append({**left_hand, "_id": {operator: document.get("_id")}})
            neighbor_sort["_id"] = direction
        self.set("store_sort", neighbor_sort)
        self.and_({"$or": clauses})
