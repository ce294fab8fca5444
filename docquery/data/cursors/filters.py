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
Named filters and the per-class registry that orders them.

A filter bundles a chainable setter (`cursor.trash(True)`), an optional
default, an optional finalizer run when the cursor is finalized, and an optional
`after` hook run on the loaded rows. Filters are declared in a cursor class body:

    class ArticleCursor(DocCursor):
        featured = Filter(default=None, launder=launder_boolean_or_none)

        @featured.finalizer
        def _finalize_featured(self) -> None:
            if self.get("featured") is not None:
                self.and_({"featured": self.get("featured")})

or registered at application startup with `ArticleCursor.add_filter(...)`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterator, TypeVar

from docquery.utils.unset import _UNSET

if TYPE_CHECKING:
    from docquery.data.cursors.cursor import BaseDocCursor


THOOK = TypeVar("THOOK", bound=Callable[..., Any])


class FinalizeOutcome(Enum):
    """
    What a finalizer asks of the finalization engine.

    Values:
        CONTINUE: go on with the next filter (returning None means the same).
        REFINALIZE: the finalizer rewrote filter values that filters registered
            earlier depend on: restore the criteria and start over.
    """

    CONTINUE = "continue"
    REFINALIZE = "refinalize"


class _MethodHook:
    """
    A filter hook resolved by method name on the cursor at call time,
    so that subclasses override hooks by plain method overriding.
    """

    def __init__(self, method_name: str) -> None:
        self.method_name = method_name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.method_name!r})"

    def __call__(self, cursor: Any, *args: Any, **kwargs: Any) -> Any:
        return getattr(cursor, self.method_name)(*args, **kwargs)


@dataclass
class FilterDefinition:
    """
    The complete description of a named filter.

    All callables receive the cursor as their first argument.

    Attributes:
        name: the filter name, which is also the name of the chainable
            setter method on the cursor and the default state key.
        default: the value passed to the setter at finalization time if the
            filter is still undefined. _UNSET means "no default".
        set: the setter, called as `set(cursor, *args, **kwargs)`. If None,
            the single argument is stored verbatim under `name`.
        finalize: the finalizer, called as `finalize(cursor)`. It may return
            None or a FinalizeOutcome.
        async_finalize: a coroutine-function counterpart of `finalize`, which
            async cursors prefer when both are given.
        after: called as `after(cursor, rows)` once the rows are loaded. It may
            return a new list of rows (or None to keep the list it received).
        launder: turns an untrusted value (for instance from a query string)
            into an admissible one. Only laundered filters can be applied by
            `query_to_filters`.
        safe_for: "public" or "manage", see `query_to_filters`.
        choices: called as `choices(cursor)`, returns the list of choices for
            the filter, see `to_choices`.
    """

    name: str
    default: Any = _UNSET
    set: Callable[..., Any] | None = None
    finalize: Callable[..., Any] | None = None
    async_finalize: Callable[..., Any] | None = None
    after: Callable[..., Any] | None = None
    launder: Callable[[Any], Any] | None = None
    safe_for: str | None = None
    choices: Callable[..., Any] | None = None

    def apply_set(self, cursor: BaseDocCursor, *args: Any, **kwargs: Any) -> None:
        if self.set is not None:
            self.set(cursor, *args, **kwargs)
            return
        if len(args) != 1 or kwargs:
            raise TypeError(
                f"Filter '{self.name}' takes exactly one positional argument."
            )
        cursor.set(self.name, args[0])


class FilterSetter:
    """
    A descriptor exposing a filter as a chainable method of the cursor:
    `cursor.trash(True)` applies the filter setter and returns the cursor.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name

    def __set_name__(self, owner: type, name: str) -> None:
        if self.name is None:
            self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        filter_name = self.name
        if filter_name is None:
            raise RuntimeError("Filter descriptor was never bound to a name.")

        def _chainable(*args: Any, **kwargs: Any) -> Any:
            return instance._apply_filter(filter_name, *args, **kwargs)

        _chainable.__name__ = filter_name
        _chainable.__doc__ = f"Set the '{filter_name}' filter and return the cursor."
        return _chainable


class Filter(FilterSetter):
    """
    Declare a named filter in the body of a cursor class.

    The filter takes the name of the class attribute it is assigned to.
    Hooks are attached with the decorators `setter`, `finalizer`,
    `async_finalizer`, `after` and `choices`: the decorated functions stay
    ordinary methods of the class (so they must have a name different from
    the filter) and are looked up by name each time they are needed.

    Args:
        default: the value the setter receives at finalization time when the
            filter was never set. Leave unspecified for no default.
        launder: see `FilterDefinition.launder`.
        safe_for: see `FilterDefinition.safe_for`.

    Example:
        >>> class MyCursor(DocCursor):
        ...     color = Filter(launder=launder_string, safe_for="public")
        ...
        ...     @color.finalizer
        ...     def _finalize_color(self) -> None:
        ...         if self.get("color"):
        ...             self.and_({"color": self.get("color")})
        ...
        >>> cursor = manager.find(request_context).color("red")
    """

    def __init__(
        self,
        default: Any = _UNSET,
        *,
        launder: Callable[[Any], Any] | None = None,
        safe_for: str | None = None,
    ) -> None:
        super().__init__()
        self.default = default
        self.launder = launder
        self.safe_for = safe_for
        self._set_hook: str | None = None
        self._finalize_hook: str | None = None
        self._async_finalize_hook: str | None = None
        self._after_hook: str | None = None
        self._choices_hook: str | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    def setter(self, method: THOOK) -> THOOK:
        self._set_hook = method.__name__
        return method

    def finalizer(self, method: THOOK) -> THOOK:
        self._finalize_hook = method.__name__
        return method

    def async_finalizer(self, method: THOOK) -> THOOK:
        self._async_finalize_hook = method.__name__
        return method

    def after(self, method: THOOK) -> THOOK:
        self._after_hook = method.__name__
        return method

    def choices(self, method: THOOK) -> THOOK:
        self._choices_hook = method.__name__
        return method

    def to_definition(self) -> FilterDefinition:
        if self.name is None:
            raise RuntimeError("Filter descriptor was never bound to a name.")

        def _hook(method_name: str | None) -> _MethodHook | None:
            return _MethodHook(method_name) if method_name is not None else None

        return FilterDefinition(
            name=self.name,
            default=self.default,
            set=_hook(self._set_hook),
            finalize=_hook(self._finalize_hook),
            async_finalize=_hook(self._async_finalize_hook),
            after=_hook(self._after_hook),
            launder=self.launder,
            safe_for=self.safe_for,
            choices=_hook(self._choices_hook),
        )


class FilterRegistry:
    """
    An ordered collection of filter definitions, keyed by name.
    The iteration order is the registration order, which is also the order
    in which filters are finalized. Registering a name again replaces the
    definition but keeps its original position.
    """

    def __init__(self) -> None:
        self._definitions: dict[str, FilterDefinition] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(self._definitions)})"

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self) -> Iterator[FilterDefinition]:
        return iter(list(self._definitions.values()))

    def __len__(self) -> int:
        return len(self._definitions)

    def register(self, definition: FilterDefinition) -> None:
        self._definitions[definition.name] = definition

    def get(self, name: str) -> FilterDefinition | None:
        return self._definitions.get(name)

    def names(self) -> list[str]:
        return list(self._definitions)

    def copy(self) -> FilterRegistry:
        registry = FilterRegistry()
        registry._definitions = dict(self._definitions)
        return registry


class FilterHost:
    """
    Mixin building the filter registry of each class at creation time:
    inherited filters first, in base-class order, then the filters declared
    in the class body, in declaration order.
    """

    _filter_registry: FilterRegistry = FilterRegistry()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        registry = FilterRegistry()
        for base in reversed(cls.__mro__[1:]):
            base_registry = base.__dict__.get("_filter_registry")
            if isinstance(base_registry, FilterRegistry):
                for definition in base_registry:
                    registry.register(definition)
        for attribute in cls.__dict__.values():
            if isinstance(attribute, Filter):
                registry.register(attribute.to_definition())
        cls._filter_registry = registry
