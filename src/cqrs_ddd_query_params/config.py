"""
Layered option resolution.

Every tunable (default limit, allowed pagination types, feature switches...)
is looked up through an :class:`OptionResolver` built from an explicit,
ordered provider chain. The first provider returning a non-``None`` value
wins. The chain used by :class:`~cqrs_ddd_query_params.backend.QueryBackend`
is::

    call-site QueryOptions → FieldRegistry → backend defaults
        → QueryParamsSettings (environment) → LIBRARY_DEFAULTS

Environment variables use the ``QUERY_PARAMS_`` prefix.
Example: ``QUERY_PARAMS_DEFAULT_LIMIT=50``, ``QUERY_PARAMS_MAX_LIMIT=100``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .operators import PaginationType
from .params import DefaultOrder

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .registry import FieldRegistry


@runtime_checkable
class OptionProvider(Protocol):
    """Anything that can answer an option lookup, ``None`` meaning "not set"."""

    def get_option(self, key: str) -> Any: ...


@dataclass(frozen=True, slots=True)
class QueryOptions:
    """
    Options supplied at a call site or as backend defaults.

    Attributes:
        registry: Field configuration of the queried data model. ``None``
            allows every field for filtering and ordering.
        default_limit: Page size applied when the request has none.
        max_limit: Upper bound for any page size. ``False`` disables a
            bound set further down the chain.
        default_order: Ordering used when the request has none.
        pagination_types: Allowed pagination strategies.
        default_pagination_type: Strategy assumed when the request picks none.
        filtering / ordering / pagination: Feature switches. Disabled
            features ignore the corresponding request parameters.
        replace_invalid_params: Correct or drop invalid values instead of
            reporting errors.
        cursor_value_func: ``(item, order_by) -> mapping`` used to build cursors.
        extra_opts: Passed to custom-field handlers.
    """

    registry: FieldRegistry | None = None
    default_limit: int | None = None
    max_limit: int | Literal[False] | None = None
    default_order: DefaultOrder | None = None
    pagination_types: frozenset[PaginationType] | None = None
    default_pagination_type: PaginationType | None = None
    filtering: bool | None = None
    ordering: bool | None = None
    pagination: bool | None = None
    replace_invalid_params: bool | None = None
    cursor_value_func: Callable[[Any, Sequence[str]], Mapping[str, Any]] | None = None
    extra_opts: Mapping[str, Any] | None = None

    @classmethod
    def of(cls, **options: Any) -> QueryOptions:
        """
        Build options from loosely typed keyword arguments.

        Accepts plain strings for pagination types and a mapping or pair for
        ``default_order``; unknown keywords raise ``TypeError``.
        """
        if options.get("pagination_types") is not None:
            options["pagination_types"] = frozenset(
                PaginationType(t) for t in options["pagination_types"]
            )
        if options.get("default_pagination_type") is not None:
            options["default_pagination_type"] = PaginationType(
                options["default_pagination_type"]
            )
        default_order = options.get("default_order")
        if default_order is not None and not isinstance(default_order, DefaultOrder):
            if isinstance(default_order, Mapping):
                options["default_order"] = DefaultOrder.of(
                    default_order["order_by"], default_order.get("order_directions")
                )
            else:
                options["default_order"] = DefaultOrder.of(*default_order)
        return cls(**options)

    def get_option(self, key: str) -> Any:
        return getattr(self, key, None)


class QueryParamsSettings(BaseSettings):
    """
    Process-wide defaults read from the environment.

    Every field is optional; unset values fall through to the library defaults.
    ``QUERY_PARAMS_PAGINATION_TYPES`` takes a JSON list, e.g. ``'["offset","page"]'``.
    """

    default_limit: int | None = Field(default=None, ge=1)
    max_limit: int | None = Field(default=None, ge=1)
    default_pagination_type: PaginationType | None = None
    pagination_types: frozenset[PaginationType] | None = None
    filtering: bool | None = None
    ordering: bool | None = None
    pagination: bool | None = None
    replace_invalid_params: bool | None = None

    model_config = SettingsConfigDict(
        env_prefix="QUERY_PARAMS_",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    def get_option(self, key: str) -> Any:
        return getattr(self, key, None)


class _LibraryDefaults:
    def __init__(self) -> None:
        self._values: dict[str, Any] = {
            "filtering": True,
            "ordering": True,
            "pagination": True,
            "replace_invalid_params": False,
            "pagination_types": frozenset(PaginationType),
        }

    def get_option(self, key: str) -> Any:
        return self._values.get(key)


LIBRARY_DEFAULTS: OptionProvider = _LibraryDefaults()


class OptionResolver:
    """
    Resolve options against an ordered provider chain.

    Usage::

        resolver = OptionResolver([call_site, registry, settings, LIBRARY_DEFAULTS])
        resolver.get("default_limit")
    """

    def __init__(self, providers: Sequence[OptionProvider | None]) -> None:
        self._providers = tuple(p for p in providers if p is not None)

    @property
    def providers(self) -> tuple[OptionProvider, ...]:
        return self._providers

    def get(self, key: str, default: Any = None) -> Any:
        for provider in self._providers:
            value = provider.get_option(key)
            if value is not None:
                return value
        return default

    # -- typed shortcuts -----------------------------------------------------

    def enabled(self, feature: str) -> bool:
        return bool(self.get(feature, True))

    @property
    def registry(self) -> FieldRegistry | None:
        return self.get("registry")

    @property
    def default_limit(self) -> int | None:
        return self.get("default_limit")

    @property
    def max_limit(self) -> int | None:
        value = self.get("max_limit")
        if value is False:
            return None
        return value

    @property
    def pagination_types(self) -> frozenset[PaginationType]:
        return frozenset(self.get("pagination_types", frozenset(PaginationType)))

    @property
    def replace_invalid_params(self) -> bool:
        return bool(self.get("replace_invalid_params", False))
