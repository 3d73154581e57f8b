"""
QueryBackend — the public entry point.

Ties validation, composition and an execution adapter together and owns the
option provider chain. Module-level functions at the bottom delegate to a
default backend built from the environment and the library defaults.

Usage::

    backend = QueryBackend(SQLAlchemyAdapter(Pet, session=session), max_limit=100)
    records, meta = backend.validate_and_run_or_raise(
        select(Pet), request.query_params, registry=pets
    )
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .adapters.memory import MemoryAdapter, MemoryQuery
from .composer import QueryComposer
from .config import (
    LIBRARY_DEFAULTS,
    OptionResolver,
    QueryOptions,
    QueryParamsSettings,
)
from .exceptions import InvalidParamsError, NoAdapterError
from .metadata import Meta, cursor_meta, offset_meta
from .operators import PaginationType
from .params import Parameters
from .validation import ParameterValidator
from .violations import ValidationResult

if TYPE_CHECKING:
    from .adapters.base import QueryAdapter

logger = logging.getLogger(__name__)

_CURSOR_TYPES = (PaginationType.FIRST, PaginationType.LAST)


class QueryBackend:
    """
    Validate, compose and run list queries against one execution adapter.

    Keyword arguments passed to the constructor become backend-wide
    defaults (see :class:`~cqrs_ddd_query_params.config.QueryOptions`);
    the same keywords passed to a method override them for that call.
    """

    def __init__(
        self,
        adapter: QueryAdapter | None = None,
        *,
        settings: QueryParamsSettings | None = None,
        **defaults: Any,
    ) -> None:
        self.adapter = adapter
        self.settings = settings if settings is not None else QueryParamsSettings()
        self.defaults = QueryOptions.of(**defaults)

    # -- options -------------------------------------------------------------

    def resolver(self, options: QueryOptions | None = None) -> OptionResolver:
        options = options or QueryOptions()
        registry = options.registry or self.defaults.registry
        return OptionResolver(
            [options, registry, self.defaults, self.settings, LIBRARY_DEFAULTS]
        )

    def _resolve(self, opts: Mapping[str, Any]) -> OptionResolver:
        return self.resolver(QueryOptions.of(**opts))

    def _composer(self, resolver: OptionResolver) -> QueryComposer:
        return QueryComposer(resolver.registry, extra_opts=resolver.get("extra_opts"))

    def _adapter_for(
        self, queryable: Any, adapter: QueryAdapter | None, operation: str
    ) -> QueryAdapter:
        if adapter is not None:
            return adapter
        if self.adapter is not None:
            return self.adapter
        if isinstance(queryable, (list, tuple, MemoryQuery)):
            return MemoryAdapter()
        raise NoAdapterError(operation)

    def _params(
        self, params: Mapping[str, Any] | Parameters, resolver: OptionResolver
    ) -> Parameters:
        if isinstance(params, Parameters):
            return params
        result = ParameterValidator(resolver).validate(params)
        if not result:
            raise InvalidParamsError(params, result.errors)
        return result.params

    # -- validation ----------------------------------------------------------

    def validate(
        self, params: Mapping[str, Any] | Parameters, **opts: Any
    ) -> ValidationResult:
        """Validate raw parameters; never raises for invalid input."""
        return ParameterValidator(self._resolve(opts)).validate(params)

    def validate_or_raise(
        self, params: Mapping[str, Any] | Parameters, **opts: Any
    ) -> Parameters:
        """
        Validate raw parameters.

        Raises:
            InvalidParamsError: Carrying the raw parameters and every violation.
        """
        result = self.validate(params, **opts)
        if not result:
            raw = params.to_dict() if isinstance(params, Parameters) else params
            raise InvalidParamsError(raw, result.errors)
        return result.params

    # -- composition ---------------------------------------------------------

    def query(
        self,
        queryable: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> Any:
        """
        Apply filtering, ordering and pagination to *queryable*.

        Already validated :class:`Parameters` are used as they are; raw
        mappings are validated first and raise on error.
        """
        resolver = self._resolve(opts)
        adapter = self._adapter_for(queryable, adapter, "query")
        operations = self._composer(resolver).compose(self._params(params, resolver))
        return adapter.apply_all(queryable, operations)

    def filter(
        self,
        queryable: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> Any:
        resolver = self._resolve(opts)
        adapter = self._adapter_for(queryable, adapter, "filter")
        operation = self._composer(resolver).filter_operation(self._params(params, resolver))
        if operation is None:
            return queryable
        return adapter.apply(queryable, operation)

    def order_by(
        self,
        queryable: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> Any:
        resolver = self._resolve(opts)
        adapter = self._adapter_for(queryable, adapter, "order_by")
        operation = self._composer(resolver).order_operation(self._params(params, resolver))
        if operation is None:
            return queryable
        return adapter.apply(queryable, operation)

    def paginate(
        self,
        queryable: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> Any:
        """Apply only the page bound (limit/offset or cursor seek with probe row)."""
        resolver = self._resolve(opts)
        adapter = self._adapter_for(queryable, adapter, "paginate")
        operation = self._composer(resolver).page_bound_operation(
            self._params(params, resolver)
        )
        if operation is None:
            return queryable
        return adapter.apply(queryable, operation)

    # -- execution -----------------------------------------------------------

    def count(
        self,
        queryable: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> int:
        """Total number of rows matching the filters, ignoring order and paging."""
        adapter = self._adapter_for(queryable, adapter, "count")
        filtered = self.filter(queryable, params, adapter=adapter, **opts)
        return adapter.count(filtered)

    def meta(
        self,
        queryable_or_records: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> Meta:
        """
        Pagination metadata for a query.

        For cursor pagination a list is taken to be the already fetched
        window (including the probe row); any other queryable is composed
        and fetched. Offset and page metadata always count the filtered
        queryable.
        """
        resolver = self._resolve(opts)
        validated = self._params(params, resolver)
        if validated.pagination_type in _CURSOR_TYPES:
            if isinstance(queryable_or_records, list):
                window = queryable_or_records
            else:
                window = self._fetch(queryable_or_records, validated, adapter, **opts)
            _, meta = self._cursor_meta(validated, window, resolver)
            return meta
        total_count = self.count(queryable_or_records, validated, adapter=adapter, **opts)
        return offset_meta(validated, total_count)

    def run(
        self,
        queryable: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> tuple[list[Any], Meta]:
        """Fetch one page of records together with its metadata."""
        resolver = self._resolve(opts)
        validated = self._params(params, resolver)
        window = self._fetch(queryable, validated, adapter, **opts)

        if validated.pagination_type in _CURSOR_TYPES:
            return self._cursor_meta(validated, window, resolver)

        total_count = self.count(queryable, validated, adapter=adapter, **opts)
        return window, offset_meta(validated, total_count)

    def _fetch(
        self,
        queryable: Any,
        params: Parameters,
        adapter: QueryAdapter | None,
        **opts: Any,
    ) -> list[Any]:
        adapter = self._adapter_for(queryable, adapter, "run")
        return adapter.fetch(self.query(queryable, params, adapter=adapter, **opts))

    def _cursor_meta(
        self, params: Parameters, window: list[Any], resolver: OptionResolver
    ) -> tuple[list[Any], Meta]:
        return cursor_meta(
            params,
            window,
            cursor_value_func=resolver.get("cursor_value_func"),
            registry=resolver.registry,
        )

    # -- validate + run ------------------------------------------------------

    def validate_and_run(
        self,
        queryable: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> tuple[list[Any], Meta] | ValidationResult:
        """
        Validate and run in one step.

        Returns ``(records, meta)`` on success and the failed
        :class:`ValidationResult` otherwise.
        """
        result = self.validate(params, **opts)
        if not result:
            logger.debug("Rejected query parameters: %s", sorted(result.errors))
            return result
        return self.run(queryable, result.params, adapter=adapter, **opts)

    def validate_and_run_or_raise(
        self,
        queryable: Any,
        params: Mapping[str, Any] | Parameters,
        *,
        adapter: QueryAdapter | None = None,
        **opts: Any,
    ) -> tuple[list[Any], Meta]:
        validated = self.validate_or_raise(params, **opts)
        return self.run(queryable, validated, adapter=adapter, **opts)


# ---------------------------------------------------------------------------
# Module-level API
# ---------------------------------------------------------------------------

_default_backend: QueryBackend | None = None


def get_default_backend() -> QueryBackend:
    """Backend without an adapter, configured from the environment."""
    global _default_backend
    if _default_backend is None:
        _default_backend = QueryBackend()
    return _default_backend


def validate(params: Mapping[str, Any] | Parameters, **opts: Any) -> ValidationResult:
    return get_default_backend().validate(params, **opts)


def validate_or_raise(params: Mapping[str, Any] | Parameters, **opts: Any) -> Parameters:
    return get_default_backend().validate_or_raise(params, **opts)


def query(queryable: Any, params: Mapping[str, Any] | Parameters, **opts: Any) -> Any:
    return get_default_backend().query(queryable, params, **opts)


def filter(  # noqa: A001
    queryable: Any, params: Mapping[str, Any] | Parameters, **opts: Any
) -> Any:
    return get_default_backend().filter(queryable, params, **opts)


def order_by(queryable: Any, params: Mapping[str, Any] | Parameters, **opts: Any) -> Any:
    return get_default_backend().order_by(queryable, params, **opts)


def paginate(queryable: Any, params: Mapping[str, Any] | Parameters, **opts: Any) -> Any:
    return get_default_backend().paginate(queryable, params, **opts)


def count(queryable: Any, params: Mapping[str, Any] | Parameters, **opts: Any) -> int:
    return get_default_backend().count(queryable, params, **opts)


def meta(queryable_or_records: Any, params: Mapping[str, Any] | Parameters, **opts: Any) -> Meta:
    return get_default_backend().meta(queryable_or_records, params, **opts)


def run(
    queryable: Any, params: Mapping[str, Any] | Parameters, **opts: Any
) -> tuple[list[Any], Meta]:
    return get_default_backend().run(queryable, params, **opts)


def validate_and_run(
    queryable: Any, params: Mapping[str, Any] | Parameters, **opts: Any
) -> tuple[list[Any], Meta] | ValidationResult:
    return get_default_backend().validate_and_run(queryable, params, **opts)


def validate_and_run_or_raise(
    queryable: Any, params: Mapping[str, Any] | Parameters, **opts: Any
) -> tuple[list[Any], Meta]:
    return get_default_backend().validate_and_run_or_raise(queryable, params, **opts)
