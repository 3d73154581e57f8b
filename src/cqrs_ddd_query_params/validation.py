"""
Parameter validation.

``ParameterValidator`` turns untrusted, flat request parameters into
canonical :class:`~cqrs_ddd_query_params.params.Parameters`. The pipeline
runs in a fixed order, each stage seeing what the previous one normalized:

1. cast the parameters of every enabled feature (filtering, ordering,
   pagination);
2. reject combinations of pagination groups;
3. apply the default order and check ``order_by`` against the sortable set;
4. check the pagination strategy is allowed, then validate and default the
   parameters of that strategy;
5. validate each filter clause against the field registry and the operator
   catalog.

Violations are accumulated, never raised. With ``replace_invalid_params``
every violation that has a correction (a default, a removal) is applied
silently and logged at DEBUG level instead of being reported.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from . import violations as v
from .catalog import allowed_operators, cast_value
from .cursor import decode_cursor
from .exceptions import InvalidCursorError
from .fields import AliasField
from .operators import (
    PAGINATION_GROUPS,
    FilterOperator,
    OrderDirection,
    PaginationType,
)
from .params import Filter, Parameters
from .registry import FieldRegistry
from .violations import ValidationResult, Violation, ViolationKind

if TYPE_CHECKING:
    from .config import OptionResolver

logger = logging.getLogger(__name__)

_INT = TypeAdapter(int)
_STR = TypeAdapter(str)
_STR_LIST = TypeAdapter(list[str])
_DIRECTION = TypeAdapter(OrderDirection)

_INT_FIELDS = ("limit", "offset", "page", "page_size", "first", "last")
_CURSOR_FIELDS = ("after", "before")

_PAGINATION_LABELS = {
    PaginationType.FIRST: "cursor-based pagination with first/after",
    PaginationType.LAST: "cursor-based pagination with last/before",
    PaginationType.OFFSET: "offset-based pagination",
    PaginationType.PAGE: "page-based pagination",
}

_PAGINATION_ERROR_KEYS = {
    PaginationType.FIRST: "first",
    PaginationType.LAST: "last",
    PaginationType.OFFSET: "offset",
    PaginationType.PAGE: "page",
}


class _Changeset:
    """Working state of one validation pass."""

    def __init__(self, *, replace: bool) -> None:
        self.replace = replace
        self.changes: dict[str, Any] = {}
        self.errors: dict[str, list[Violation]] = {}

    def get(self, key: str) -> Any:
        return self.changes.get(key)

    def put(self, key: str, value: Any) -> None:
        if value is None:
            self.changes.pop(key, None)
        else:
            self.changes[key] = value

    def put_default(self, key: str, value: Any) -> None:
        if self.get(key) is None and value is not None:
            self.changes[key] = value

    def has_error(self, key: str) -> bool:
        return key in self.errors

    def add_error(self, key: str, violation: Violation) -> None:
        self.errors.setdefault(key, []).append(violation)

    def reject(self, key: str, violation: Violation, *, replacement: Any = None) -> None:
        """
        Record *violation* for *key*, or in replace mode correct the value.

        The replacement (``None`` removes the value) is applied instead of
        reporting the violation.
        """
        if self.replace:
            logger.debug(
                "Replaced invalid parameter %s (%s) with %r",
                key,
                violation.kind.value,
                replacement,
            )
            self.put(key, replacement)
            return
        self.put(key, None)
        self.add_error(key, violation)


class ParameterValidator:
    """
    Validate raw request parameters against resolved options.

    Usage::

        validator = ParameterValidator(resolver)
        result = validator.validate({"limit": "20", "order_by": ["name"]})
    """

    def __init__(self, options: OptionResolver) -> None:
        self.options = options
        self.registry: FieldRegistry = options.registry or FieldRegistry.unrestricted()

    def validate(self, raw: Mapping[str, Any] | Parameters) -> ValidationResult:
        if isinstance(raw, Parameters):
            raw = raw.to_dict()
        if not isinstance(raw, Mapping):
            raise TypeError(
                f"Query parameters must be a mapping, got {type(raw).__name__}"
            )

        cs = _Changeset(replace=self.options.replace_invalid_params)
        pagination = self.options.enabled("pagination")
        ordering = self.options.enabled("ordering")
        filtering = self.options.enabled("filtering")

        if pagination:
            self._cast_pagination(cs, raw)
        if ordering:
            self._cast_order(cs, raw)
        filters = self._filters(cs, raw) if filtering else []

        self._validate_exclusive(cs)
        self._put_default_order(cs)
        self._validate_sortable(cs)
        if pagination:
            self._validate_pagination(cs)
        else:
            cs.put_default("limit", self.options.default_limit)

        if cs.errors:
            return ValidationResult.failure(cs.errors)
        return ValidationResult.success(self._build(cs, filters))

    # -- casting -------------------------------------------------------------

    def _cast(
        self,
        cs: _Changeset,
        raw: Mapping[str, Any],
        key: str,
        adapter: TypeAdapter[Any],
    ) -> None:
        value = raw.get(key)
        if value is None:
            return
        try:
            cs.put(key, adapter.validate_python(value))
        except ValidationError:
            cs.reject(key, v.invalid())

    def _cast_pagination(self, cs: _Changeset, raw: Mapping[str, Any]) -> None:
        for key in _INT_FIELDS:
            self._cast(cs, raw, key, _INT)
        for key in _CURSOR_FIELDS:
            self._cast(cs, raw, key, _STR)

    def _cast_order(self, cs: _Changeset, raw: Mapping[str, Any]) -> None:
        self._cast(cs, raw, "order_by", _STR_LIST)

        directions = raw.get("order_directions")
        if directions is None:
            return
        if isinstance(directions, (str, bytes)) or not isinstance(directions, (list, tuple)):
            cs.reject("order_directions", v.invalid())
            return
        cast: list[OrderDirection] = []
        for direction in directions:
            try:
                cast.append(_DIRECTION.validate_python(direction))
            except ValidationError:
                if not cs.replace:
                    cs.reject("order_directions", v.invalid())
                    return
                logger.debug(
                    "Replaced invalid order direction %r with %s",
                    direction,
                    OrderDirection.ASC.value,
                )
                cast.append(OrderDirection.ASC)
        cs.put("order_directions", cast)

    # -- exclusivity ---------------------------------------------------------

    def _validate_exclusive(self, cs: _Changeset) -> None:
        groups = [
            group
            for group in PAGINATION_GROUPS
            if any(cs.get(key) is not None for key in group.fields)
        ]
        if len(groups) <= 1:
            return

        if cs.replace:
            logger.debug(
                "Dropped combined pagination parameters (%s)",
                ", ".join(group.value for group in groups),
            )
            for group in PAGINATION_GROUPS:
                for key in group.fields:
                    cs.put(key, None)
            return

        key = next(k for k in groups[0].fields if cs.get(k) is not None)
        cs.add_error(
            key,
            Violation(
                ViolationKind.MULTIPLE_PAGINATION_TYPES,
                "cannot combine multiple pagination types",
            ),
        )

    # -- ordering ------------------------------------------------------------

    def _put_default_order(self, cs: _Changeset) -> None:
        if cs.get("order_by") is not None or cs.has_error("order_by"):
            return
        default_order = self.options.get("default_order")
        if default_order is None:
            return
        cs.put("order_by", list(default_order.order_by))
        cs.put(
            "order_directions",
            list(default_order.order_directions)
            if default_order.order_directions is not None
            else None,
        )

    def _validate_sortable(self, cs: _Changeset) -> None:
        order_by: list[str] | None = cs.get("order_by")
        if not order_by:
            return
        invalid = [i for i, name in enumerate(order_by) if not self.registry.is_sortable(name)]
        if not invalid:
            return

        if not cs.replace:
            cs.add_error(
                "order_by",
                Violation(ViolationKind.INVALID_ENTRY, "has an invalid entry"),
            )
            return

        logger.debug(
            "Dropped unsortable order fields %s",
            [order_by[i] for i in invalid],
        )
        directions: list[OrderDirection] | None = cs.get("order_directions")
        cs.put("order_by", [f for i, f in enumerate(order_by) if i not in invalid])
        if directions is not None:
            cs.put(
                "order_directions",
                [d for i, d in enumerate(directions) if i not in invalid],
            )

    # -- pagination ----------------------------------------------------------

    def _pagination_type(self, cs: _Changeset) -> PaginationType | None:
        if cs.get("first") is not None or cs.get("after") is not None:
            return PaginationType.FIRST
        if cs.get("last") is not None or cs.get("before") is not None:
            return PaginationType.LAST
        if cs.get("page") is not None or cs.get("page_size") is not None:
            return PaginationType.PAGE
        if cs.get("limit") is not None or cs.get("offset") is not None:
            return PaginationType.OFFSET
        return None

    def _validate_pagination(self, cs: _Changeset) -> None:
        pagination_type = self._pagination_type(cs)

        if pagination_type is not None and not self._pagination_allowed(cs, pagination_type):
            violation = Violation(
                ViolationKind.PAGINATION_NOT_ALLOWED,
                "{label} is not allowed",
                {"label": _PAGINATION_LABELS[pagination_type]},
            )
            if not cs.replace:
                cs.add_error(_PAGINATION_ERROR_KEYS[pagination_type], violation)
                return
            logger.debug("Dropped disallowed %s pagination", pagination_type.value)
            for name in pagination_type.fields:
                cs.put(name, None)
            pagination_type = None

        if pagination_type is None:
            pagination_type = self.options.get("default_pagination_type")

        if pagination_type is PaginationType.FIRST:
            self._validate_cursor_pagination(cs, "first", "after")
        elif pagination_type is PaginationType.LAST:
            self._validate_cursor_pagination(cs, "last", "before")
        elif pagination_type is PaginationType.OFFSET:
            self._validate_offset_pagination(cs)
        elif pagination_type is PaginationType.PAGE:
            self._validate_page_pagination(cs)
        else:
            cs.put_default("limit", self.options.default_limit)

    def _pagination_allowed(self, cs: _Changeset, pagination_type: PaginationType) -> bool:
        if pagination_type in self.options.pagination_types:
            return True
        # An offset of 0 is indistinguishable from no pagination at all.
        return pagination_type is PaginationType.OFFSET and cs.get("offset") in (0, None)

    def _validate_limit(self, cs: _Changeset, key: str) -> None:
        """Positive and within the maximum; replaced by the default limit."""
        value = cs.get(key)
        if value is None:
            return
        default = self.options.default_limit
        if value <= 0:
            cs.reject(key, v.greater_than(0), replacement=default)
            return
        max_limit = self.options.max_limit
        if max_limit is not None and value > max_limit:
            cs.reject(key, v.less_than_or_equal_to(max_limit), replacement=default)

    def _validate_required(self, cs: _Changeset, *keys: str) -> None:
        for key in keys:
            if cs.get(key) in (None, []) and not cs.has_error(key):
                cs.add_error(key, v.required())

    def _validate_cursor_pagination(
        self, cs: _Changeset, size_key: str, cursor_key: str
    ) -> None:
        self._validate_limit(cs, size_key)
        cs.put_default(size_key, self.options.default_limit)
        self._validate_required(cs, size_key, "order_by")
        self._validate_cursor(cs, cursor_key)

    def _validate_cursor(self, cs: _Changeset, key: str) -> None:
        token = cs.get(key)
        order_by = cs.get("order_by")
        if token is None or not order_by:
            return
        try:
            decoded = decode_cursor(token)
        except InvalidCursorError:
            cs.reject(key, v.invalid())
            return
        if sorted(decoded) != sorted(order_by):
            cs.reject(
                key,
                Violation(ViolationKind.CURSOR_MISMATCH, "does not match order fields"),
            )
            return
        cs.put("decoded_cursor", decoded)

    def _validate_offset_pagination(self, cs: _Changeset) -> None:
        self._validate_limit(cs, "limit")
        cs.put_default("limit", self.options.default_limit)

        offset = cs.get("offset")
        if offset is not None and offset < 0:
            cs.reject("offset", v.greater_than_or_equal_to(0), replacement=0)
        if cs.get("limit") is not None:
            cs.put_default("offset", 0)

    def _validate_page_pagination(self, cs: _Changeset) -> None:
        self._validate_limit(cs, "page_size")
        cs.put_default("page_size", self.options.default_limit)
        self._validate_required(cs, "page_size")

        page = cs.get("page")
        if page is not None and page <= 0:
            cs.reject("page", v.greater_than(0), replacement=1)
        cs.put_default("page", 1)

    # -- filters -------------------------------------------------------------

    def _filters(self, cs: _Changeset, raw: Mapping[str, Any]) -> list[Filter]:
        clauses = raw.get("filters")
        if clauses is None:
            return []
        if isinstance(clauses, Mapping):
            try:
                clauses = [clauses[k] for k in sorted(clauses, key=int)]
            except (TypeError, ValueError):
                cs.reject("filters", v.invalid())
                return []
        elif isinstance(clauses, (str, bytes)) or not isinstance(clauses, (list, tuple)):
            cs.reject("filters", v.invalid())
            return []

        filters: list[Filter] = []
        for index, clause in enumerate(clauses):
            flt = self._filter(cs, f"filters[{index}]", clause)
            if flt is not None:
                filters.append(flt)
        return filters

    def _filter(self, cs: _Changeset, prefix: str, clause: Any) -> Filter | None:
        """Validate one clause; ``None`` when it is invalid (and dropped in replace mode)."""
        if isinstance(clause, Filter):
            clause = clause.to_dict()
        if not isinstance(clause, Mapping):
            self._reject_filter(cs, prefix, v.invalid())
            return None

        field = clause.get("field")
        if field is None:
            self._reject_filter(cs, f"{prefix}.field", v.required())
            return None
        if not isinstance(field, str):
            self._reject_filter(cs, f"{prefix}.field", v.invalid())
            return None
        descriptor = self.registry.resolve(field)
        if not self.registry.is_filterable(field) or isinstance(descriptor, AliasField):
            self._reject_filter(
                cs,
                f"{prefix}.field",
                Violation(ViolationKind.NOT_FILTERABLE, "is invalid"),
            )
            return None

        try:
            op = FilterOperator(clause.get("op") or FilterOperator.EQ)
        except ValueError:
            self._reject_filter(cs, f"{prefix}.op", v.invalid())
            return None
        if op not in allowed_operators(descriptor):
            self._reject_filter(
                cs,
                f"{prefix}.op",
                Violation(ViolationKind.OPERATOR_NOT_ALLOWED, "is invalid"),
            )
            return None

        try:
            value = cast_value(descriptor, op, clause.get("value"))
        except ValidationError:
            self._reject_filter(cs, f"{prefix}.value", v.invalid())
            return None
        return Filter(field, op, value)

    def _reject_filter(self, cs: _Changeset, key: str, violation: Violation) -> None:
        if cs.replace:
            logger.debug(
                "Dropped invalid filter (%s: %s)", key, violation.kind.value
            )
            return
        cs.add_error(key, violation)

    # -- result --------------------------------------------------------------

    def _build(self, cs: _Changeset, filters: list[Filter]) -> Parameters:
        order_by = cs.get("order_by")
        directions = cs.get("order_directions")
        return Parameters(
            filters=tuple(filters),
            order_by=tuple(order_by) if order_by is not None else None,
            order_directions=tuple(directions) if directions is not None else None,
            limit=cs.get("limit"),
            offset=cs.get("offset"),
            page=cs.get("page"),
            page_size=cs.get("page_size"),
            first=cs.get("first"),
            after=cs.get("after"),
            last=cs.get("last"),
            before=cs.get("before"),
            decoded_cursor=cs.get("decoded_cursor"),
        )
