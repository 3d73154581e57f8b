"""
Exception hierarchy for cqrs-ddd-query-params.

Request-data problems never raise from the non-raising entry points; they
are collected into a :class:`~cqrs_ddd_query_params.violations.ValidationResult`.
Everything here is either a fail-fast conversion of such a result, a cursor
decode failure, or a configuration problem detected at setup time.

All exceptions provide ``to_dict()`` for API-friendly error responses.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .violations import Violation


class QueryParamsError(Exception):
    """Root exception for the query-params toolkit."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class InvalidParamsError(QueryParamsError):
    """
    Raised by the raising entry points when validation fails.

    Carries the raw parameters as received and the full error set.
    """

    def __init__(
        self,
        params: Mapping[str, Any],
        errors: Mapping[str, list[Violation]],
    ) -> None:
        self.params = dict(params)
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors)) or "<none>"
        super().__init__(f"Invalid query parameters: {fields}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_PARAMS",
            "message": str(self),
            "errors": {
                key: [violation.to_dict() for violation in violations]
                for key, violations in self.errors.items()
            },
        }


class InvalidCursorError(QueryParamsError):
    """A cursor could not be decoded into a safe order-field mapping."""

    def __init__(self, cursor: Any = None) -> None:
        self.cursor = cursor
        super().__init__("Invalid cursor")

    def to_dict(self) -> dict[str, Any]:
        return {"error": "INVALID_CURSOR", "message": str(self)}


class InvalidDirectionsError(QueryParamsError):
    """A custom ascending/descending direction pair is malformed."""

    def __init__(self, directions: Any) -> None:
        self.directions = directions
        super().__init__(
            "Custom directions must be a pair of two distinct sort directions, "
            f"got {directions!r}"
        )


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(QueryParamsError):
    """Field registry or backend wiring is internally inconsistent."""


class UnknownFieldError(ConfigurationError):
    """
    A field referenced in a registry declaration is not declared.

    Provides fuzzy-matched suggestions for the likely intended field.
    """

    def __init__(self, field: str, option: str, known_fields: Iterable[str]) -> None:
        self.field = field
        self.option = option
        self.known_fields = sorted(known_fields)
        self.suggestions = get_close_matches(field, self.known_fields, n=3, cutoff=0.6)

        message = f"Unknown field {field!r} in {option!r}."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNKNOWN_FIELD",
            "message": str(self),
            "field": self.field,
            "option": self.option,
            "suggestions": self.suggestions,
        }


class InvalidDefaultOrderError(ConfigurationError):
    """The default order references a field that is not sortable."""

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = sorted(fields)
        super().__init__(
            f"Default order references fields that are not sortable: {self.fields}"
        )


class InvalidDefaultPaginationTypeError(ConfigurationError):
    """The default pagination type is not one of the allowed pagination types."""

    def __init__(self, default: Any, allowed: Iterable[Any]) -> None:
        self.default = default
        self.allowed = sorted(getattr(item, "value", str(item)) for item in allowed)
        super().__init__(
            f"Default pagination type {getattr(default, 'value', default)!r} is not among the "
            f"allowed pagination types {self.allowed}"
        )


class InvalidFieldDeclarationError(ConfigurationError):
    """A field declaration is malformed (duplicate name, alias marked filterable...)."""


class NoAdapterError(ConfigurationError):
    """An operation needing the execution layer was called without an adapter."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"No query adapter configured; {operation!r} needs one. "
            "Pass adapter= to QueryBackend or to the call."
        )
