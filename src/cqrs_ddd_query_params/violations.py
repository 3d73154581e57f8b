"""Structured, machine-checkable validation errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .params import Parameters


class ViolationKind(str, Enum):
    """Stable tags for every validation failure."""

    INVALID = "invalid"
    REQUIRED = "required"
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL_TO = "greater_than_or_equal_to"
    LESS_THAN_OR_EQUAL_TO = "less_than_or_equal_to"
    INVALID_ENTRY = "invalid_entry"
    NOT_FILTERABLE = "not_filterable"
    OPERATOR_NOT_ALLOWED = "operator_not_allowed"
    MULTIPLE_PAGINATION_TYPES = "multiple_pagination_types"
    PAGINATION_NOT_ALLOWED = "pagination_not_allowed"
    CURSOR_MISMATCH = "cursor_mismatch"


@dataclass(frozen=True, slots=True)
class Violation:
    """
    One validation failure.

    ``message`` is a ``str.format`` template; ``params`` holds its
    interpolation values (e.g. ``{"number": 100}``).
    """

    kind: ViolationKind
    message: str
    params: dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        return self.message.format(**self.params)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.render(),
            "params": dict(self.params),
        }


# ── Constructors ─────────────────────────────────────────────


def invalid() -> Violation:
    return Violation(ViolationKind.INVALID, "is invalid")


def required() -> Violation:
    return Violation(ViolationKind.REQUIRED, "can't be blank")


def greater_than(number: int) -> Violation:
    return Violation(
        ViolationKind.GREATER_THAN,
        "must be greater than {number}",
        {"number": number},
    )


def greater_than_or_equal_to(number: int) -> Violation:
    return Violation(
        ViolationKind.GREATER_THAN_OR_EQUAL_TO,
        "must be greater than or equal to {number}",
        {"number": number},
    )


def less_than_or_equal_to(number: int) -> Violation:
    return Violation(
        ViolationKind.LESS_THAN_OR_EQUAL_TO,
        "must be less than or equal to {number}",
        {"number": number},
    )


def default_errors_factory() -> dict[str, list[Violation]]:
    return {}


@dataclass
class ValidationResult:
    """
    Outcome of validating raw parameters.

    On success ``params`` holds the canonical :class:`Parameters` and
    ``errors`` is empty. On failure ``params`` is ``None`` and ``errors`` maps
    each offending parameter path (``"limit"``, ``"filters[0].op"``) to every
    violation found for it.

    Usage::

        result = validate({"limit": "20"}, registry=pets)
        if result:
            query = compose(result.params)
        else:
            render(result.messages())
    """

    params: Parameters | None = None
    errors: dict[str, list[Violation]] = field(default_factory=default_errors_factory)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    # ── Factory methods ──────────────────────────────────────────

    @classmethod
    def success(cls, params: Parameters) -> ValidationResult:
        return cls(params=params)

    @classmethod
    def failure(cls, errors: dict[str, list[Violation]]) -> ValidationResult:
        return cls(errors=errors)

    # ── Accessors ────────────────────────────────────────────────

    def kinds(self, key: str) -> list[ViolationKind]:
        """Violation kinds recorded for *key*, in the order they were found."""
        return [violation.kind for violation in self.errors.get(key, [])]

    def messages(self) -> dict[str, list[str]]:
        """Errors rendered to human-readable strings."""
        return {
            key: [violation.render() for violation in violations]
            for key, violations in self.errors.items()
        }

    def add_error(self, key: str, violation: Violation) -> None:
        self.errors.setdefault(key, []).append(violation)

    def __bool__(self) -> bool:
        return self.is_valid
