"""
Per-data-model configuration of filterable and sortable fields.

A registry is built once per data model through :class:`FieldRegistryBuilder`
and is read-only afterwards, so it can be shared freely across requests.
Inconsistent declarations raise :class:`ConfigurationError` from ``build()``.

Usage::

    pets = (
        FieldRegistry.builder("Pet")
        .field("name", "string", filterable=True, sortable=True)
        .field("age", "integer", filterable=True, sortable=True)
        .field("family_name", "string")
        .field("given_name", "string")
        .compound("full_name", ["family_name", "given_name"], filterable=True)
        .join("owner_name", binding="owner", field="name", value_type="string",
              filterable=True, sortable=True)
        .default_limit(20)
        .max_limit(100)
        .default_order(["name"])
        .build()
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import (
    ConfigurationError,
    InvalidDefaultOrderError,
    InvalidDefaultPaginationTypeError,
    InvalidFieldDeclarationError,
    UnknownFieldError,
)
from .fields import (
    AliasField,
    CompoundField,
    CustomField,
    JoinField,
    NormalField,
    ValueType,
)
from .operators import FilterOperator, PaginationType
from .params import DefaultOrder

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from .fields import FieldDescriptor, TypeKind
    from .params import Filter
    from .predicates import Predicate

_REGISTRY_OPTIONS = frozenset(
    {
        "default_limit",
        "max_limit",
        "default_order",
        "pagination_types",
        "default_pagination_type",
    }
)


@dataclass(frozen=True)
class FieldRegistry:
    """Read-only field configuration for one data model."""

    name: str
    fields: Mapping[str, FieldDescriptor]
    filterable: frozenset[str] | None
    sortable: frozenset[str] | None
    default_limit: int | None = None
    max_limit: int | None = None
    default_order: DefaultOrder | None = None
    pagination_types: frozenset[PaginationType] | None = None
    default_pagination_type: PaginationType | None = None

    @classmethod
    def builder(cls, name: str) -> FieldRegistryBuilder:
        return FieldRegistryBuilder(name)

    @classmethod
    def unrestricted(cls) -> FieldRegistry:
        """A registry that allows filtering and sorting on any field name."""
        return cls(name="<unrestricted>", fields={}, filterable=None, sortable=None)

    # -- look-up -------------------------------------------------------------

    def filterable_fields(self) -> frozenset[str] | None:
        """Filterable field names, or ``None`` when every field is allowed."""
        return self.filterable

    def sortable_fields(self) -> frozenset[str] | None:
        """Sortable field names, or ``None`` when every field is allowed."""
        return self.sortable

    def is_filterable(self, name: str) -> bool:
        return self.filterable is None or name in self.filterable

    def is_sortable(self, name: str) -> bool:
        return self.sortable is None or name in self.sortable

    def resolve(self, name: str) -> FieldDescriptor:
        """Descriptor for *name*; undeclared names resolve to an untyped normal field."""
        descriptor = self.fields.get(name)
        if descriptor is None:
            return NormalField(name)
        return descriptor

    def get_option(self, key: str) -> Any:
        if key in _REGISTRY_OPTIONS:
            return getattr(self, key)
        return None


class FieldRegistryBuilder:
    """Fluent builder for :class:`FieldRegistry`."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._fields: dict[str, FieldDescriptor] = {}
        self._filterable: list[str] = []
        self._sortable: list[str] = []
        self._options: dict[str, Any] = {}

    # -- field declarations --------------------------------------------------

    def _declare(
        self,
        descriptor: FieldDescriptor,
        *,
        filterable: bool = False,
        sortable: bool = False,
    ) -> FieldRegistryBuilder:
        if descriptor.name in self._fields:
            raise InvalidFieldDeclarationError(
                f"Field {descriptor.name!r} is declared twice in {self._name!r}"
            )
        self._fields[descriptor.name] = descriptor
        if filterable:
            self._filterable.append(descriptor.name)
        if sortable:
            self._sortable.append(descriptor.name)
        return self

    def field(
        self,
        name: str,
        value_type: ValueType | TypeKind | str | None = None,
        *,
        column: str | None = None,
        filterable: bool = False,
        sortable: bool = False,
    ) -> FieldRegistryBuilder:
        return self._declare(
            NormalField(name, ValueType.of(value_type), column),
            filterable=filterable,
            sortable=sortable,
        )

    def compound(
        self,
        name: str,
        members: Iterable[str],
        *,
        filterable: bool = False,
        sortable: bool = False,
    ) -> FieldRegistryBuilder:
        return self._declare(
            CompoundField(name, tuple(members)),
            filterable=filterable,
            sortable=sortable,
        )

    def join(
        self,
        name: str,
        *,
        binding: str,
        field: str,
        path: Iterable[str] | None = None,
        value_type: ValueType | TypeKind | str | None = None,
        filterable: bool = False,
        sortable: bool = False,
    ) -> FieldRegistryBuilder:
        return self._declare(
            JoinField(
                name,
                binding=binding,
                field=field,
                path=tuple(path or ()),
                value_type=ValueType.of(value_type),
            ),
            filterable=filterable,
            sortable=sortable,
        )

    def custom(
        self,
        name: str,
        handler: Callable[[Filter, Mapping[str, Any]], Predicate | None],
        *,
        extra: Mapping[str, Any] | None = None,
        operators: Iterable[FilterOperator | str] | None = None,
        value_type: ValueType | TypeKind | str | None = None,
        bindings: Iterable[str] = (),
        filterable: bool = True,
    ) -> FieldRegistryBuilder:
        ops = (
            frozenset(FilterOperator(op) for op in operators)
            if operators is not None
            else None
        )
        return self._declare(
            CustomField(
                name,
                handler=handler,
                extra=dict(extra or {}),
                operators=ops,
                value_type=ValueType.of(value_type),
                bindings=tuple(bindings),
            ),
            filterable=filterable,
        )

    def alias(self, name: str, *, sortable: bool = True) -> FieldRegistryBuilder:
        return self._declare(AliasField(name), sortable=sortable)

    def filterable(self, *names: str) -> FieldRegistryBuilder:
        self._filterable.extend(names)
        return self

    def sortable(self, *names: str) -> FieldRegistryBuilder:
        self._sortable.extend(names)
        return self

    # -- options -------------------------------------------------------------

    def default_limit(self, limit: int) -> FieldRegistryBuilder:
        self._options["default_limit"] = limit
        return self

    def max_limit(self, limit: int) -> FieldRegistryBuilder:
        self._options["max_limit"] = limit
        return self

    def default_order(
        self,
        order_by: Iterable[str],
        order_directions: Iterable[Any] | None = None,
    ) -> FieldRegistryBuilder:
        try:
            self._options["default_order"] = DefaultOrder.of(
                list(order_by),
                list(order_directions) if order_directions is not None else None,
            )
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid default order directions in {self._name!r}: {exc}"
            ) from exc
        return self

    def pagination_types(self, *types: PaginationType | str) -> FieldRegistryBuilder:
        self._options["pagination_types"] = frozenset(
            PaginationType(t) for t in types
        )
        return self

    def default_pagination_type(
        self, pagination_type: PaginationType | str
    ) -> FieldRegistryBuilder:
        self._options["default_pagination_type"] = PaginationType(pagination_type)
        return self

    # -- build ---------------------------------------------------------------

    def build(self) -> FieldRegistry:
        """
        Validate the declarations and freeze them into a registry.

        Raises:
            UnknownFieldError: A referenced field is not declared.
            InvalidFieldDeclarationError: An alias is filterable, a custom
                field is sortable, or a compound member is not a plain or
                join field.
            InvalidDefaultOrderError: The default order uses unsortable fields.
            InvalidDefaultPaginationTypeError: The default pagination type is
                not allowed.
            ConfigurationError: Limits are not positive or default > max.
        """
        for option, names in (
            ("filterable", self._filterable),
            ("sortable", self._sortable),
        ):
            for name in names:
                if name not in self._fields:
                    raise UnknownFieldError(name, option, self._fields)

        for name in self._filterable:
            if isinstance(self._fields[name], AliasField):
                raise InvalidFieldDeclarationError(
                    f"Alias field {name!r} cannot be filterable"
                )

        for name in self._sortable:
            if isinstance(self._fields[name], CustomField):
                raise InvalidFieldDeclarationError(
                    f"Custom field {name!r} cannot be sortable"
                )

        for descriptor in self._fields.values():
            if isinstance(descriptor, CompoundField):
                self._check_compound(descriptor)

        sortable = frozenset(self._sortable)
        default_order: DefaultOrder | None = self._options.get("default_order")
        if default_order is not None:
            unsortable = set(default_order.order_by) - sortable
            if unsortable:
                raise InvalidDefaultOrderError(unsortable)

        self._check_limits()

        allowed = self._options.get("pagination_types")
        default_type = self._options.get("default_pagination_type")
        if allowed is not None and default_type is not None and default_type not in allowed:
            raise InvalidDefaultPaginationTypeError(default_type, allowed)

        return FieldRegistry(
            name=self._name,
            fields=dict(self._fields),
            filterable=frozenset(self._filterable),
            sortable=sortable,
            **self._options,
        )

    def _check_compound(self, descriptor: CompoundField) -> None:
        if not descriptor.members:
            raise InvalidFieldDeclarationError(
                f"Compound field {descriptor.name!r} has no members"
            )
        for member in descriptor.members:
            if member not in self._fields:
                raise UnknownFieldError(member, descriptor.name, self._fields)
            if not isinstance(self._fields[member], (NormalField, JoinField)):
                raise InvalidFieldDeclarationError(
                    f"Compound field {descriptor.name!r} member {member!r} "
                    "must be a normal or join field"
                )

    def _check_limits(self) -> None:
        default_limit = self._options.get("default_limit")
        max_limit = self._options.get("max_limit")
        for option, value in (("default_limit", default_limit), ("max_limit", max_limit)):
            if value is not None and (
                isinstance(value, bool) or not isinstance(value, int) or value < 1
            ):
                raise ConfigurationError(
                    f"{option} of {self._name!r} must be a positive integer, got {value!r}"
                )
        if default_limit is not None and max_limit is not None and default_limit > max_limit:
            raise ConfigurationError(
                f"default_limit ({default_limit}) of {self._name!r} exceeds "
                f"max_limit ({max_limit})"
            )
