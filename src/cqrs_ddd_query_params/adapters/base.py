"""
QueryAdapter — the execution-layer boundary.

An adapter owns a backend-specific *queryable* (a SQLAlchemy ``Select``,
an in-memory collection...). It applies the composer's abstract operations
to it, counts it and fetches it. The engine never looks inside a queryable.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..composer import FilterOperation, OrderOperation, PageBoundOperation

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..composer import Operation

logger = logging.getLogger(__name__)


class QueryAdapter(ABC):
    """Strategy interface for applying operations to a queryable."""

    def apply(self, queryable: Any, operation: Operation) -> Any:
        """Apply a single operation, dispatching on its type."""
        logger.debug("%s applying %r", type(self).__name__, operation)
        if isinstance(operation, FilterOperation):
            return self.apply_filter(queryable, operation)
        if isinstance(operation, OrderOperation):
            return self.apply_order(queryable, operation)
        if isinstance(operation, PageBoundOperation):
            return self.apply_page_bound(queryable, operation)
        raise TypeError(f"Unknown operation: {operation!r}")

    def apply_all(self, queryable: Any, operations: Iterable[Operation]) -> Any:
        for operation in operations:
            queryable = self.apply(queryable, operation)
        return queryable

    @abstractmethod
    def apply_filter(self, queryable: Any, operation: FilterOperation) -> Any: ...

    @abstractmethod
    def apply_order(self, queryable: Any, operation: OrderOperation) -> Any: ...

    @abstractmethod
    def apply_page_bound(self, queryable: Any, operation: PageBoundOperation) -> Any: ...

    @abstractmethod
    def count(self, queryable: Any) -> int:
        """Number of rows matching the queryable's filters, ignoring order and paging."""
        ...

    @abstractmethod
    def fetch(self, queryable: Any) -> list[Any]:
        """Execute the queryable and return its rows."""
        ...
