"""Execution adapters: apply composed operations to a concrete queryable."""

from __future__ import annotations

from .base import QueryAdapter
from .memory import (
    MemoryAdapter,
    MemoryOperator,
    MemoryOperatorRegistry,
    MemoryQuery,
    build_default_registry,
)
from .sqlalchemy import (
    SQLAlchemyAdapter,
    SQLAlchemyOperator,
    SQLAlchemyOperatorRegistry,
    build_default_sqla_registry,
)

__all__ = [
    "MemoryAdapter",
    "MemoryOperator",
    "MemoryOperatorRegistry",
    "MemoryQuery",
    "QueryAdapter",
    "SQLAlchemyAdapter",
    "SQLAlchemyOperator",
    "SQLAlchemyOperatorRegistry",
    "build_default_registry",
    "build_default_sqla_registry",
]
