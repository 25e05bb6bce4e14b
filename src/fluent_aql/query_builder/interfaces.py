"""Query builder interfaces.

This module defines the seams between the fluent builder, the compiler and
helpers such as the expression converters, so none of them needs to import
the concrete builder class.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from fluent_aql.query_builder.state import QueryRecord

if TYPE_CHECKING:
    from fluent_aql.query_builder.compiler import CompiledQuery


class BindVariableAllocator(Protocol):
    """Protocol for allocating bind variable names."""

    def bind(self, value: Any, prefix: str = "value") -> str:
        """Store a value and return its placeholder.

        Args:
            value: The value to bind
            prefix: Name prefix, e.g. ``value`` or ``inValues``

        Returns:
            The placeholder to embed in the query text, e.g. ``@value0``
        """
        ...

    def merge(self, values: Mapping[str, Any]) -> None:
        """Adopt caller-named bind variables, e.g. from a raw subquery."""
        ...

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of every value bound so far."""
        ...


class QueryBuilder(ABC):
    """Base abstract class for anything that owns a query record."""

    @property
    @abstractmethod
    def query(self) -> QueryRecord:
        """The record being accumulated."""

    @abstractmethod
    def build(self) -> "CompiledQuery":
        """Compile the record into query text and bind variables.

        Returns:
            The compiled query
        """
