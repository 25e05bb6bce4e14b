"""COLLECT sub-builders.

``AQLBuilder.collect()`` and ``AQLBuilder.collect_keep()`` hand back one of
these builders. Aggregations are accumulated on the sub-builder and nothing
is added to the query until a terminal method (``build``, ``into`` or
``aggregate``) returns control to the parent builder.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Literal

from fluent_aql.query_builder.expression_builder import to_value
from fluent_aql.query_builder.expressions import FunctionCall, ReferenceNode
from fluent_aql.query_builder.state import (
    CollectAggregate,
    CollectClause,
    CollectVariable,
)

if TYPE_CHECKING:
    from fluent_aql.query_builder.builder import AQLBuilder


def _collect_variables(variables: Mapping[str, Any]) -> list[CollectVariable]:
    return [CollectVariable(key=key, value=to_value(value)) for key, value in variables.items()]


class CollectBuilder:
    """Grouping with optional aggregations.

    Example:
        ```python
        (
            AQLBuilder()
            .for_("o").in_("orders")
            .collect({"status": "o.status"})
            .count("c")
            .sum("t", "o.amount")
            .build()
        )
        ```
    """

    def __init__(self, builder: "AQLBuilder", variables: Mapping[str, Any]) -> None:
        self._builder = builder
        self._variables = dict(variables)
        # Insertion ordered; re-using a name replaces the earlier aggregation
        self._aggregations: dict[str, FunctionCall] = {}

    def _aggregate(self, function: str, name: str, expression: Any) -> "CollectBuilder":
        self._aggregations[name] = FunctionCall(name=function, args=(to_value(expression),))
        return self

    def count(self, name: str, expression: Any = None) -> "CollectBuilder":
        """Add ``name = COUNT(expression)``; counts every row by default."""
        if expression is None:
            expression = ReferenceNode(name="1")
        return self._aggregate("COUNT", name, expression)

    def sum(self, name: str, expression: Any) -> "CollectBuilder":
        return self._aggregate("SUM", name, expression)

    def average(self, name: str, expression: Any) -> "CollectBuilder":
        return self._aggregate("AVERAGE", name, expression)

    def min(self, name: str, expression: Any) -> "CollectBuilder":
        return self._aggregate("MIN", name, expression)

    def max(self, name: str, expression: Any) -> "CollectBuilder":
        return self._aggregate("MAX", name, expression)

    def _clause(self, into: str | None = None) -> CollectClause:
        return CollectClause(
            variables=_collect_variables(self._variables),
            into=into,
            aggregate=[
                CollectAggregate(name=name, expression=call)
                for name, call in self._aggregations.items()
            ],
        )

    def build(self) -> "AQLBuilder":
        """Finish the COLLECT without an INTO group."""
        return self._builder.add_collect(self._clause())

    def into(self, group_name: str) -> "AQLBuilder":
        """Finish the COLLECT and gather the grouped rows into ``group_name``."""
        return self._builder.add_collect(self._clause(into=group_name))

    def sort(self, field: str, direction: Literal["ASC", "DESC"] = "ASC") -> "AQLBuilder":
        """Finish the COLLECT and continue with a SORT."""
        return self.build().sort(field, direction)


class CollectKeepBuilder:
    """Grouping that keeps only some variables in the INTO group."""

    def __init__(
        self, builder: "AQLBuilder", variables: Mapping[str, Any], keep: list[str]
    ) -> None:
        self._builder = builder
        self._variables = dict(variables)
        self._keep = list(keep)

    def into(self, group_name: str) -> "AQLBuilder":
        return self._builder.add_collect(
            CollectClause(
                variables=_collect_variables(self._variables),
                into=group_name,
                keep=self._keep,
            )
        )

    def aggregate(self, **aggregations: Any) -> "AQLBuilder":
        """Finish with ``AGGREGATE name = expr`` entries.

        Args:
            **aggregations: Aggregate expressions, e.g. ``total=SUM(ref("o.amount"))``

        Returns:
            The parent builder
        """
        return self._builder.add_collect(
            CollectClause(
                variables=_collect_variables(self._variables),
                aggregate=[
                    CollectAggregate(name=name, expression=to_value(expression))
                    for name, expression in aggregations.items()
                ],
                keep=self._keep,
            )
        )

    def sort(self, field: str, direction: Literal["ASC", "DESC"] = "ASC") -> "AQLBuilder":
        return self._builder.sort(field, direction)
