"""
Pytest configuration and shared fixtures for fluent_aql tests.
"""

from typing import Any

import pytest

from fluent_aql import AQLBuilder, ref
from fluent_aql.query_builder.compiler import QueryCompiler
from fluent_aql.query_builder.expression_builder import ExpressionBuilder, to_expression
from fluent_aql.query_builder.state import QueryRecord


def _render(expression: Any) -> tuple[str, dict[str, Any]]:
    """Compile a single expression with a fresh bind variable store."""
    node = expression.node if isinstance(expression, ExpressionBuilder) else to_expression(expression)
    compiler = QueryCompiler(QueryRecord())
    text = compiler.expression(node)
    return text, compiler.bind_vars.to_dict()


@pytest.fixture
def render():
    """Render one expression to (text, bind_vars)."""
    return _render


@pytest.fixture
def adults_query() -> AQLBuilder:
    """FOR u IN users FILTER u.age >= 18 RETURN u"""
    return AQLBuilder().for_("u").in_("users").filter(ref("u.age").gte(18)).return_("u")


@pytest.fixture
def orders_by_status() -> AQLBuilder:
    """Orders grouped by status with a count and a sum."""
    return (
        AQLBuilder()
        .for_("o")
        .in_("orders")
        .collect({"status": "o.status"})
        .count("c")
        .sum("t", ref("o.amount"))
        .build()
        .return_({"status": ref("status"), "count": ref("c"), "total": ref("t")})
    )
