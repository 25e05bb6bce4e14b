"""Discover the caller-supplied bind parameters a query expects.

Only named value parameters count (``@userId``). Collection parameters
(``@@collection``) and the compiler's own ``@valueN`` style variables are not
part of a snapshot, so they never show up here.
"""

from collections.abc import Mapping
from typing import Any

from fluent_aql.query_builder.expression_builder import is_placeholder
from fluent_aql.query_builder.interfaces import QueryBuilder
from fluent_aql.query_builder.serializer import to_json
from fluent_aql.query_builder.state import QueryRecord


def extract_parameters(source: Mapping[str, Any] | QueryBuilder | QueryRecord) -> list[str]:
    """List the value parameter names referenced by a query.

    Args:
        source: A snapshot, a builder or a record

    Returns:
        Parameter names without the ``@`` prefix, deduplicated, in the order
        they first appear
    """
    snapshot = source if isinstance(source, Mapping) else to_json(source)
    # dict as an insertion-ordered set
    names: dict[str, None] = {}
    _collect(snapshot, names)
    return list(names)


def _collect(value: Any, names: dict[str, None]) -> None:
    if isinstance(value, str):
        if is_placeholder(value) and not value.startswith("@@"):
            names.setdefault(value[1:], None)
        return

    if isinstance(value, Mapping):
        if value.get("type") == "parameter" and not value.get("isCollectionParam", False):
            name = value.get("name")
            if isinstance(name, str) and name:
                names.setdefault(name, None)
        for item in value.values():
            _collect(item, names)
        return

    if isinstance(value, list | tuple):
        for item in value:
            _collect(item, names)
