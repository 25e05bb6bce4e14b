"""Helper methods for the AQL query builder.

This module provides convenience methods layered on top of the core fluent
API of ``AQLBuilder``.
"""

import json
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fluent_aql.query_builder.builder import AQLBuilder


class QueryHelpers:
    """Mixin providing helper methods for common query patterns."""

    def join(self: "AQLBuilder", collection: str, variable: str) -> "AQLBuilder":
        """Open a nested FOR loop over another collection.

        Args:
            collection: Collection to iterate
            variable: Loop variable for the joined documents

        Returns:
            Self for method chaining
        """
        return self.for_(variable).in_(collection)

    def in_edge(self: "AQLBuilder", collection: str) -> "AQLBuilder":
        """Iterate an edge collection; equivalent to ``in_`` for a plain name."""
        return self.in_(collection)

    def to_debug_string(self: "AQLBuilder") -> str:
        """Return the query with bind variables inlined.

        For logs and debugging only. The result is not safe to execute.
        """
        compiled = self.build()
        text = compiled.query
        for name, value in compiled.bind_vars.items():
            rendered = json.dumps(value, default=str)
            text = re.sub(rf"(?<!@)@{re.escape(name)}\b", lambda _: rendered, text)
        return text
