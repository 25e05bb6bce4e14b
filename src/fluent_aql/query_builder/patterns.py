"""FOR loop source patterns.

A FOR loop iterates over a collection name (or collection bind parameter),
a numeric range, or a named-graph traversal. This module holds the models
for the latter two and the text helpers that do not need bind variables.
"""

import json
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fluent_aql.query_builder.expressions import ObjectNode

Direction = Literal["OUTBOUND", "INBOUND", "ANY"]
DIRECTIONS: frozenset[str] = frozenset({"OUTBOUND", "INBOUND", "ANY"})


class SourcePattern(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RangeSource(SourcePattern):
    """Numeric range such as ``1..10``."""

    type: Literal["range"] = "range"
    start: int
    end: int

    def build(self) -> str:
        return f"{self.start}..{self.end}"


class GraphSource(SourcePattern):
    """Traversal of a named graph from a start vertex.

    ``max_depth`` falls back to ``min_depth`` when omitted, so a traversal
    declared with only ``min_depth=2`` visits exactly depth 2.
    """

    type: Literal["graph"] = "graph"
    graph: str
    direction: Direction
    start_vertex: str
    min_depth: int = 1
    max_depth: int | None = None
    options: ObjectNode | None = None

    @property
    def depth_range(self) -> str:
        max_depth = self.max_depth if self.max_depth is not None else self.min_depth
        return f"{self.min_depth}..{max_depth}"

    def head(self) -> str:
        """Traversal text without the OPTIONS part."""
        return (
            f"{self.depth_range} {self.direction} "
            f"{quote_start_vertex(self.start_vertex)} GRAPH {json.dumps(self.graph)}"
        )


LoopSource = Union[
    str,
    Annotated[Union[RangeSource, GraphSource], Field(discriminator="type")],
]


def quote_start_vertex(vertex: str) -> str:
    """Quote a start vertex unless it already is an expression.

    Bind parameters, already-quoted strings and bare references (no ``/``)
    are used as-is; document handles like ``users/123`` are quoted.
    """
    if vertex.startswith("@") or vertex.startswith('"') or "/" not in vertex:
        return vertex
    return json.dumps(vertex)
