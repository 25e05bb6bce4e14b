"""Query record and clause bookkeeping for the AQL query builder.

The builder accumulates clauses into a ``QueryRecord`` in whatever order the
caller chains them. The compiler later walks ``ClauseType`` in declaration
order, which is the order AQL requires, so the call order never leaks into
the generated text.
"""

from enum import Enum, auto
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from fluent_aql.query_builder.expressions import (
    RECURSIVE_NODES,
    Expression,
    ExpressionNode,
    ObjectNode,
)
from fluent_aql.query_builder.patterns import GraphSource, LoopSource


class ClauseType(Enum):
    """AQL clause kinds, declared in emission order."""

    WITH = auto()
    FOR = auto()
    JOIN = auto()
    LET_PRE_COLLECT = auto()
    SEARCH = auto()
    FILTER = auto()
    COLLECT = auto()
    TRAVERSE = auto()
    PRUNE = auto()
    LET = auto()
    FILTER_POST_COLLECT = auto()
    SORT = auto()
    WINDOW = auto()
    LIMIT = auto()
    OPERATION = auto()
    UPSERT = auto()
    UPDATE = auto()
    RETURN = auto()


class QueryPhase(Enum):
    """Which FILTER/LET bucket new clauses go to.

    The transition is one-way: once a COLLECT has been added there is no
    operation that returns the record to PRE_COLLECT.
    """

    PRE_COLLECT = "pre_collect"
    POST_COLLECT = "post_collect"


class ClauseModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class JoinClause(ClauseModel):
    variable: str
    source: LoopSource | None = None


class LetClause(ClauseModel):
    variable: str
    expression: Expression


class CollectVariable(ClauseModel):
    key: str
    value: Expression


class CollectAggregate(ClauseModel):
    name: str
    expression: Expression


class CollectClause(ClauseModel):
    variables: list[CollectVariable] = Field(default_factory=list)
    into: str | None = None
    aggregate: list[CollectAggregate] = Field(default_factory=list)
    keep: list[str] | None = None


class SortClause(ClauseModel):
    field: str
    direction: Literal["ASC", "DESC"] = "ASC"


class OperationClause(ClauseModel):
    """INSERT, REPLACE, REMOVE or UPDATE of a single document."""

    type: Literal["INSERT", "REPLACE", "REMOVE", "UPDATE"]
    document: Expression | None = None
    collection: str | None = None
    variable: str | None = None


class UpsertClause(ClauseModel):
    type: Literal["UPSERT"] = "UPSERT"
    search_doc: Expression
    insert_doc: Expression
    update_doc: Expression
    collection: str


class UpdateEnhancedClause(ClauseModel):
    type: Literal["UPDATE"] = "UPDATE"
    document: Expression
    update_fields: Expression
    collection: str | None = None
    variable: str | None = None
    old_reference: bool = False


class MultipleLoopVars(ClauseModel):
    vertex: str
    edge: str | None = None
    path: str | None = None

    def names(self) -> list[str]:
        return [name for name in (self.vertex, self.edge, self.path) if name]


class SearchClause(ClauseModel):
    type: Literal["search"] = "search"
    view: str
    conditions: list[Expression] = Field(default_factory=list)
    options: ObjectNode | None = None


class TraverseClause(ClauseModel):
    type: Literal["traverse"] = "traverse"
    variable: str
    path: str
    min_depth: int | None = None
    max_depth: int | None = None


class PruneClause(ClauseModel):
    type: Literal["prune"] = "prune"
    condition: Expression


class WindowClause(ClauseModel):
    type: Literal["window"] = "window"
    preceding: int | Literal["unbounded"] | None = None
    following: int | Literal["unbounded"] | None = None
    aggregation: Expression
    name: str | None = None


class SubqueryNode(ExpressionNode):
    """A nested query, compiled in place as ``( ... )``."""

    type: Literal["subquery"] = "subquery"
    query: "QueryRecord"


class QueryRecord(ClauseModel):
    """Mutable accumulator of everything a query declares.

    Every field is optional and stays ``None`` until a builder call uses it.
    """

    collection: str | None = None
    variable: str | None = None
    source: LoopSource | None = None
    filters: list[Expression] | None = None
    filters_post_collect: list[Expression] | None = None
    joins: list[JoinClause] | None = None
    lets: list[LetClause] | None = None
    lets_pre_collect: list[LetClause] | None = None
    collects: list[CollectClause] | None = None
    sorts: list[SortClause] | None = None
    return_value: Expression | None = None
    return_distinct: bool | None = None
    limit: int | None = None
    offset: int | None = None
    operations: list[OperationClause] | None = None
    upserts: list[UpsertClause] | None = None
    updates_enhanced: list[UpdateEnhancedClause] | None = None
    multiple_loop_vars: MultipleLoopVars | None = None
    searches: list[SearchClause] | None = None
    traversals: list[TraverseClause] | None = None
    prunes: list[PruneClause] | None = None
    windows: list[WindowClause] | None = None
    with_collections: list[str] | None = None
    raw: str | None = None
    raw_bind_vars: dict[str, Any] | None = None

    @property
    def phase(self) -> QueryPhase:
        if self.collects:
            return QueryPhase.POST_COLLECT
        return QueryPhase.PRE_COLLECT

    @property
    def is_raw(self) -> bool:
        return self.raw is not None

    def append(self, field_name: str, item: Any) -> None:
        """Append ``item`` to a list field, creating the list on first use."""
        items = getattr(self, field_name)
        if items is None:
            items = []
            setattr(self, field_name, items)
        items.append(item)


for _model in (
    *RECURSIVE_NODES,
    SubqueryNode,
    GraphSource,
    JoinClause,
    LetClause,
    CollectVariable,
    CollectAggregate,
    CollectClause,
    OperationClause,
    UpsertClause,
    UpdateEnhancedClause,
    SearchClause,
    PruneClause,
    WindowClause,
    QueryRecord,
):
    _model.model_rebuild()
