"""Main AQL query builder implementation.

This module provides the ``AQLBuilder`` class with a fluent interface for
assembling AQL queries. The builder only records what the caller declares;
``build()`` hands the record to the compiler, which validates it and emits
query text in the order AQL requires.
"""

from collections.abc import Callable, Mapping
from typing import Any, Literal, Self

from fluent_aql.core.base import ErrorLevel
from fluent_aql.core.decorators import with_error_handling
from fluent_aql.query_builder.collect import CollectBuilder, CollectKeepBuilder
from fluent_aql.query_builder.compiler import CompiledQuery, compile_query
from fluent_aql.query_builder.expression_builder import (
    ExpressionBuilder,
    OldBuilder,
    is_placeholder,
    literal,
    ref,
    to_document,
    to_expression,
    to_value,
)
from fluent_aql.query_builder.expressions import (
    ObjectNode,
    ParameterNode,
    ReferenceNode,
)
from fluent_aql.query_builder.helpers import QueryHelpers
from fluent_aql.query_builder.interfaces import QueryBuilder
from fluent_aql.query_builder.pagination import PaginationMixin
from fluent_aql.query_builder.patterns import (
    DIRECTIONS,
    Direction,
    GraphSource,
    LoopSource,
    RangeSource,
)
from fluent_aql.query_builder.state import (
    CollectClause,
    JoinClause,
    LetClause,
    MultipleLoopVars,
    OperationClause,
    PruneClause,
    QueryPhase,
    QueryRecord,
    SearchClause,
    SortClause,
    TraverseClause,
    UpdateEnhancedClause,
    WindowClause,
)
from fluent_aql.query_builder.upsert import UpsertBuilder

SortDirection = Literal["ASC", "DESC"]


def variable_name(variable: str | ExpressionBuilder) -> str:
    """Name of a loop or document variable given as a string or a reference.

    Raises:
        ValueError: If ``variable`` is an expression other than a reference
    """
    if isinstance(variable, ExpressionBuilder):
        if isinstance(variable.node, ReferenceNode):
            return variable.node.name
        raise ValueError("Cannot extract variable name from ExpressionBuilder")
    return variable


def _start_vertex(vertex: str | ExpressionBuilder) -> str:
    if isinstance(vertex, ExpressionBuilder):
        node = vertex.node
        if isinstance(node, ReferenceNode):
            return node.name
        if isinstance(node, ParameterNode):
            return f"@@{node.name}" if node.is_collection else f"@{node.name}"
        raise ValueError("Start vertex must be a string, a reference or a bind parameter")
    return vertex


def _options_document(options: Mapping[str, Any] | None) -> ObjectNode | None:
    if options is None:
        return None
    document = to_document(options)
    if not isinstance(document, ObjectNode):
        raise ValueError("Options must be a mapping")
    return document


class AQLBuilder(QueryBuilder, PaginationMixin, QueryHelpers):
    """Fluent AQL query builder.

    Methods return the builder itself unless noted, so calls can be chained
    in any order; the compiler puts the clauses in AQL order.

    Example:
        ```python
        query = (
            AQLBuilder()
            .for_("u").in_("users")
            .filter(ref("u.age").gte(18))
            .return_("u")
            .build()
        )
        # query.query == "FOR u IN users\\nFILTER (u.age >= @value0)\\nRETURN u"
        # query.bind_vars == {"value0": 18}
        ```
    """

    def __init__(self, initial_value: str | ExpressionBuilder | int | float | None = None) -> None:
        """Initialize a new builder.

        Args:
            initial_value: A collection name, or a value to return
        """
        self._query = QueryRecord()
        self._current_join: JoinClause | None = None

        if isinstance(initial_value, str):
            self._query.collection = initial_value
        elif initial_value is not None:
            self._query.return_value = to_expression(initial_value)

    @property
    def query(self) -> QueryRecord:
        return self._query

    @classmethod
    def from_record(cls, record: QueryRecord) -> Self:
        """Wrap an existing record without copying or validating it."""
        builder = cls()
        builder._query = record
        return builder

    @classmethod
    def raw(cls, query: str, bind_vars: Mapping[str, Any] | None = None) -> Self:
        """Create a builder that compiles to ``query`` and ``bind_vars`` verbatim."""
        return cls.from_record(
            QueryRecord(raw=query, raw_bind_vars=dict(bind_vars) if bind_vars is not None else None)
        )

    @classmethod
    def from_json(cls, snapshot: Mapping[str, Any]) -> "AQLBuilder":
        """Restore a builder from a ``to_json()`` snapshot.

        Raises:
            SerializationError: If the snapshot is malformed
        """
        from fluent_aql.query_builder.serializer import from_json

        return from_json(snapshot)

    def subquery(self) -> "AQLBuilder":
        """Start an independent builder, e.g. for ``let(name, subquery)``."""
        return AQLBuilder()

    # Loops

    def with_(self, *collections: str) -> Self:
        """Declare collections for read locks (``WITH a, b``)."""
        for collection in collections:
            self._query.append("with_collections", collection)
        return self

    def for_(self, variable: str | ExpressionBuilder) -> Self:
        """Declare a FOR loop variable.

        The first call declares the main loop; later calls open a nested
        loop whose source is set by the following ``in_()`` call.

        Args:
            variable: Loop variable name or a reference to it

        Returns:
            Self for method chaining
        """
        name = variable_name(variable)
        if self._query.variable:
            self._current_join = JoinClause(variable=name)
            self._query.append("joins", self._current_join)
        else:
            self._query.variable = name
        return self

    def in_(self, source: LoopSource | ExpressionBuilder) -> Self:
        """Set what the current FOR loop iterates over.

        Args:
            source: Collection name, ``@@collection`` placeholder, range or graph

        Returns:
            Self for method chaining
        """
        if isinstance(source, ExpressionBuilder):
            if not isinstance(source.node, ParameterNode):
                raise ValueError("A FOR source expression must be a bind parameter")
            node = source.node
            source = f"@@{node.name}" if node.is_collection else f"@{node.name}"
        elif isinstance(source, str) and source.startswith("@") and not is_placeholder(source):
            raise ValueError(f"Invalid bind parameter placeholder: {source!r}")

        if self._current_join is not None:
            self._current_join.source = source
        else:
            if isinstance(source, str) and not source.startswith("@"):
                self._query.collection = source
            self._query.source = source
        return self

    def in_graph(
        self,
        graph: str,
        direction: Direction,
        start_vertex: str | ExpressionBuilder,
        min_depth: int = 1,
        max_depth: int | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> Self:
        """Iterate a named graph from a start vertex.

        Args:
            graph: Graph name
            direction: ``OUTBOUND``, ``INBOUND`` or ``ANY``
            start_vertex: Document handle, variable path or bind parameter
            min_depth: Minimum traversal depth
            max_depth: Maximum traversal depth; defaults to ``min_depth``
            options: Traversal OPTIONS document

        Returns:
            Self for method chaining
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid traversal direction: {direction!r}")

        source = GraphSource(
            graph=graph,
            direction=direction,
            start_vertex=_start_vertex(start_vertex),
            min_depth=min_depth,
            max_depth=max_depth,
            options=_options_document(options),
        )
        if self._current_join is not None:
            self._current_join.source = source
        else:
            self._query.source = source
        return self

    def for_multiple(
        self,
        vertex: str | ExpressionBuilder,
        edge: str | ExpressionBuilder | None = None,
        path: str | ExpressionBuilder | None = None,
    ) -> Self:
        """Declare the vertex, edge and path variables of a traversal loop."""
        self._query.multiple_loop_vars = MultipleLoopVars(
            vertex=variable_name(vertex),
            edge=variable_name(edge) if edge is not None else None,
            path=variable_name(path) if path is not None else None,
        )
        return self

    # Filtering and variables

    def filter(self, condition: Any) -> Self:
        """Add a FILTER; after a COLLECT it filters the grouped rows."""
        node = to_expression(condition)
        if self._query.phase is QueryPhase.POST_COLLECT:
            self._query.append("filters_post_collect", node)
        else:
            self._query.append("filters", node)
        return self

    def let(self, name: str, value: Any) -> Self:
        """Add ``LET name = value``; strings are variable paths, builders subqueries."""
        clause = LetClause(variable=name, expression=to_value(value))
        if self._query.phase is QueryPhase.POST_COLLECT:
            self._query.append("lets", clause)
        else:
            self._query.append("lets_pre_collect", clause)
        return self

    # Grouping

    def collect(self, variables: Mapping[str, Any]) -> CollectBuilder:
        """Start a COLLECT; finish it with ``build()`` or ``into()``."""
        return CollectBuilder(self, variables)

    def collect_keep(self, variables: Mapping[str, Any], keep: list[str]) -> CollectKeepBuilder:
        """Start a COLLECT ... INTO ... KEEP; finish it with ``into()`` or ``aggregate()``."""
        return CollectKeepBuilder(self, variables, keep)

    def add_collect(self, clause: CollectClause) -> Self:
        """Append a finished COLLECT clause. Used by the collect sub-builders."""
        self._query.append("collects", clause)
        return self

    def sort(self, field: str | ExpressionBuilder, direction: SortDirection = "ASC") -> Self:
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort direction: {direction!r}")
        self._query.append("sorts", SortClause(field=variable_name(field), direction=direction))
        return self

    # Data modification

    def insert(self, document: Any) -> Self:
        """Add an INSERT; set its collection with ``into()``."""
        self._query.append("operations", OperationClause(type="INSERT", document=to_document(document)))
        return self

    def replace(self, variable: str | ExpressionBuilder, document: Any = None) -> Self:
        """Add ``REPLACE variable [WITH document]``; set the collection with ``into()``."""
        self._query.append(
            "operations",
            OperationClause(
                type="REPLACE",
                variable=variable_name(variable),
                document=to_document(document) if document is not None else None,
            ),
        )
        return self

    def remove(self, variable: str | ExpressionBuilder) -> Self:
        self._query.append("operations", OperationClause(type="REMOVE", variable=variable_name(variable)))
        return self

    def update(self, variable: str | ExpressionBuilder, document: Any) -> Self:
        """Add ``UPDATE variable WITH document``; set the collection with ``into()``."""
        self._query.append(
            "operations",
            OperationClause(type="UPDATE", variable=variable_name(variable), document=to_document(document)),
        )
        return self

    def into(self, collection: str) -> Self:
        """Set the target collection of the most recent data-modification operation."""
        if not self._query.operations:
            raise ValueError("into() requires a preceding insert, replace, remove or update")
        self._query.operations[-1].collection = collection
        return self

    def upsert(self, search: Any) -> UpsertBuilder:
        """Start ``UPSERT search INSERT ... UPDATE ... IN collection``."""
        return UpsertBuilder(self, search)

    def update_with(
        self,
        document: str | ExpressionBuilder,
        updates: Mapping[str, Any],
        collection: str | None = None,
    ) -> Self:
        """Add ``UPDATE document WITH updates IN collection``.

        The collection defaults to the collection of the main FOR loop.
        """
        self._add_update(document, updates, collection, old_reference=False)
        return self

    def update_with_old(
        self,
        document: str | ExpressionBuilder,
        updates_fn: Callable[[OldBuilder], Mapping[str, Any]],
        collection: str | None = None,
    ) -> Self:
        """Like ``update_with`` with access to the previous revision.

        ``updates_fn`` receives an ``OldBuilder`` and returns the update
        document. Unless a RETURN is declared, the query returns the old and
        new revisions.

        Example:
            ```python
            builder.update_with_old("u", lambda old: {"visits": old["visits"].add(1)})
            ```
        """
        self._add_update(document, updates_fn(OldBuilder()), collection, old_reference=True)
        return self

    def _add_update(
        self,
        document: str | ExpressionBuilder,
        updates: Mapping[str, Any],
        collection: str | None,
        old_reference: bool,
    ) -> None:
        self._query.append(
            "updates_enhanced",
            UpdateEnhancedClause(
                document=ReferenceNode(name=variable_name(document)),
                update_fields=to_document(updates),
                collection=collection or self._query.collection,
                variable=self._query.variable,
                old_reference=old_reference,
            ),
        )

    # Search and traversal

    def search(self, view: str, *conditions: Any, options: Mapping[str, Any] | None = None) -> Self:
        """Add a SEARCH over an ArangoSearch view.

        If the main FOR loop has no source yet, the view becomes its source.

        Raises:
            ValueError: If the main FOR loop already iterates something else
        """
        if self._query.source is None:
            self._query.source = view
        elif self._query.source != view:
            raise ValueError(
                f"SEARCH view {view!r} does not match the FOR source {self._query.source!r}"
            )
        self._query.append(
            "searches",
            SearchClause(
                view=view,
                conditions=[to_expression(condition) for condition in conditions],
                options=_options_document(options),
            ),
        )
        return self

    def traverse(
        self,
        variable: str,
        path: str,
        max_depth: int | None = None,
        min_depth: int | None = None,
    ) -> Self:
        self._query.append(
            "traversals",
            TraverseClause(variable=variable, path=path, min_depth=min_depth, max_depth=max_depth),
        )
        return self

    def prune(
        self,
        condition: ExpressionBuilder
        | Callable[[ExpressionBuilder, ExpressionBuilder, ExpressionBuilder], ExpressionBuilder],
    ) -> Self:
        """Add a PRUNE condition.

        A callable receives references to the vertex, edge and path variables
        declared by ``for_multiple`` (``v``, ``e`` and ``p`` when undeclared).
        """
        if callable(condition) and not isinstance(condition, ExpressionBuilder):
            loop_vars = self._query.multiple_loop_vars
            vertex = loop_vars.vertex if loop_vars else "v"
            edge = loop_vars.edge if loop_vars and loop_vars.edge else "e"
            path = loop_vars.path if loop_vars and loop_vars.path else "p"
            condition = condition(ref(vertex), ref(edge), ref(path))
        self._query.append("prunes", PruneClause(condition=to_expression(condition)))
        return self

    def window(
        self,
        preceding: int | Literal["unbounded"] | None,
        following: int | Literal["unbounded"] | None,
        aggregation: Any,
        name: str | None = None,
    ) -> Self:
        """Add a sliding WINDOW with one aggregation."""
        self._query.append(
            "windows",
            WindowClause(
                preceding=preceding,
                following=following,
                aggregation=to_value(aggregation),
                name=name,
            ),
        )
        return self

    # Output

    def return_(self, value: Any, distinct: bool = False) -> Self:
        """Set the RETURN value; strings are variable paths, dicts documents."""
        self._query.return_value = to_value(value)
        self._query.return_distinct = True if distinct else None
        return self

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    def build(self) -> CompiledQuery:
        """Compile the query.

        Returns:
            The query text and bind variables

        Raises:
            ConfigurationError: If the query is not in a compilable state
        """
        return compile_query(self._query)

    def to_aql(self) -> str:
        """Compile and return only the query text."""
        return self.build().query

    def to_json(self) -> dict[str, Any]:
        """Snapshot the record as a JSON-compatible dict."""
        from fluent_aql.query_builder.serializer import to_json

        return to_json(self)


class AB:
    """Short factory namespace for builders and values.

    Example:
        ```python
        AB.for_("u").in_("users").filter(AB.ref("u.name").eq(AB.str("Ada")))
        ```
    """

    ref = staticmethod(ref)

    @staticmethod
    def for_(variable: str) -> AQLBuilder:
        return AQLBuilder().for_(variable)

    @staticmethod
    def value(value: Any) -> ExpressionBuilder:
        return literal(value)

    @staticmethod
    def raw(query: str, bind_vars: Mapping[str, Any] | None = None) -> AQLBuilder:
        return AQLBuilder.raw(query, bind_vars)

    @staticmethod
    def subquery() -> AQLBuilder:
        return AQLBuilder()

    # Defined last: these names shadow builtins inside the class body

    @staticmethod
    def range(start: int, end: int) -> RangeSource:
        return RangeSource(start=start, end=end)

    @staticmethod
    def str(value: str) -> ExpressionBuilder:
        """A string literal, also in positions where strings are paths."""
        return literal(value)
