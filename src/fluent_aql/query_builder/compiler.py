"""Compile a query record into AQL text and bind variables.

Compilation is a pure function of the record. Clauses are emitted in
``ClauseType`` order regardless of the order the builder methods were called
in, and every literal value is moved into a bind variable so the query text
never contains caller data.
"""

import copy
import json
from collections.abc import Callable, Mapping
from typing import Any, NamedTuple

from structlog.typing import FilteringBoundLogger

from fluent_aql.core.base import ValidationErrorDetails
from fluent_aql.core.config import settings
from fluent_aql.core.errors import ConfigurationError
from fluent_aql.core.logging import get_logger
from fluent_aql.query_builder.expression_builder import is_placeholder
from fluent_aql.query_builder.expressions import (
    AllOperator,
    AnyOperator,
    ArrayNode,
    BinaryOp,
    ExpressionNode,
    FunctionCall,
    LikeOp,
    LiteralNode,
    ObjectNode,
    OldReference,
    ParameterNode,
    ReferenceNode,
    RegexOp,
    Ternary,
    UnaryOp,
    UnsetNode,
)
from fluent_aql.query_builder.interfaces import BindVariableAllocator
from fluent_aql.query_builder.patterns import GraphSource, LoopSource, RangeSource
from fluent_aql.query_builder.state import (
    ClauseType,
    CollectClause,
    LetClause,
    OperationClause,
    QueryRecord,
    SubqueryNode,
)

logger: FilteringBoundLogger = get_logger(name=__name__)


class CompiledQuery(NamedTuple):
    """Query text plus the bind variables it references."""

    query: str
    bind_vars: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """The ``{"query", "bindVars"}`` shape expected by ArangoDB drivers."""
        return {"query": self.query, "bindVars": self.bind_vars}


class BindVariables:
    """Bind variable store with one counter shared by every prefix.

    ``@value0``, ``@inValues1`` and ``@likePattern2`` can never collide, and
    nested subqueries compiled with the same store keep counting upwards.
    Names already taken by merged raw bind variables are skipped.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._counter: int = 0

    def bind(self, value: Any, prefix: str = "value") -> str:
        name = f"{prefix}{self._counter}"
        self._counter += 1
        while name in self._values:
            name = f"{prefix}{self._counter}"
            self._counter += 1
        # Bound containers must not alias the record they came from
        self._values[name] = copy.deepcopy(value)
        return f"@{name}"

    def merge(self, values: Mapping[str, Any]) -> None:
        """Add caller-named bind variables, e.g. those of a raw subquery.

        Raises:
            ConfigurationError: If a name is already bound to a different value
        """
        for name, value in values.items():
            if name in self._values and self._values[name] != value:
                raise ConfigurationError(
                    f"Bind variable @{name} is already bound to a different value",
                    ValidationErrorDetails(
                        source="compiler",
                        operation="build",
                        field="bindVars",
                        actual_value=name,
                        constraint="unique names",
                    ),
                )
            self._values[name] = copy.deepcopy(value)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._values)


class QueryCompiler:
    """Turns one query record into AQL text.

    A compiler instance handles a single record; subqueries are compiled by
    child compilers sharing the same bind variable store.
    """

    def __init__(self, record: QueryRecord, bind_vars: BindVariableAllocator | None = None) -> None:
        self._record = record
        self._bind_vars: BindVariableAllocator = bind_vars if bind_vars is not None else BindVariables()
        self._emitters: dict[ClauseType, Callable[[], list[str]]] = {
            ClauseType.WITH: self._emit_with,
            ClauseType.FOR: self._emit_for,
            ClauseType.JOIN: self._emit_joins,
            ClauseType.LET_PRE_COLLECT: lambda: self._emit_lets(record.lets_pre_collect),
            ClauseType.SEARCH: self._emit_searches,
            ClauseType.FILTER: lambda: self._emit_filters(record.filters),
            ClauseType.COLLECT: self._emit_collects,
            ClauseType.TRAVERSE: self._emit_traversals,
            ClauseType.PRUNE: self._emit_prunes,
            ClauseType.LET: lambda: self._emit_lets(record.lets),
            ClauseType.FILTER_POST_COLLECT: lambda: self._emit_filters(record.filters_post_collect),
            ClauseType.SORT: self._emit_sort,
            ClauseType.WINDOW: self._emit_windows,
            ClauseType.LIMIT: self._emit_limit,
            ClauseType.OPERATION: self._emit_operations,
            ClauseType.UPSERT: self._emit_upserts,
            ClauseType.UPDATE: self._emit_updates,
            ClauseType.RETURN: self._emit_return,
        }
        self._renderers: dict[type[ExpressionNode], Callable[[Any], str]] = {
            LiteralNode: self._render_literal,
            ReferenceNode: lambda node: node.name,
            ParameterNode: self._render_parameter,
            BinaryOp: self._render_binary,
            UnaryOp: lambda node: f"{node.operator}{self.expression(node.operand)}",
            FunctionCall: self._render_function,
            Ternary: self._render_ternary,
            LikeOp: self._render_like,
            RegexOp: self._render_regex,
            OldReference: lambda node: node.path,
            AllOperator: lambda node: self._render_quantifier(node, "ALL"),
            AnyOperator: lambda node: self._render_quantifier(node, "ANY"),
            UnsetNode: self._render_unset,
            ObjectNode: self._render_object,
            ArrayNode: self._render_array,
            SubqueryNode: self._render_subquery,
        }

    @property
    def bind_vars(self) -> BindVariableAllocator:
        return self._bind_vars

    def compile(self) -> CompiledQuery:
        """Compile the record.

        Returns:
            The query text and a snapshot of the bind variables

        Raises:
            ConfigurationError: If the record is not in a compilable state
        """
        if self._record.is_raw:
            return CompiledQuery(self._record.raw or "", dict(self._record.raw_bind_vars or {}))

        text, clause_count = self._compile_text()
        bind_vars = self._bind_vars.to_dict()
        # Silent unless debug or log_queries is set
        if settings.log_queries:
            logger.debug("Compiled AQL query", clauses=clause_count, bind_vars=len(bind_vars), query=text)
        elif settings.debug:
            logger.debug("Compiled AQL query", clauses=clause_count, bind_vars=len(bind_vars))
        return CompiledQuery(text, bind_vars)

    def compile_text(self) -> str:
        """Compile to text only, leaving bind variables in the shared store."""
        if self._record.is_raw:
            self._bind_vars.merge(self._record.raw_bind_vars or {})
            return self._record.raw or ""
        return self._compile_text()[0]

    def _compile_text(self) -> tuple[str, int]:
        validate_record(self._record)
        lines: list[str] = []
        clause_count = 0
        for clause_type in ClauseType:
            clause_lines = self._emitters[clause_type]()
            if clause_lines:
                clause_count += 1
                lines.extend(clause_lines)
        return "\n".join(lines), clause_count

    # Expressions

    def expression(self, node: ExpressionNode) -> str:
        """Render a single expression, binding any literals it contains."""
        renderer = self._renderers.get(type(node))
        if renderer is None:
            raise TypeError(f"Unsupported expression node: {type(node).__name__}")
        return renderer(node)

    def _render_literal(self, node: LiteralNode) -> str:
        prefix = "array" if isinstance(node.value, list) else "value"
        return self._bind_vars.bind(node.value, prefix)

    def _render_parameter(self, node: ParameterNode) -> str:
        return f"@@{node.name}" if node.is_collection else f"@{node.name}"

    def _render_binary(self, node: BinaryOp) -> str:
        left = self.expression(node.left)
        if (
            node.operator in ("IN", "NOT IN")
            and isinstance(node.right, LiteralNode)
            and isinstance(node.right.value, list)
        ):
            right = self._bind_vars.bind(node.right.value, "inValues")
        else:
            right = self.expression(node.right)
        return f"({left} {node.operator} {right})"

    def _render_function(self, node: FunctionCall) -> str:
        args = ", ".join(self.expression(arg) for arg in node.args)
        return f"{node.name}({args})"

    def _render_ternary(self, node: Ternary) -> str:
        condition = self.expression(node.condition)
        then_value = self.expression(node.then_value)
        else_value = self.expression(node.else_value)
        return f"({condition} ? {then_value} : {else_value})"

    def _render_like(self, node: LikeOp) -> str:
        subject = self.expression(node.expression)
        pattern = self._bind_vars.bind(node.pattern, "likePattern")
        if node.case_insensitive:
            return f"LIKE({subject}, {pattern}, true)"
        return f"({subject} LIKE {pattern})"

    def _render_regex(self, node: RegexOp) -> str:
        subject = self.expression(node.expression)
        pattern = self._bind_vars.bind(node.pattern, "regexPattern")
        if node.flags and "i" in node.flags:
            return f"REGEX_MATCH({subject}, {pattern}, true)"
        return f"REGEX_MATCH({subject}, {pattern})"

    def _render_quantifier(self, node: AllOperator | AnyOperator, quantifier: str) -> str:
        subject = self.expression(node.expression)
        condition = self.expression(node.condition)
        return f"({subject}[* RETURN {condition}] {quantifier} == true)"

    def _render_unset(self, node: UnsetNode) -> str:
        args = [self.expression(node.obj)]
        args.extend(self._bind_vars.bind(field) for field in node.fields)
        return f"UNSET({', '.join(args)})"

    def _render_object(self, node: ObjectNode) -> str:
        entries = ", ".join(
            f"{json_key(key)}: {self.expression(value)}" for key, value in node.fields.items()
        )
        return f"{{{entries}}}"

    def _render_array(self, node: ArrayNode) -> str:
        return f"[{', '.join(self.expression(item) for item in node.items)}]"

    def _render_subquery(self, node: SubqueryNode) -> str:
        return f"({QueryCompiler(node.query, self._bind_vars).compile_text()})"

    def source(self, source: LoopSource) -> str:
        """Render a FOR source: collection, range or graph traversal."""
        if isinstance(source, RangeSource):
            return source.build()
        if isinstance(source, GraphSource):
            text = source.head()
            if source.options is not None:
                text += f" OPTIONS {self.expression(source.options)}"
            return text
        return source

    # Clauses

    def _emit_with(self) -> list[str]:
        if not self._record.with_collections:
            return []
        return [f"WITH {', '.join(self._record.with_collections)}"]

    def _emit_for(self) -> list[str]:
        record = self._record
        if record.multiple_loop_vars is not None and record.source:
            names = ", ".join(record.multiple_loop_vars.names())
            return [f"FOR {names} IN {self.source(record.source)}"]
        if record.variable and record.source:
            return [f"FOR {record.variable} IN {self.source(record.source)}"]
        return []

    def _emit_joins(self) -> list[str]:
        return [
            f"FOR {join.variable} IN {self.source(join.source)}"
            for join in self._record.joins or []
            if join.source
        ]

    def _emit_lets(self, lets: list[LetClause] | None) -> list[str]:
        return [f"LET {let.variable} = {self.expression(let.expression)}" for let in lets or []]

    def _emit_searches(self) -> list[str]:
        lines = []
        for search in self._record.searches or []:
            if not search.conditions:
                continue
            line = "SEARCH " + " AND ".join(self.expression(c) for c in search.conditions)
            if search.options is not None:
                line += f" OPTIONS {self.expression(search.options)}"
            lines.append(line)
        return lines

    def _emit_filters(self, filters: list | None) -> list[str]:
        return [f"FILTER {self.expression(condition)}" for condition in filters or []]

    def _emit_collects(self) -> list[str]:
        lines: list[str] = []
        for collect in self._record.collects or []:
            lines.extend(self._collect_lines(collect))
        return lines

    def _collect_lines(self, collect: CollectClause) -> list[str]:
        keys = ", ".join(f"{v.key} = {self.expression(v.value)}" for v in collect.variables)
        lines = [f"COLLECT {keys}" if keys else "COLLECT"]
        if collect.aggregate:
            aggregates = ", ".join(
                f"{a.name} = {self.expression(a.expression)}" for a in collect.aggregate
            )
            lines.append(f"  AGGREGATE {aggregates}")
        if collect.into:
            lines.append(f"  INTO {collect.into}")
            if collect.keep:
                lines.append(f"  KEEP {', '.join(collect.keep)}")
        return lines

    def _emit_traversals(self) -> list[str]:
        lines = []
        for traversal in self._record.traversals or []:
            line = f"TRAVERSE {traversal.variable} IN {traversal.path}"
            if traversal.min_depth is not None:
                line += f" MINDEPTH {traversal.min_depth}"
            if traversal.max_depth is not None:
                line += f" MAXDEPTH {traversal.max_depth}"
            lines.append(line)
        return lines

    def _emit_prunes(self) -> list[str]:
        return [f"PRUNE {self.expression(prune.condition)}" for prune in self._record.prunes or []]

    def _emit_sort(self) -> list[str]:
        if not self._record.sorts:
            return []
        return ["SORT " + ", ".join(f"{s.field} {s.direction}" for s in self._record.sorts)]

    def _emit_windows(self) -> list[str]:
        lines = []
        for window in self._record.windows or []:
            bounds = [
                f"{name}: {window_bound(value)}"
                for name, value in (("preceding", window.preceding), ("following", window.following))
                if value is not None
            ]
            lines.append(f"WINDOW {{ {', '.join(bounds)} }}")
            aggregation = self.expression(window.aggregation)
            if window.name:
                aggregation = f"{window.name} = {aggregation}"
            lines.append(f"  AGGREGATE {aggregation}")
        return lines

    def _emit_limit(self) -> list[str]:
        record = self._record
        if record.limit is None:
            return []
        if record.offset is not None:
            return [f"LIMIT {record.offset}, {record.limit}"]
        return [f"LIMIT {record.limit}"]

    def _emit_operations(self) -> list[str]:
        return [self._operation_line(op) for op in self._record.operations or []]

    def _operation_line(self, op: OperationClause) -> str:
        if op.type == "INSERT":
            document = self.expression(op.document) if op.document is not None else "{}"
            return f"INSERT {document} INTO {op.collection}"
        if op.type == "REMOVE" or op.document is None:
            return f"{op.type} {op.variable} IN {op.collection}"
        return f"{op.type} {op.variable} WITH {self.expression(op.document)} IN {op.collection}"

    def _emit_upserts(self) -> list[str]:
        lines = []
        for upsert in self._record.upserts or []:
            lines.append(f"UPSERT {self.expression(upsert.search_doc)}")
            lines.append(f"INSERT {self.expression(upsert.insert_doc)}")
            lines.append(f"UPDATE {self.expression(upsert.update_doc)}")
            lines.append(f"IN {upsert.collection}")
        return lines

    def _emit_updates(self) -> list[str]:
        lines = []
        for update in self._record.updates_enhanced or []:
            lines.append(f"UPDATE {self.expression(update.document)}")
            lines.append(f"WITH {self.expression(update.update_fields)}")
            lines.append(f"IN {update.collection}")
            if update.old_reference and self._record.return_value is None:
                lines.append("RETURN { old: OLD, new: NEW }")
        return lines

    def _emit_return(self) -> list[str]:
        record = self._record
        if record.return_value is None:
            return []
        keyword = "RETURN DISTINCT" if record.return_distinct else "RETURN"
        return [f"{keyword} {self.expression(record.return_value)}"]


def json_key(key: str) -> str:
    """Quote an object key the way JSON does."""
    return json.dumps(key)


def window_bound(value: int | str) -> str:
    return f'"{value}"' if isinstance(value, str) else str(value)


def _count_is_valid(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_record(record: QueryRecord) -> None:
    """Check the invariants a record must satisfy before it can be compiled.

    Raises:
        ConfigurationError: On the first violated invariant
    """
    if record.variable and not record.source:
        raise ConfigurationError(
            f"FOR {record.variable} requires an IN clause",
            ValidationErrorDetails(
                source="compiler", operation="build", field="source", constraint="required"
            ),
        )

    if record.multiple_loop_vars is not None and not record.source:
        names = ", ".join(record.multiple_loop_vars.names())
        raise ConfigurationError(
            f"FOR {names} requires an IN clause",
            ValidationErrorDetails(
                source="compiler", operation="build", field="source", constraint="required"
            ),
        )

    for join in record.joins or []:
        if not join.source:
            raise ConfigurationError(
                f"FOR {join.variable} requires an IN clause",
                ValidationErrorDetails(
                    source="compiler", operation="build", field="joins", constraint="required"
                ),
            )

    _validate_source(record.source, "source")
    for join in record.joins or []:
        _validate_source(join.source, "joins")

    for search in record.searches or []:
        if record.source is not None and search.view != record.source:
            raise ConfigurationError(
                f"SEARCH view {search.view!r} does not match the FOR source {record.source!r}",
                ValidationErrorDetails(
                    source="compiler", operation="build", field="searches", constraint="view is the FOR source"
                ),
            )

    for traversal in record.traversals or []:
        _validate_depths(traversal.min_depth, traversal.max_depth, "traversals")

    if any(not op.collection for op in record.operations or []):
        raise ConfigurationError(
            "All operations require a collection",
            ValidationErrorDetails(
                source="compiler", operation="build", field="operations", constraint="collection required"
            ),
        )

    if any(not update.collection for update in record.updates_enhanced or []):
        raise ConfigurationError(
            "All updates require a collection",
            ValidationErrorDetails(
                source="compiler", operation="build", field="updatesEnhanced", constraint="collection required"
            ),
        )

    for field, value in (("limit", record.limit), ("offset", record.offset)):
        if value is not None and not _count_is_valid(value):
            raise ConfigurationError(
                f"{field.upper()} must be a non-negative integer",
                ValidationErrorDetails(
                    source="compiler",
                    operation="build",
                    field=field,
                    actual_value=value,
                    expected_type="int",
                    constraint=">= 0",
                ),
            )

    if record.offset is not None and record.limit is None:
        raise ConfigurationError(
            "OFFSET requires a LIMIT",
            ValidationErrorDetails(
                source="compiler", operation="build", field="offset", constraint="limit required"
            ),
        )

    for window in record.windows or []:
        for field, value in (("preceding", window.preceding), ("following", window.following)):
            if isinstance(value, int) and not _count_is_valid(value):
                raise ConfigurationError(
                    f"WINDOW {field} must be a non-negative integer",
                    ValidationErrorDetails(
                        source="compiler",
                        operation="build",
                        field=field,
                        actual_value=value,
                        constraint=">= 0",
                    ),
                )


def _validate_source(source: LoopSource | None, field: str) -> None:
    if isinstance(source, GraphSource):
        _validate_depths(source.min_depth, source.max_depth, field)
    elif isinstance(source, str) and source.startswith("@") and not is_placeholder(source):
        raise ConfigurationError(
            f"Invalid bind parameter placeholder: {source!r}",
            ValidationErrorDetails(
                source="compiler", operation="build", field=field, actual_value=source, constraint="@name or @@name"
            ),
        )


def _validate_depths(min_depth: int | None, max_depth: int | None, field: str) -> None:
    for name, value in (("minDepth", min_depth), ("maxDepth", max_depth)):
        if value is not None and not _count_is_valid(value):
            raise ConfigurationError(
                f"{name} must be a non-negative integer",
                ValidationErrorDetails(
                    source="compiler",
                    operation="build",
                    field=field,
                    actual_value=value,
                    expected_type="int",
                    constraint=">= 0",
                ),
            )
    if min_depth is not None and max_depth is not None and max_depth < min_depth:
        raise ConfigurationError(
            f"maxDepth {max_depth} is smaller than minDepth {min_depth}",
            ValidationErrorDetails(
                source="compiler", operation="build", field=field, actual_value=max_depth, constraint=">= minDepth"
            ),
        )


def compile_query(record: QueryRecord) -> CompiledQuery:
    """Compile a query record into text and bind variables.

    Args:
        record: The record to compile; it is not modified

    Returns:
        The compiled query

    Raises:
        ConfigurationError: If the record is not in a compilable state
    """
    return QueryCompiler(record).compile()
