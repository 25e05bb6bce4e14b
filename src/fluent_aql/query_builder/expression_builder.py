"""Fluent expression builder for AQL.

``ExpressionBuilder`` wraps an immutable expression node and exposes
comparison, logical, arithmetic, membership and pattern combinators. Every
combinator returns a new builder over a new node, so a sub-expression can be
reused in several places without aliasing surprises.
"""

import re
from collections.abc import Mapping
from typing import Any

from fluent_aql.query_builder.expressions import (
    PARAMETER_NAME,
    AllOperator,
    AnyOperator,
    ArrayNode,
    BinaryOp,
    BinaryOperator,
    ExpressionNode,
    LikeOp,
    LiteralNode,
    ObjectNode,
    OldReference,
    ParameterNode,
    ReferenceNode,
    RegexOp,
    Ternary,
    UnaryOp,
)
from fluent_aql.query_builder.interfaces import QueryBuilder
from fluent_aql.query_builder.state import SubqueryNode

_PARAMETER_NAME = re.compile(PARAMETER_NAME)
_PLACEHOLDER = re.compile(rf"(@@?)({PARAMETER_NAME})")


class ExpressionBuilder:
    """Chainable wrapper around an expression node.

    Example:
        ```python
        ref("u.age").gte(18).and_(ref("u.active").eq(True))
        ```
    """

    __slots__ = ("_node",)

    def __init__(self, node: ExpressionNode) -> None:
        self._node = node

    @property
    def node(self) -> ExpressionNode:
        """The wrapped expression node."""
        return self._node

    def to_json(self) -> dict[str, Any]:
        """Structural snapshot of the wrapped node."""
        return self._node.model_dump(by_alias=True, mode="json")

    def __repr__(self) -> str:
        return f"ExpressionBuilder({self._node!r})"

    # Property access

    def get(self, name: str) -> "ExpressionBuilder":
        """Access an attribute of a referenced document.

        Args:
            name: Attribute name, appended to the reference path

        Returns:
            A builder over the longer reference path

        Raises:
            ValueError: If the wrapped node is not a reference
        """
        if not isinstance(self._node, ReferenceNode):
            raise ValueError("Cannot access property on complex expression")
        return ExpressionBuilder(ReferenceNode(name=f"{self._node.name}.{name}"))

    def __getitem__(self, name: str) -> "ExpressionBuilder":
        return self.get(name)

    # Comparison

    def _binary(self, operator: BinaryOperator, other: Any) -> "ExpressionBuilder":
        return ExpressionBuilder(
            BinaryOp(operator=operator, left=self._node, right=to_expression(other))
        )

    def eq(self, value: Any) -> "ExpressionBuilder":
        return self._binary("==", value)

    def neq(self, value: Any) -> "ExpressionBuilder":
        return self._binary("!=", value)

    def lt(self, value: Any) -> "ExpressionBuilder":
        return self._binary("<", value)

    def lte(self, value: Any) -> "ExpressionBuilder":
        return self._binary("<=", value)

    def gt(self, value: Any) -> "ExpressionBuilder":
        return self._binary(">", value)

    def gte(self, value: Any) -> "ExpressionBuilder":
        return self._binary(">=", value)

    # Logical

    def and_(self, other: Any) -> "ExpressionBuilder":
        return self._binary("&&", other)

    def or_(self, other: Any) -> "ExpressionBuilder":
        return self._binary("||", other)

    def not_(self) -> "ExpressionBuilder":
        return ExpressionBuilder(UnaryOp(operator="!", operand=self._node))

    # Arithmetic

    def add(self, value: Any) -> "ExpressionBuilder":
        return self._binary("+", value)

    def sub(self, value: Any) -> "ExpressionBuilder":
        return self._binary("-", value)

    def times(self, value: Any) -> "ExpressionBuilder":
        return self._binary("*", value)

    def div(self, value: Any) -> "ExpressionBuilder":
        return self._binary("/", value)

    def mod(self, value: Any) -> "ExpressionBuilder":
        return self._binary("%", value)

    def negate(self) -> "ExpressionBuilder":
        return ExpressionBuilder(UnaryOp(operator="-", operand=self._node))

    # Membership

    def in_(self, values: Any) -> "ExpressionBuilder":
        """``IN`` test. A list or tuple becomes an array literal."""
        return ExpressionBuilder(
            BinaryOp(operator="IN", left=self._node, right=_membership_operand(values))
        )

    def not_in(self, values: Any) -> "ExpressionBuilder":
        return ExpressionBuilder(
            BinaryOp(operator="NOT IN", left=self._node, right=_membership_operand(values))
        )

    # Patterns

    def like(self, pattern: str, case_insensitive: bool = False) -> "ExpressionBuilder":
        """``LIKE`` match; ``%`` and ``_`` are the wildcards."""
        return ExpressionBuilder(
            LikeOp(expression=self._node, pattern=pattern, case_insensitive=case_insensitive)
        )

    def regex(self, pattern: str, flags: str | None = None) -> "ExpressionBuilder":
        """Regular expression match. Only the ``i`` flag has an effect."""
        return ExpressionBuilder(RegexOp(expression=self._node, pattern=pattern, flags=flags))

    # Array quantifiers

    def all(self, condition: Any) -> "ExpressionBuilder":
        """True if every element satisfies ``condition`` (use ``current()`` for the element)."""
        return ExpressionBuilder(AllOperator(expression=self._node, condition=to_expression(condition)))

    def any(self, condition: Any) -> "ExpressionBuilder":
        """True if at least one element satisfies ``condition``."""
        return ExpressionBuilder(AnyOperator(expression=self._node, condition=to_expression(condition)))

    # Conditional

    def then(self, value: Any) -> "PendingTernary":
        """Start a ternary; the result only accepts ``else_()``."""
        return PendingTernary(self._node, to_expression(value))


class PendingTernary:
    """A ternary with its condition and THEN branch but no ELSE branch yet.

    Not an ExpressionBuilder: it cannot be compared, combined or compiled
    until ``else_()`` completes it.
    """

    __slots__ = ("_condition", "_then_value")

    def __init__(self, condition: ExpressionNode, then_value: ExpressionNode) -> None:
        self._condition = condition
        self._then_value = then_value

    def else_(self, value: Any) -> ExpressionBuilder:
        return ExpressionBuilder(
            Ternary(
                condition=self._condition,
                then_value=self._then_value,
                else_value=to_expression(value),
            )
        )


class OldBuilder:
    """Accessor for the previous revision of a document in UPDATE.

    ``old.field("visits")`` and ``old["visits"]`` both resolve to ``OLD.visits``.
    """

    def field(self, name: str) -> ExpressionBuilder:
        return ExpressionBuilder(OldReference(path=f"OLD.{name}"))

    def __getitem__(self, name: str) -> ExpressionBuilder:
        return self.field(name)


# Factories


def ref(name: str) -> ExpressionBuilder:
    """Reference a variable or attribute path, e.g. ``ref("u.address.city")``."""
    return ExpressionBuilder(ReferenceNode(name=name))


def param(name: str) -> ExpressionBuilder:
    """Reference a caller-supplied bind parameter (``@name``).

    Raises:
        ValueError: If the name is not a valid bind parameter name
    """
    return ExpressionBuilder(ParameterNode(name=_parameter_name(name)))


def collection_param(name: str) -> ExpressionBuilder:
    """Reference a caller-supplied collection bind parameter (``@@name``)."""
    return ExpressionBuilder(ParameterNode(name=_parameter_name(name), is_collection=True))


def _parameter_name(name: str) -> str:
    bare = name.lstrip("@")
    if not _PARAMETER_NAME.fullmatch(bare):
        raise ValueError(f"Invalid bind parameter name: {name!r}")
    return bare


def is_placeholder(value: Any) -> bool:
    """True if ``value`` is exactly ``@name`` or ``@@name`` with a valid name."""
    return isinstance(value, str) and _PLACEHOLDER.fullmatch(value) is not None


def literal(value: Any) -> ExpressionBuilder:
    """Wrap a value that must be compiled to a bind variable."""
    return ExpressionBuilder(LiteralNode(value=_plain(value)))


def current() -> ExpressionBuilder:
    """The element under test inside ``all()`` / ``any()`` conditions."""
    return ref("CURRENT")


# Conversion


def to_expression(value: Any) -> ExpressionNode:
    """Convert an operand to a node.

    Strings are literals here, except ``@name`` / ``@@name`` which are bind
    parameter placeholders. Anything else starting with ``@`` (``"@x || 1"``)
    is still a literal.
    """
    if isinstance(value, ExpressionBuilder):
        return value.node
    if isinstance(value, ExpressionNode):
        return value
    if isinstance(value, QueryBuilder):
        return SubqueryNode(query=value.query.model_copy(deep=True))
    if is_placeholder(value):
        return _parameter_from_placeholder(value)
    if isinstance(value, list | tuple) and not is_plain(value):
        return ArrayNode(items=tuple(to_expression(item) for item in value))
    if isinstance(value, Mapping) and not is_plain(value):
        return to_document(value)
    return LiteralNode(value=_plain(value))


def to_value(value: Any) -> ExpressionNode:
    """Convert a value in clause position (RETURN, LET, COLLECT keys, ...).

    Bare strings are references here; mappings are documents.
    """
    if isinstance(value, str) and not value.startswith("@"):
        return ReferenceNode(name=value)
    if isinstance(value, Mapping):
        return to_document(value)
    return to_expression(value)


def to_document(value: Any) -> ExpressionNode:
    """Convert a document for INSERT/UPDATE/UPSERT.

    Mapping values are compiled field by field; string field values are
    literals. A non-mapping document (e.g. a variable name) is converted
    with ``to_value``.
    """
    if not isinstance(value, Mapping):
        return to_value(value)
    return ObjectNode(fields={str(key): _document_field(item) for key, item in value.items()})


def _document_field(value: Any) -> ExpressionNode:
    if isinstance(value, Mapping):
        return to_document(value)
    return to_expression(value)


def _membership_operand(values: Any) -> ExpressionNode:
    if isinstance(values, list | tuple):
        if is_plain(values):
            return LiteralNode(value=_plain(values))
        return ArrayNode(items=tuple(to_expression(item) for item in values))
    return to_expression(values)


def _parameter_from_placeholder(placeholder: str) -> ParameterNode:
    prefix, name = _PLACEHOLDER.fullmatch(placeholder).groups()
    return ParameterNode(name=name, is_collection=prefix == "@@")


def is_plain(value: Any) -> bool:
    """True if ``value`` is plain data with no builders or nodes inside."""
    if isinstance(value, ExpressionBuilder | ExpressionNode | QueryBuilder):
        return False
    if isinstance(value, Mapping):
        return all(is_plain(item) for item in value.values())
    if isinstance(value, list | tuple):
        return all(is_plain(item) for item in value)
    return True


def _plain(value: Any) -> Any:
    """Normalize plain data so it survives a JSON round trip unchanged."""
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_plain(item) for item in value]
    return value
