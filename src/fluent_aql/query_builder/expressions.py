"""Expression node models for AQL queries.

Every node is an immutable pydantic model tagged by a ``type`` field. The
tag doubles as the discriminator used to restore nodes from JSON snapshots,
so it is always serialized.

The ``subquery`` variant wraps a whole query record and therefore lives in
``state.py``; the ``Expression`` union refers to it by name and the models
are rebuilt once ``state.py`` has been imported.
"""

from typing import TYPE_CHECKING, Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from fluent_aql.query_builder.state import SubqueryNode

BinaryOperator = Literal[
    "==", "!=", "<", "<=", ">", ">=", "&&", "||", "+", "-", "*", "/", "%", "IN", "NOT IN"
]
UnaryOperator = Literal["!", "-"]

# Bind parameter names are written into the query text verbatim
PARAMETER_NAME = r"[A-Za-z_][A-Za-z0-9_]*"


class ExpressionNode(BaseModel):
    """Base class for all expression nodes."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class LiteralNode(ExpressionNode):
    """A scalar, array, object or null value. Always compiled to a bind variable."""

    type: Literal["literal"] = "literal"
    value: Any = None


class ReferenceNode(ExpressionNode):
    """A variable or attribute path such as ``u.address.city``."""

    type: Literal["reference"] = "reference"
    name: str


class ParameterNode(ExpressionNode):
    """A caller-supplied bind parameter (``@name`` or ``@@name``)."""

    type: Literal["parameter"] = "parameter"
    name: str = Field(pattern=rf"^{PARAMETER_NAME}$")
    is_collection: bool = Field(default=False, alias="isCollectionParam")


class BinaryOp(ExpressionNode):
    type: Literal["binary"] = "binary"
    operator: BinaryOperator
    left: "Expression"
    right: "Expression"


class UnaryOp(ExpressionNode):
    type: Literal["unary"] = "unary"
    operator: UnaryOperator
    operand: "Expression"


class FunctionCall(ExpressionNode):
    type: Literal["function"] = "function"
    name: str
    args: tuple["Expression", ...] = ()


class Ternary(ExpressionNode):
    type: Literal["ternary"] = "ternary"
    condition: "Expression"
    then_value: "Expression"
    else_value: "Expression"


class LikeOp(ExpressionNode):
    """``LIKE`` match. The pattern is kept apart from the operator text."""

    type: Literal["like"] = "like"
    expression: "Expression"
    pattern: str
    case_insensitive: bool = False


class RegexOp(ExpressionNode):
    type: Literal["regex"] = "regex"
    expression: "Expression"
    pattern: str
    flags: str | None = None


class OldReference(ExpressionNode):
    """The previous revision of a document inside UPDATE, e.g. ``OLD.visits``."""

    type: Literal["old"] = "old"
    path: str


class AllOperator(ExpressionNode):
    """True when every element of ``expression`` satisfies ``condition``."""

    type: Literal["all"] = "all"
    expression: "Expression"
    condition: "Expression"


class AnyOperator(ExpressionNode):
    """True when at least one element of ``expression`` satisfies ``condition``."""

    type: Literal["any"] = "any"
    expression: "Expression"
    condition: "Expression"


class UnsetNode(ExpressionNode):
    type: Literal["unset"] = "unset"
    obj: "Expression" = Field(alias="object")
    fields: tuple[str, ...] = ()


class ObjectNode(ExpressionNode):
    """A document whose values are compiled one by one."""

    type: Literal["object"] = "object"
    fields: dict[str, "Expression"] = Field(default_factory=dict)


class ArrayNode(ExpressionNode):
    """An array containing at least one non-literal element."""

    type: Literal["array"] = "array"
    items: tuple["Expression", ...] = ()


Expression = Annotated[
    Union[
        LiteralNode,
        ReferenceNode,
        ParameterNode,
        BinaryOp,
        UnaryOp,
        FunctionCall,
        Ternary,
        LikeOp,
        RegexOp,
        OldReference,
        AllOperator,
        AnyOperator,
        UnsetNode,
        ObjectNode,
        ArrayNode,
        "SubqueryNode",
    ],
    Field(discriminator="type"),
]

NODE_TYPES: frozenset[str] = frozenset(
    {
        "literal",
        "reference",
        "parameter",
        "binary",
        "unary",
        "function",
        "ternary",
        "like",
        "regex",
        "old",
        "all",
        "any",
        "unset",
        "object",
        "array",
        "subquery",
    }
)

RECURSIVE_NODES: tuple[type[ExpressionNode], ...] = (
    BinaryOp,
    UnaryOp,
    FunctionCall,
    Ternary,
    LikeOp,
    RegexOp,
    AllOperator,
    AnyOperator,
    UnsetNode,
    ObjectNode,
    ArrayNode,
)
