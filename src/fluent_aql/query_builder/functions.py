"""AQL function helpers.

The uppercase helpers mirror AQL function names and convert their arguments
like any other operand, so a plain string is a literal. The grouped
namespaces (``StringFunctions.lower("u.name")``) take the subject of the call
as a reference path instead; their remaining arguments are literals.
"""

from typing import Any, Literal

from fluent_aql.query_builder.expression_builder import (
    ExpressionBuilder,
    to_expression,
)
from fluent_aql.query_builder.expressions import (
    ExpressionNode,
    FunctionCall,
    LiteralNode,
    ReferenceNode,
    UnsetNode,
)


def call(name: str, *args: Any) -> ExpressionBuilder:
    """Call an arbitrary AQL function with operand-converted arguments."""
    return ExpressionBuilder(
        FunctionCall(name=name, args=tuple(to_expression(arg) for arg in args))
    )


def _call_nodes(name: str, *args: ExpressionNode) -> ExpressionBuilder:
    return ExpressionBuilder(FunctionCall(name=name, args=args))


def _subject(value: Any) -> ExpressionNode:
    """Strings name a variable path; anything else is an operand."""
    if isinstance(value, str) and not value.startswith("@"):
        return ReferenceNode(name=value)
    return to_expression(value)


# Aggregates


def COUNT(expr: Any = None) -> ExpressionBuilder:  # noqa: N802
    """``COUNT(1)`` when called without an argument."""
    if expr is None:
        return _call_nodes("COUNT", ReferenceNode(name="1"))
    return call("COUNT", expr)


def SUM(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("SUM", expr)


def AVERAGE(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("AVERAGE", expr)


def AVG(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return AVERAGE(expr)


def MIN(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("MIN", expr)


def MAX(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("MAX", expr)


# Numeric


def FLOOR(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("FLOOR", expr)


def CEIL(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("CEIL", expr)


def ROUND(expr: Any, decimals: int | None = None) -> ExpressionBuilder:  # noqa: N802
    if decimals is None:
        return call("ROUND", expr)
    return call("ROUND", expr, decimals)


def ABS(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("ABS", expr)


def SQRT(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("SQRT", expr)


def POW(base: Any, exponent: Any) -> ExpressionBuilder:  # noqa: N802
    return call("POW", base, exponent)


def LOG(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("LOG", expr)


def RAND() -> ExpressionBuilder:  # noqa: N802
    return call("RAND")


# Strings


def CONCAT(*args: Any) -> ExpressionBuilder:  # noqa: N802
    return call("CONCAT", *args)


def TO_STRING(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("TO_STRING", expr)


def LENGTH(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("LENGTH", expr)


def LOWER(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("LOWER", expr)


def UPPER(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("UPPER", expr)


def TRIM(expr: Any, side: Literal["LEFT", "RIGHT", "BOTH"] | None = None) -> ExpressionBuilder:  # noqa: N802
    if side is None:
        return call("TRIM", expr)
    # AQL encodes the side as 0 (both), 1 (left) or 2 (right)
    return call("TRIM", expr, {"BOTH": 0, "LEFT": 1, "RIGHT": 2}[side])


def REVERSE(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("REVERSE", expr)


def SPLIT(value: Any, delimiter: Any) -> ExpressionBuilder:  # noqa: N802
    return call("SPLIT", value, delimiter)


def SUBSTRING(value: Any, start: Any, length: Any = None) -> ExpressionBuilder:  # noqa: N802
    if length is None:
        return call("SUBSTRING", value, start)
    return call("SUBSTRING", value, start, length)


def REGEX_MATCH(text: Any, pattern: str, case_insensitive: bool = False) -> ExpressionBuilder:  # noqa: N802
    """Function-call form of a regex match; ``text`` strings are references."""
    args: list[ExpressionNode] = [_subject(text), LiteralNode(value=pattern)]
    if case_insensitive:
        args.append(LiteralNode(value=True))
    return _call_nodes("REGEX_MATCH", *args)


# Arrays


def FIRST(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("FIRST", expr)


def LAST(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("LAST", expr)


def NTH(expr: Any, index: Any) -> ExpressionBuilder:  # noqa: N802
    return call("NTH", expr, index)


def APPEND(array: Any, element: Any) -> ExpressionBuilder:  # noqa: N802
    return call("APPEND", array, element)


def FLATTEN(expr: Any, depth: int | None = None) -> ExpressionBuilder:  # noqa: N802
    if depth is None:
        return call("FLATTEN", expr)
    return call("FLATTEN", expr, depth)


def UNIQUE(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("UNIQUE", expr)


def SORT(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("SORTED", expr)


# Type checks


def TYPE_OF(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("TYPENAME", expr)


def IS_NULL(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("IS_NULL", expr)


def IS_BOOL(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("IS_BOOL", expr)


def IS_NUMBER(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("IS_NUMBER", expr)


def IS_STRING(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("IS_STRING", expr)


def IS_ARRAY(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("IS_ARRAY", expr)


def IS_OBJECT(expr: Any) -> ExpressionBuilder:  # noqa: N802
    return call("IS_OBJECT", expr)


def HAS(obj: Any, attribute: Any) -> ExpressionBuilder:  # noqa: N802
    return call("HAS", obj, attribute)


class DateFunctions:
    """Date helpers. ``date`` arguments given as strings are variable paths."""

    @staticmethod
    def now() -> ExpressionBuilder:
        return _call_nodes("DATE_NOW")

    @staticmethod
    def format(date: Any, fmt: str) -> ExpressionBuilder:
        return _call_nodes("DATE_FORMAT", _subject(date), LiteralNode(value=fmt))

    @staticmethod
    def parse(date_string: str, fmt: str) -> ExpressionBuilder:
        # The input is data, not a path
        return _call_nodes(
            "DATE_PARSE", LiteralNode(value=date_string), LiteralNode(value=fmt)
        )

    @staticmethod
    def add(date: Any, amount: int, unit: str) -> ExpressionBuilder:
        return _call_nodes(
            "DATE_ADD", _subject(date), LiteralNode(value=amount), LiteralNode(value=unit)
        )

    @staticmethod
    def subtract(date: Any, amount: int, unit: str) -> ExpressionBuilder:
        return _call_nodes(
            "DATE_SUBTRACT", _subject(date), LiteralNode(value=amount), LiteralNode(value=unit)
        )

    @staticmethod
    def difference(date1: Any, date2: Any, unit: str) -> ExpressionBuilder:
        return _call_nodes(
            "DATE_DIFF", _subject(date1), _subject(date2), LiteralNode(value=unit)
        )

    @staticmethod
    def year(date: Any) -> ExpressionBuilder:
        return _call_nodes("DATE_YEAR", _subject(date))

    @staticmethod
    def month(date: Any) -> ExpressionBuilder:
        return _call_nodes("DATE_MONTH", _subject(date))

    @staticmethod
    def day(date: Any) -> ExpressionBuilder:
        return _call_nodes("DATE_DAY", _subject(date))


class StringFunctions:
    @staticmethod
    def concat(*args: Any) -> ExpressionBuilder:
        return _call_nodes("CONCAT", *(_subject(arg) for arg in args))

    @staticmethod
    def concat_separator(separator: str, *args: Any) -> ExpressionBuilder:
        return _call_nodes(
            "CONCAT_SEPARATOR", LiteralNode(value=separator), *(_subject(arg) for arg in args)
        )

    @staticmethod
    def lower(value: Any) -> ExpressionBuilder:
        return _call_nodes("LOWER", _subject(value))

    @staticmethod
    def upper(value: Any) -> ExpressionBuilder:
        return _call_nodes("UPPER", _subject(value))

    @staticmethod
    def trim(value: Any) -> ExpressionBuilder:
        return _call_nodes("TRIM", _subject(value))

    @staticmethod
    def ltrim(value: Any) -> ExpressionBuilder:
        return _call_nodes("LTRIM", _subject(value))

    @staticmethod
    def rtrim(value: Any) -> ExpressionBuilder:
        return _call_nodes("RTRIM", _subject(value))

    @staticmethod
    def substring(value: Any, start: int, length: int | None = None) -> ExpressionBuilder:
        args = [_subject(value), LiteralNode(value=start)]
        if length is not None:
            args.append(LiteralNode(value=length))
        return _call_nodes("SUBSTRING", *args)

    @staticmethod
    def split(value: Any, separator: str) -> ExpressionBuilder:
        return _call_nodes("SPLIT", _subject(value), LiteralNode(value=separator))

    @staticmethod
    def replace(value: Any, search: str, replacement: str) -> ExpressionBuilder:
        return _call_nodes(
            "SUBSTITUTE", _subject(value), LiteralNode(value=search), LiteralNode(value=replacement)
        )

    @staticmethod
    def starts_with(value: Any, prefix: str) -> ExpressionBuilder:
        return _call_nodes("STARTS_WITH", _subject(value), LiteralNode(value=prefix))

    @staticmethod
    def ends_with(value: Any, suffix: str) -> ExpressionBuilder:
        # AQL has no ENDS_WITH; compare the tail instead
        subject = _subject(value)
        return _call_nodes(
            "LIKE", subject, LiteralNode(value=f"%{suffix}")
        )


class ArrayFunctions:
    @staticmethod
    def unique(array: Any) -> ExpressionBuilder:
        return _call_nodes("UNIQUE", _subject(array))

    @staticmethod
    def reverse(array: Any) -> ExpressionBuilder:
        return _call_nodes("REVERSE", _subject(array))

    @staticmethod
    def first(array: Any) -> ExpressionBuilder:
        return _call_nodes("FIRST", _subject(array))

    @staticmethod
    def last(array: Any) -> ExpressionBuilder:
        return _call_nodes("LAST", _subject(array))

    @staticmethod
    def flatten(array: Any, depth: int = 1) -> ExpressionBuilder:
        return _call_nodes("FLATTEN", _subject(array), LiteralNode(value=depth))

    @staticmethod
    def union(*arrays: Any) -> ExpressionBuilder:
        return _call_nodes("UNION", *(_subject(array) for array in arrays))

    @staticmethod
    def intersection(*arrays: Any) -> ExpressionBuilder:
        return _call_nodes("INTERSECTION", *(_subject(array) for array in arrays))

    @staticmethod
    def minus(*arrays: Any) -> ExpressionBuilder:
        return _call_nodes("MINUS", *(_subject(array) for array in arrays))

    @staticmethod
    def nth(array: Any, position: int) -> ExpressionBuilder:
        return _call_nodes("NTH", _subject(array), LiteralNode(value=position))

    @staticmethod
    def range(start: int, end: int, step: int = 1) -> ExpressionBuilder:
        return _call_nodes(
            "RANGE", LiteralNode(value=start), LiteralNode(value=end), LiteralNode(value=step)
        )


class MathFunctions:
    """Math helpers. Numbers are literals; builders pass through."""

    @staticmethod
    def round(value: Any, digits: int = 0) -> ExpressionBuilder:
        return call("ROUND", value, digits)

    @staticmethod
    def floor(value: Any) -> ExpressionBuilder:
        return call("FLOOR", value)

    @staticmethod
    def ceil(value: Any) -> ExpressionBuilder:
        return call("CEIL", value)

    @staticmethod
    def abs(value: Any) -> ExpressionBuilder:
        return call("ABS", value)

    @staticmethod
    def sqrt(value: Any) -> ExpressionBuilder:
        return call("SQRT", value)

    @staticmethod
    def pow(base: Any, exponent: Any) -> ExpressionBuilder:
        return call("POW", base, exponent)

    @staticmethod
    def log(value: Any) -> ExpressionBuilder:
        return call("LOG", value)

    @staticmethod
    def log10(value: Any) -> ExpressionBuilder:
        return call("LOG10", value)

    @staticmethod
    def log2(value: Any) -> ExpressionBuilder:
        return call("LOG2", value)

    @staticmethod
    def sin(value: Any) -> ExpressionBuilder:
        return call("SIN", value)

    @staticmethod
    def cos(value: Any) -> ExpressionBuilder:
        return call("COS", value)

    @staticmethod
    def tan(value: Any) -> ExpressionBuilder:
        return call("TAN", value)


class SearchFunctions:
    """ArangoSearch helpers for use inside ``search()`` conditions."""

    @staticmethod
    def analyzer(expr: Any, analyzer: str) -> ExpressionBuilder:
        return _call_nodes("ANALYZER", _subject(expr), LiteralNode(value=analyzer))

    @staticmethod
    def boost(expr: Any, boost: float) -> ExpressionBuilder:
        return _call_nodes("BOOST", _subject(expr), LiteralNode(value=boost))

    @staticmethod
    def phrase(expr: Any, phrase: str | list[str], analyzer: str | None = None) -> ExpressionBuilder:
        args = [_subject(expr), LiteralNode(value=phrase)]
        if analyzer:
            args.append(LiteralNode(value=analyzer))
        return _call_nodes("PHRASE", *args)

    @staticmethod
    def tokens(text: str, analyzer: str) -> ExpressionBuilder:
        return _call_nodes("TOKENS", LiteralNode(value=text), LiteralNode(value=analyzer))

    @staticmethod
    def min_match(*conditions: Any, min_match: int) -> ExpressionBuilder:
        return _call_nodes(
            "MIN_MATCH",
            *(to_expression(condition) for condition in conditions),
            LiteralNode(value=min_match),
        )


class UtilityFunctions:
    @staticmethod
    def merge(*documents: Any) -> ExpressionBuilder:
        return _call_nodes("MERGE", *(_subject(document) for document in documents))

    @staticmethod
    def unset(obj: Any, *fields: str) -> ExpressionBuilder:
        """``UNSET(obj, "a", "b")`` with the field names bound."""
        return ExpressionBuilder(UnsetNode(obj=_subject(obj), fields=fields))

    @staticmethod
    def uuid() -> ExpressionBuilder:
        return _call_nodes("UUID")

    @staticmethod
    def rand() -> ExpressionBuilder:
        return _call_nodes("RAND")

    @staticmethod
    def typename(value: Any) -> ExpressionBuilder:
        return _call_nodes("TYPENAME", _subject(value))

    @staticmethod
    def to_number(value: Any) -> ExpressionBuilder:
        return _call_nodes("TO_NUMBER", _subject(value))

    @staticmethod
    def to_string(value: Any) -> ExpressionBuilder:
        return _call_nodes("TO_STRING", _subject(value))
