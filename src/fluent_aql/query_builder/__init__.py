"""AQL query builder framework.

This package provides a fluent interface for building AQL queries, a
compiler that turns them into text plus bind variables, and JSON snapshots.
"""

from .builder import AB, AQLBuilder
from .collect import CollectBuilder, CollectKeepBuilder
from .compiler import BindVariables, CompiledQuery, QueryCompiler, compile_query
from .expression_builder import (
    ExpressionBuilder,
    OldBuilder,
    PendingTernary,
    collection_param,
    current,
    literal,
    param,
    ref,
)
from .parameters import extract_parameters
from .patterns import GraphSource, RangeSource
from .serializer import from_json, to_json
from .state import ClauseType, QueryPhase, QueryRecord
from .upsert import UpsertBuilder, UpsertIntoBuilder, UpsertUpdateBuilder

__all__ = [
    "AB",
    "AQLBuilder",
    "BindVariables",
    "ClauseType",
    "CollectBuilder",
    "CollectKeepBuilder",
    "CompiledQuery",
    "ExpressionBuilder",
    "GraphSource",
    "OldBuilder",
    "PendingTernary",
    "QueryCompiler",
    "QueryPhase",
    "QueryRecord",
    "RangeSource",
    "UpsertBuilder",
    "UpsertIntoBuilder",
    "UpsertUpdateBuilder",
    "collection_param",
    "compile_query",
    "current",
    "extract_parameters",
    "from_json",
    "literal",
    "param",
    "ref",
    "to_json",
]
