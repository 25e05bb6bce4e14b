"""fluent_aql: a fluent, injection-safe AQL query builder for ArangoDB."""

from fluent_aql.core import ConfigurationError, SerializationError
from fluent_aql.query_builder import (
    AB,
    AQLBuilder,
    CompiledQuery,
    ExpressionBuilder,
    QueryPhase,
    QueryRecord,
    collection_param,
    compile_query,
    current,
    extract_parameters,
    from_json,
    literal,
    param,
    ref,
    to_json,
)
from fluent_aql.query_builder.functions import (
    ABS,
    APPEND,
    AVERAGE,
    AVG,
    CEIL,
    CONCAT,
    COUNT,
    FIRST,
    FLATTEN,
    FLOOR,
    HAS,
    IS_ARRAY,
    IS_BOOL,
    IS_NULL,
    IS_NUMBER,
    IS_OBJECT,
    IS_STRING,
    LAST,
    LENGTH,
    LOG,
    LOWER,
    MAX,
    MIN,
    NTH,
    POW,
    RAND,
    REGEX_MATCH,
    REVERSE,
    ROUND,
    SORT,
    SPLIT,
    SQRT,
    SUBSTRING,
    SUM,
    TO_STRING,
    TRIM,
    TYPE_OF,
    UNIQUE,
    UPPER,
    ArrayFunctions,
    DateFunctions,
    MathFunctions,
    SearchFunctions,
    StringFunctions,
    UtilityFunctions,
)

__version__ = "0.1.0"
