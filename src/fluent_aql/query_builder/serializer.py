"""JSON snapshots of query records.

A snapshot is the query record dumped with camelCase keys. Unused fields are
left out and every expression node keeps its ``type`` tag, which is what
``from_json`` uses to rebuild the right node classes.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError
from structlog.typing import FilteringBoundLogger

from fluent_aql.core.base import ErrorDetails
from fluent_aql.core.errors import SerializationError
from fluent_aql.core.logging import get_logger
from fluent_aql.query_builder.builder import AQLBuilder
from fluent_aql.query_builder.interfaces import QueryBuilder
from fluent_aql.query_builder.state import QueryRecord

logger: FilteringBoundLogger = get_logger(name=__name__)


def to_json(source: QueryBuilder | QueryRecord) -> dict[str, Any]:
    """Snapshot a builder or record as a JSON-compatible dict.

    Args:
        source: The builder or record to snapshot

    Returns:
        A dict of plain JSON types with camelCase keys
    """
    record = source.query if isinstance(source, QueryBuilder) else source
    return record.model_dump(by_alias=True, mode="json", exclude_none=True)


def from_json(snapshot: Mapping[str, Any] | str | bytes) -> AQLBuilder:
    """Rebuild a builder from a snapshot.

    Field types and node tags are checked; clause invariants are not, so a
    snapshot of an incomplete query restores fine and fails at ``build()``.

    Args:
        snapshot: A ``to_json()`` dict, or the same serialized as a JSON document

    Returns:
        A new builder owning the restored record

    Raises:
        SerializationError: If the snapshot does not describe a query record
    """
    try:
        if isinstance(snapshot, str | bytes):
            record = QueryRecord.model_validate_json(snapshot)
        else:
            record = QueryRecord.model_validate(snapshot)
    except ValidationError as e:
        logger.warning("Rejected query snapshot", errors=e.error_count())
        raise SerializationError(
            f"Invalid query snapshot: {e.error_count()} validation error(s)",
            ErrorDetails(source="serializer", operation="from_json"),
        ) from e

    return AQLBuilder.from_record(record)
