"""Staged UPSERT builders.

Each stage exposes only the next step, so an UPSERT cannot reach the query
without its search, insert and update documents and its collection.
"""

from typing import TYPE_CHECKING, Any

from fluent_aql.query_builder.expression_builder import to_document
from fluent_aql.query_builder.expressions import ExpressionNode
from fluent_aql.query_builder.state import UpsertClause

if TYPE_CHECKING:
    from fluent_aql.query_builder.builder import AQLBuilder


class UpsertBuilder:
    def __init__(self, builder: "AQLBuilder", search_doc: Any) -> None:
        self._builder = builder
        self._search_doc = to_document(search_doc)

    def insert(self, insert_doc: Any) -> "UpsertUpdateBuilder":
        return UpsertUpdateBuilder(self._builder, self._search_doc, to_document(insert_doc))


class UpsertUpdateBuilder:
    def __init__(
        self, builder: "AQLBuilder", search_doc: ExpressionNode, insert_doc: ExpressionNode
    ) -> None:
        self._builder = builder
        self._search_doc = search_doc
        self._insert_doc = insert_doc

    def update(self, update_doc: Any) -> "UpsertIntoBuilder":
        return UpsertIntoBuilder(
            self._builder, self._search_doc, self._insert_doc, to_document(update_doc)
        )


class UpsertIntoBuilder:
    def __init__(
        self,
        builder: "AQLBuilder",
        search_doc: ExpressionNode,
        insert_doc: ExpressionNode,
        update_doc: ExpressionNode,
    ) -> None:
        self._builder = builder
        self._search_doc = search_doc
        self._insert_doc = insert_doc
        self._update_doc = update_doc

    def into(self, collection: str) -> "AQLBuilder":
        """Complete the UPSERT and return to the parent builder."""
        self._builder.query.append(
            "upserts",
            UpsertClause(
                search_doc=self._search_doc,
                insert_doc=self._insert_doc,
                update_doc=self._update_doc,
                collection=collection,
            ),
        )
        return self._builder
