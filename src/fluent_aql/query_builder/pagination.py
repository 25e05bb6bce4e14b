"""Pagination mixin for the AQL query builder.

This module provides a separate mixin for LIMIT / OFFSET handling to keep
the core query builder clean. Values are stored as given; the compiler
rejects negative or non-integer values when the query is built.
"""

from typing import Self

from fluent_aql.query_builder.state import QueryRecord


class PaginationMixin:
    """Mixin adding limit, offset and paginate to a query builder.

    It can be mixed into any builder that exposes a ``query`` record.
    """

    query: QueryRecord

    def limit(self, count: int, offset: int | None = None) -> Self:
        """Set the LIMIT clause.

        Args:
            count: Maximum number of results to return
            offset: Number of results to skip first, if given

        Returns:
            Self for method chaining
        """
        self.query.limit = count
        if offset is not None:
            self.query.offset = offset
        return self

    def offset(self, count: int) -> Self:
        """Set the number of results to skip.

        An offset needs a limit; ``build()`` fails if none is set by then.

        Args:
            count: Number of results to skip

        Returns:
            Self for method chaining
        """
        self.query.offset = count
        return self

    def paginate(self, page: int, page_size: int) -> Self:
        """Set LIMIT and offset from a page number and size.

        This is a convenience method that combines offset and limit.

        Args:
            page: Page number (1-based)
            page_size: Number of items per page

        Returns:
            Self for method chaining
        """
        if page < 1:
            raise ValueError("Page number must be greater than or equal to 1")

        if page_size < 1:
            raise ValueError("Page size must be greater than or equal to 1")

        return self.limit(page_size, offset=(page - 1) * page_size)
