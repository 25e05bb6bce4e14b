"""
Tests for build-time validation, argument errors and error logging.
"""

import pytest
from structlog.testing import capture_logs

from fluent_aql import AQLBuilder, ConfigurationError, ref
from fluent_aql.core.base import ErrorCode, ErrorLevel, ValidationErrorDetails
from fluent_aql.core.decorators import with_error_handling
from fluent_aql.core.error_context import ErrorContext, ErrorContextManager
from fluent_aql.query_builder.expressions import LiteralNode, ObjectNode, ReferenceNode
from fluent_aql.query_builder.state import OperationClause, QueryRecord, SearchClause, UpdateEnhancedClause


class TestConfigurationErrors:
    """Invalid records are rejected when the query is built, not while chaining."""

    @pytest.mark.parametrize(
        ("builder", "message"),
        [
            pytest.param(
                lambda: AQLBuilder().for_("u").return_("u"),
                "FOR u requires an IN clause",
                id="for-without-in",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("u").in_("users").for_("o").return_("o"),
                "FOR o requires an IN clause",
                id="join-without-in",
            ),
            pytest.param(
                lambda: AQLBuilder().for_multiple("v", "e").return_("v"),
                "FOR v, e requires an IN clause",
                id="traversal-without-in",
            ),
            pytest.param(
                lambda: AQLBuilder().insert({"a": 1}),
                "All operations require a collection",
                id="insert-without-into",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("u").in_("users").limit(-1),
                "LIMIT must be a non-negative integer",
                id="negative-limit",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("u").in_("users").limit(10, offset=-5),
                "OFFSET must be a non-negative integer",
                id="negative-offset",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("u").in_("users").offset(5),
                "OFFSET requires a LIMIT",
                id="offset-without-limit",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("r").in_("readings").window(-1, 0, "r.value"),
                "WINDOW preceding must be a non-negative integer",
                id="negative-window",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("v").in_graph("g", "OUTBOUND", "users/1", min_depth=-3, max_depth=-5),
                "minDepth must be a non-negative integer",
                id="negative-graph-depth",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("v").in_graph("g", "OUTBOUND", "users/1", min_depth=3, max_depth=1),
                "maxDepth 1 is smaller than minDepth 3",
                id="inverted-graph-depth",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("u").in_("users").for_("v").in_graph("g", "ANY", "u", min_depth=-1),
                "minDepth must be a non-negative integer",
                id="negative-join-graph-depth",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("v").in_graph("g", "ANY", "users/1").traverse("v", "p", max_depth=-1),
                "maxDepth must be a non-negative integer",
                id="negative-traverse-depth",
            ),
            pytest.param(
                lambda: AQLBuilder().for_("v").in_graph("g", "ANY", "users/1").traverse("v", "p", 1, 4),
                "maxDepth 1 is smaller than minDepth 4",
                id="inverted-traverse-depth",
            ),
        ],
    )
    def test_invalid_record(self, builder, message):
        chained = builder()

        with pytest.raises(ConfigurationError, match=message) as exc_info:
            chained.build()

        assert exc_info.value.code is ErrorCode.CONFIG_INVALID
        assert exc_info.value.code.value == "1005"
        assert isinstance(exc_info.value.details, ValidationErrorDetails)
        assert exc_info.value.details.operation == "build"

    def test_update_without_collection(self):
        record = QueryRecord(
            updates_enhanced=[
                UpdateEnhancedClause(document=ReferenceNode(name="u"), update_fields=ObjectNode())
            ]
        )

        with pytest.raises(ConfigurationError, match="All updates require a collection"):
            AQLBuilder.from_record(record).build()

    def test_limit_details(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AQLBuilder().for_("u").in_("users").limit(-1).build()

        details = exc_info.value.details
        assert details.field == "limit"
        assert details.actual_value == -1

    def test_chaining_never_validates(self):
        builder = AQLBuilder().for_("u").limit(-1).offset(-1)

        assert builder.query.limit == -1
        assert builder.query.offset == -1

    def test_record_built_directly_is_validated(self):
        record = QueryRecord(operations=[OperationClause(type="REMOVE", variable="u")])

        with pytest.raises(ConfigurationError):
            AQLBuilder.from_record(record).build()

    def test_graph_depth_details(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AQLBuilder().for_("v").in_graph("g", "OUTBOUND", "users/1", min_depth=-3).return_("v").build()

        details = exc_info.value.details
        assert details.field == "source"
        assert details.actual_value == -3

    def test_malformed_source_placeholder_in_record(self):
        record = QueryRecord(variable="d", source="@x || true", return_value=ReferenceNode(name="d"))

        with pytest.raises(ConfigurationError, match="Invalid bind parameter placeholder"):
            AQLBuilder.from_record(record).build()

    def test_search_view_must_be_loop_source(self):
        record = QueryRecord(
            variable="d",
            source="docs",
            searches=[SearchClause(view="docsView", conditions=[LiteralNode(value=True)])],
            return_value=ReferenceNode(name="d"),
        )

        with pytest.raises(ConfigurationError, match="SEARCH view 'docsView' does not match"):
            AQLBuilder.from_record(record).build()


class TestArgumentErrors:
    """Malformed arguments fail immediately with ValueError."""

    def test_variable_from_complex_expression(self):
        with pytest.raises(ValueError, match="Cannot extract variable name"):
            AQLBuilder().for_(ref("a").eq(1))

    def test_source_expression_must_be_parameter(self):
        with pytest.raises(ValueError, match="bind parameter"):
            AQLBuilder().for_("u").in_(ref("users"))

    def test_malformed_source_placeholder(self):
        with pytest.raises(ValueError, match="Invalid bind parameter placeholder"):
            AQLBuilder().for_("u").in_("@@users; REMOVE")

    def test_search_on_a_different_source(self):
        with pytest.raises(ValueError, match="SEARCH view 'docsView' does not match the FOR source 'docs'"):
            AQLBuilder().for_("d").in_("docs").search("docsView", ref("d.title").eq("x"))

    def test_search_repeats_its_own_view(self):
        query = (
            AQLBuilder()
            .for_("d")
            .search("docsView", ref("d.a").eq(1))
            .search("docsView", ref("d.b").eq(2))
            .return_("d")
        )

        assert query.to_aql().split("\n")[:3] == [
            "FOR d IN docsView",
            "SEARCH (d.a == @value0)",
            "SEARCH (d.b == @value1)",
        ]

    def test_into_without_operation(self):
        with pytest.raises(ValueError, match="into\\(\\) requires"):
            AQLBuilder().into("users")

    def test_invalid_sort_direction(self):
        with pytest.raises(ValueError, match="Invalid sort direction"):
            AQLBuilder().sort("u.name", "UP")

    @pytest.mark.parametrize(("page", "page_size"), [(0, 10), (1, 0), (-2, 5)])
    def test_invalid_pagination(self, page, page_size):
        with pytest.raises(ValueError):
            AQLBuilder().paginate(page, page_size)


class TestErrorContext:
    def test_application_error_context(self):
        error = ConfigurationError(
            "OFFSET requires a LIMIT",
            ValidationErrorDetails(source="compiler", operation="build", field="offset"),
        )

        context = ErrorContext(error, query="users").to_dict()

        assert context["error_type"] == "ConfigurationError"
        assert context["error_message"] == "OFFSET requires a LIMIT"
        assert context["error_code"] == "1005"
        assert context["error_level"] == "error"
        assert context["details.field"] == "offset"
        assert context["context.query"] == "users"
        assert context["trace_id"]

    def test_plain_exception_context(self):
        context = ErrorContext(ValueError("boom")).to_dict()

        assert context["error_type"] == "ValueError"
        assert "error_code" not in context

    def test_manager_requires_an_error(self):
        with pytest.raises(ValueError, match="No error provided"):
            with ErrorContextManager():
                pass

    def test_manager_keeps_contexts_by_trace_id(self):
        manager = ErrorContextManager(ValueError("boom"))

        with manager as ctx:
            pass

        assert manager.get_context(ctx.trace_id) is ctx


class TestErrorLogging:
    def test_build_failure_is_logged_and_reraised(self):
        builder = AQLBuilder().for_("u").return_("u")

        with capture_logs() as logs, pytest.raises(ConfigurationError):
            builder.build()

        errors = [entry for entry in logs if entry["log_level"] == "error"]
        assert len(errors) == 1
        assert errors[0]["event"] == "Error in build: FOR u requires an IN clause"
        assert errors[0]["extra"]["function"] == "build"
        assert errors[0]["extra"]["error_context"]["error_code"] == "1005"

    def test_unexpected_errors_use_given_level(self):
        @with_error_handling(error_level=ErrorLevel.WARNING, reraise=False)
        def explode() -> int:
            raise RuntimeError("boom")

        with capture_logs() as logs:
            result = explode()

        assert result is None
        assert logs[0]["log_level"] == "warning"
        assert logs[0]["event"] == "Error in explode: boom"
        assert logs[0]["exc_info"] is True

    def test_successful_call_is_not_logged(self, adults_query):
        with capture_logs() as logs:
            adults_query.build()

        assert not [entry for entry in logs if entry["log_level"] == "error"]
