"""
Tests for the query compiler: expression rendering, bind variables and
clause ordering.
"""

import pytest

from fluent_aql import (
    AB,
    AQLBuilder,
    AVG,
    CONCAT,
    COUNT,
    SUM,
    ConfigurationError,
    SearchFunctions,
    StringFunctions,
    UtilityFunctions,
    collection_param,
    compile_query,
    current,
    literal,
    param,
    ref,
)
from fluent_aql.query_builder.compiler import BindVariables, CompiledQuery


class TestExpressionRendering:
    """Each node kind renders to the expected AQL fragment."""

    def test_reference_and_parameters(self, render):
        assert render(ref("u.address.city")) == ("u.address.city", {})
        assert render(param("userId")) == ("@userId", {})
        assert render(collection_param("coll")) == ("@@coll", {})

    def test_every_literal_is_bound(self, render):
        assert render(literal(42)) == ("@value0", {"value0": 42})
        assert render(literal(True)) == ("@value0", {"value0": True})
        assert render(literal(None)) == ("@value0", {"value0": None})
        assert render(literal("Ada")) == ("@value0", {"value0": "Ada"})

    def test_array_literal_uses_array_prefix(self, render):
        assert render(literal([1, 2])) == ("@array0", {"array0": [1, 2]})

    def test_in_list_uses_in_values_prefix(self, render):
        text, bind_vars = render(ref("x").in_(["a", "b"]))

        assert text == "(x IN @inValues0)"
        assert "x IN @inValues0" in text
        assert bind_vars == {"inValues0": ["a", "b"]}

    def test_not_in_expression(self, render):
        assert render(ref("x").not_in(ref("blocked"))) == ("(x NOT IN blocked)", {})

    def test_unary(self, render):
        assert render(ref("u.active").not_()) == ("!u.active", {})
        assert render(ref("u.score").negate()) == ("-u.score", {})

    def test_ternary(self, render):
        text, bind_vars = render(ref("u.age").gte(18).then("adult").else_("minor"))

        assert text == "((u.age >= @value0) ? @value1 : @value2)"
        assert bind_vars == {"value0": 18, "value1": "adult", "value2": "minor"}

    def test_like(self, render):
        assert render(ref("u.name").like("A%")) == (
            "(u.name LIKE @likePattern0)",
            {"likePattern0": "A%"},
        )
        assert render(ref("u.name").like("a%", case_insensitive=True)) == (
            "LIKE(u.name, @likePattern0, true)",
            {"likePattern0": "a%"},
        )

    def test_regex(self, render):
        assert render(ref("u.email").regex("^admin")) == (
            "REGEX_MATCH(u.email, @regexPattern0)",
            {"regexPattern0": "^admin"},
        )
        assert render(ref("u.email").regex("^admin", "i")) == (
            "REGEX_MATCH(u.email, @regexPattern0, true)",
            {"regexPattern0": "^admin"},
        )

    def test_quantifiers(self, render):
        text, bind_vars = render(ref("u.tags").all(current().eq("x")))

        assert text == "(u.tags[* RETURN (CURRENT == @value0)] ALL == true)"
        assert bind_vars == {"value0": "x"}
        assert render(ref("u.tags").any(current().eq("x")))[0] == (
            "(u.tags[* RETURN (CURRENT == @value0)] ANY == true)"
        )

    def test_unset_binds_field_names(self, render):
        assert render(UtilityFunctions.unset("u", "password", "salt")) == (
            "UNSET(u, @value0, @value1)",
            {"value0": "password", "value1": "salt"},
        )

    def test_object_and_array(self, render):
        text, bind_vars = render(AQLBuilder().return_({"name": "Ada", "boss": ref("m")}).query.return_value)

        assert text == '{"name": @value0, "boss": m}'
        assert bind_vars == {"value0": "Ada"}
        assert render([ref("a"), 1]) == ("[a, @value0]", {"value0": 1})

    def test_functions(self, render):
        assert render(COUNT()) == ("COUNT(1)", {})
        assert render(SUM(ref("o.amount"))) == ("SUM(o.amount)", {})
        assert render(AVG(ref("r.value"))) == ("AVERAGE(r.value)", {})
        assert render(CONCAT(ref("u.first"), " ", ref("u.last"))) == (
            "CONCAT(u.first, @value0, u.last)",
            {"value0": " "},
        )
        assert render(StringFunctions.lower("u.name")) == ("LOWER(u.name)", {})


class TestBindVariables:
    def test_single_counter_across_prefixes(self, render):
        expression = ref("a").eq(1).and_(ref("b").in_([1, 2])).and_(ref("c").like("x%"))

        text, bind_vars = render(expression)

        assert text == "(((a == @value0) && (b IN @inValues1)) && (c LIKE @likePattern2))"
        assert bind_vars == {"value0": 1, "inValues1": [1, 2], "likePattern2": "x%"}

    def test_store_copies_containers(self):
        store = BindVariables()
        values = [1, 2]

        store.bind(values, "array")
        values.append(3)

        assert store.to_dict() == {"array0": [1, 2]}
        assert len(store) == 1

    def test_equal_values_get_distinct_names(self):
        query = (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .filter(ref("u.a").eq(1))
            .filter(ref("u.b").eq(1))
            .return_("u")
            .build()
        )

        assert query.bind_vars == {"value0": 1, "value1": 1}
        assert "@value0" in query.query
        assert "@value1" in query.query

    def test_injection_safety(self):
        payload = '" || true //'
        query = (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .filter(ref("u.name").eq(payload))
            .update("u", {"note": payload, "tags": ["x", payload]})
            .into("users")
            .build()
        )

        assert payload not in query.query
        assert query.bind_vars["value0"] == payload
        assert query.bind_vars["value1"] == payload
        assert query.bind_vars["array2"] == ["x", payload]

    def test_generated_names_skip_merged_names(self):
        store = BindVariables()
        store.merge({"value0": 100})

        assert store.bind(18) == "@value1"
        assert store.to_dict() == {"value0": 100, "value1": 18}

    def test_merge_rejects_conflicting_value(self):
        store = BindVariables()
        store.bind(18)

        with pytest.raises(ConfigurationError, match="@value0 is already bound"):
            store.merge({"value0": 100})

    def test_merge_accepts_identical_value(self):
        store = BindVariables()
        store.bind({"tier": "gold"})
        store.merge({"value0": {"tier": "gold"}, "owner": "u1"})

        assert store.to_dict() == {"value0": {"tier": "gold"}, "owner": "u1"}


class TestInjectionSafety:
    """Operand strings only reach the query text as well-formed placeholders."""

    def test_placeholder_lookalike_is_bound(self):
        query = AQLBuilder().for_("u").in_("users").filter(ref("u.handle").eq("@x || true")).return_("u").build()

        assert query.query.split("\n")[1] == "FILTER (u.handle == @value0)"
        assert query.bind_vars == {"value0": "@x || true"}

    def test_collection_placeholder_lookalike_is_bound(self, render):
        assert render(ref("d.kind").eq("@@coll REMOVE d IN coll")) == (
            "(d.kind == @value0)",
            {"value0": "@@coll REMOVE d IN coll"},
        )

    def test_well_formed_placeholders_pass_through(self, render):
        assert render(ref("u._key").eq("@userId")) == ("(u._key == @userId)", {})
        assert render(ref("u._key").in_(["@a", "@b c"])) == ("(u._key IN @inValues0)", {"inValues0": ["@a", "@b c"]})

    def test_function_arguments_are_bound(self, render):
        assert render(StringFunctions.lower("@x || true")) == ("LOWER(@value0)", {"value0": "@x || true"})

    def test_invalid_parameter_names_are_rejected(self):
        with pytest.raises(ValueError, match="Invalid bind parameter name"):
            param("x || true")


class TestQueries:
    """Whole queries compiled from builders."""

    def test_simple_filter_query(self, adults_query):
        compiled = adults_query.build()

        assert compiled.query.split("\n") == ["FOR u IN users", "FILTER (u.age >= @value0)", "RETURN u"]
        assert compiled.bind_vars == {"value0": 18}

    def test_compiled_query_shape(self, adults_query):
        compiled = adults_query.build()

        assert isinstance(compiled, CompiledQuery)
        assert compiled.to_dict() == {"query": compiled.query, "bindVars": {"value0": 18}}
        assert adults_query.to_aql() == compiled.query

    def test_compilation_is_idempotent(self, orders_by_status):
        assert orders_by_status.build() == orders_by_status.build()

    def test_compile_query_function(self, adults_query):
        assert compile_query(adults_query.query) == adults_query.build()

    def test_clause_order_ignores_call_order(self):
        query = (
            AQLBuilder()
            .return_("u")
            .limit(10)
            .sort("u.name", "DESC")
            .filter(ref("u.active").eq(True))
            .for_("u")
            .in_("users")
            .with_("users", "groups")
            .build()
        )

        assert query.query.split("\n") == [
            "WITH users, groups",
            "FOR u IN users",
            "FILTER (u.active == @value0)",
            "SORT u.name DESC",
            "LIMIT 10",
            "RETURN u",
        ]

    def test_multiple_sorts_share_one_clause(self):
        query = AQLBuilder().for_("u").in_("users").sort("u.last").sort("u.first", "DESC").return_("u")

        assert "SORT u.last ASC, u.first DESC" in query.to_aql()

    def test_joins(self):
        expected = [
            "FOR u IN users",
            "FOR o IN orders",
            "FILTER (o.userId == u._key)",
            "RETURN o",
        ]
        nested = (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .for_("o")
            .in_("orders")
            .filter(ref("o.userId").eq(ref("u._key")))
            .return_("o")
        )
        shorthand = (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .join("orders", "o")
            .filter(ref("o.userId").eq(ref("u._key")))
            .return_("o")
        )

        assert nested.to_aql().split("\n") == expected
        assert shorthand.to_aql().split("\n") == expected

    def test_range_and_collection_parameter_sources(self):
        assert AQLBuilder().for_("i").in_(AB.range(1, 10)).return_("i").to_aql() == "FOR i IN 1..10\nRETURN i"
        assert AQLBuilder().for_("d").in_(collection_param("coll")).return_("d").to_aql() == (
            "FOR d IN @@coll\nRETURN d"
        )

    def test_let_before_and_after_collect(self):
        query = (
            AQLBuilder()
            .for_("o")
            .in_("orders")
            .let("y", ref("o.year"))
            .collect({"year": "y"})
            .into("group")
            .let("size", COUNT(ref("group")))
            .return_({"year": ref("year"), "size": ref("size")})
        )

        assert query.to_aql().split("\n") == [
            "FOR o IN orders",
            "LET y = o.year",
            "COLLECT year = y",
            "  INTO group",
            "LET size = COUNT(group)",
            'RETURN {"year": year, "size": size}',
        ]

    def test_limit_with_offset(self):
        base = AQLBuilder().for_("u").in_("users")

        assert "LIMIT 20, 10" in base.limit(10, offset=20).to_aql()
        assert "LIMIT 5, 10" in AQLBuilder().for_("u").in_("users").offset(5).limit(10).to_aql()

    def test_paginate(self):
        query = AQLBuilder().for_("u").in_("users").paginate(3, 25).return_("u")

        assert query.query.limit == 25
        assert query.query.offset == 50
        assert "LIMIT 50, 25" in query.to_aql()

    def test_return_distinct(self):
        query = AQLBuilder().for_("u").in_("users").return_("u.city", distinct=True)

        assert query.to_aql().endswith("RETURN DISTINCT u.city")

    def test_initial_value_returns_literal(self):
        assert AQLBuilder(1).build() == CompiledQuery("RETURN @value0", {"value0": 1})

    def test_search(self):
        query = (
            AQLBuilder()
            .for_("d")
            .search(
                "articlesView",
                SearchFunctions.phrase("d.body", "quick fox", "text_en"),
                options={"collections": ["articles"]},
            )
            .return_("d")
            .build()
        )

        assert query.query.split("\n") == [
            "FOR d IN articlesView",
            'SEARCH PHRASE(d.body, @value0, @value1) OPTIONS {"collections": @array2}',
            "RETURN d",
        ]
        assert query.bind_vars == {"value0": "quick fox", "value1": "text_en", "array2": ["articles"]}

    def test_window(self):
        query = (
            AQLBuilder()
            .for_("r")
            .in_("readings")
            .sort("r.time")
            .window(1, 1, AVG(ref("r.value")), name="rolling")
            .return_("rolling")
        )

        assert query.to_aql().split("\n") == [
            "FOR r IN readings",
            "SORT r.time ASC",
            "WINDOW { preceding: 1, following: 1 }",
            "  AGGREGATE rolling = AVERAGE(r.value)",
            "RETURN rolling",
        ]

    def test_debug_string_inlines_values(self):
        query = AQLBuilder().for_("u").in_("users").filter(ref("u.name").eq("Ada")).return_("u")

        assert query.to_debug_string() == 'FOR u IN users\nFILTER (u.name == "Ada")\nRETURN u'

    def test_raw_passthrough(self):
        bind_vars = {"@c": "users", "active": True}

        compiled = AQLBuilder.raw("FOR x IN @@c FILTER x.active == @active RETURN x", bind_vars).build()

        assert compiled == CompiledQuery("FOR x IN @@c FILTER x.active == @active RETURN x", bind_vars)
        assert compiled.bind_vars is not bind_vars
        assert AB.raw("RETURN 1").build() == CompiledQuery("RETURN 1", {})


class TestSubqueries:
    def test_subquery_in_let_shares_counter(self):
        orders = (
            AB.subquery()
            .for_("o")
            .in_("orders")
            .filter(ref("o.userId").eq(ref("u._key")))
            .filter(ref("o.total").gt(100))
            .return_("o")
        )
        query = (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .filter(ref("u.active").eq(True))
            .let("orders", orders)
            .return_({"user": ref("u"), "orders": ref("orders")})
            .build()
        )

        assert query.query.split("\n") == [
            "FOR u IN users",
            "LET orders = (FOR o IN orders",
            "FILTER (o.userId == u._key)",
            "FILTER (o.total > @value0)",
            "RETURN o)",
            "FILTER (u.active == @value1)",
            'RETURN {"user": u, "orders": orders}',
        ]
        assert query.bind_vars == {"value0": 100, "value1": True}

    def test_subquery_is_a_snapshot(self):
        inner = AQLBuilder().for_("o").in_("orders").return_("o")
        outer = AQLBuilder().for_("u").in_("users").let("orders", inner).return_("orders")
        before = outer.to_aql()

        inner.limit(1)

        assert outer.to_aql() == before

    def test_raw_subquery_merges_bind_vars(self):
        inner = AQLBuilder.raw("FOR o IN orders FILTER o.owner == @owner RETURN o", {"owner": "u1"})
        query = AQLBuilder().let("mine", inner).return_(literal("x")).build()

        assert query.query == "LET mine = (FOR o IN orders FILTER o.owner == @owner RETURN o)\nRETURN @value0"
        assert query.bind_vars == {"owner": "u1", "value0": "x"}

    def test_raw_subquery_names_are_not_reused(self):
        inner = AQLBuilder.raw("FOR o IN orders FILTER o.total > @value0 RETURN o", {"value0": 100})
        query = (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .let("big", inner)
            .filter(ref("u.age").gte(18))
            .return_("u")
            .build()
        )

        assert query.query.split("\n") == [
            "FOR u IN users",
            "LET big = (FOR o IN orders FILTER o.total > @value0 RETURN o)",
            "FILTER (u.age >= @value1)",
            "RETURN u",
        ]
        assert query.bind_vars == {"value0": 100, "value1": 18}

    def test_raw_subquery_conflicting_with_generated_name(self):
        inner = AQLBuilder.raw("FOR o IN orders FILTER o.total > @value0 RETURN o", {"value0": 100})
        builder = AQLBuilder().for_("u").in_("users").filter(ref("u.age").gte(18)).return_(inner)

        with pytest.raises(ConfigurationError, match="@value0 is already bound to a different value"):
            builder.build()


class TestDataModification:
    def test_insert(self):
        query = AQLBuilder().insert({"name": "Ada", "age": 36}).into("users").build()

        assert query == CompiledQuery(
            'INSERT {"name": @value0, "age": @value1} INTO users',
            {"value0": "Ada", "value1": 36},
        )

    def test_remove_replace_update(self):
        base = AQLBuilder().for_("u").in_("users").filter(ref("u.stale").eq(True))

        assert base.remove("u").into("users").to_aql().endswith("REMOVE u IN users")
        assert AQLBuilder().for_("u").in_("users").replace("u").into("users").to_aql().endswith(
            "REPLACE u IN users"
        )
        assert (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .update("u", {"active": False})
            .into("users")
            .to_aql()
            .endswith('UPDATE u WITH {"active": @value0} IN users')
        )

    def test_into_targets_latest_operation(self):
        query = AQLBuilder().insert({"a": 1}).into("first").insert({"b": 2}).into("second")

        assert query.to_aql().split("\n") == [
            'INSERT {"a": @value0} INTO first',
            'INSERT {"b": @value1} INTO second',
        ]

    def test_upsert(self):
        query = (
            AQLBuilder()
            .upsert({"email": "ada@example.com"})
            .insert({"email": "ada@example.com", "logins": 1})
            .update({"logins": ref("OLD.logins").add(1)})
            .into("users")
            .build()
        )

        assert query.query.split("\n") == [
            'UPSERT {"email": @value0}',
            'INSERT {"email": @value1, "logins": @value2}',
            'UPDATE {"logins": (OLD.logins + @value3)}',
            "IN users",
        ]
        assert query.bind_vars == {
            "value0": "ada@example.com",
            "value1": "ada@example.com",
            "value2": 1,
            "value3": 1,
        }

    def test_update_with_defaults_to_loop_collection(self):
        query = AQLBuilder().for_("u").in_("users").update_with("u", {"active": True})

        assert query.to_aql().split("\n") == [
            "FOR u IN users",
            "UPDATE u",
            'WITH {"active": @value0}',
            "IN users",
        ]

    def test_update_with_old_returns_both_revisions(self):
        query = (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .update_with_old("u", lambda old: {"visits": old["visits"].add(1)})
        )

        assert query.to_aql().split("\n") == [
            "FOR u IN users",
            "UPDATE u",
            'WITH {"visits": (OLD.visits + @value0)}',
            "IN users",
            "RETURN { old: OLD, new: NEW }",
        ]

    def test_explicit_return_replaces_old_new_pair(self):
        query = (
            AQLBuilder()
            .for_("u")
            .in_("users")
            .update_with_old("u", lambda old: {"visits": old.field("visits").add(1)})
            .return_("NEW")
        )

        lines = query.to_aql().split("\n")

        assert lines[-1] == "RETURN NEW"
        assert "RETURN { old: OLD, new: NEW }" not in lines


class TestTraversalClauses:
    def test_traverse_and_prune(self):
        query = (
            AQLBuilder()
            .for_multiple("v", "e", "p")
            .in_graph("social", "OUTBOUND", "users/1", max_depth=3)
            .prune(lambda v, e, p: e.get("kind").eq("blocked"))
            .traverse("v", "p", max_depth=3)
            .return_("v")
        )

        assert query.to_aql().split("\n") == [
            'FOR v, e, p IN 1..3 OUTBOUND "users/1" GRAPH "social"',
            "TRAVERSE v IN p MAXDEPTH 3",
            "PRUNE (e.kind == @value0)",
            "RETURN v",
        ]

    def test_prune_with_expression(self):
        query = (
            AQLBuilder()
            .for_("v")
            .in_graph("g", "ANY", "users/1", max_depth=2)
            .prune(ref("v.depth").gt(1))
            .return_("v")
        )

        assert "PRUNE (v.depth > @value0)" in query.to_aql()
