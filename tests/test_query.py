"""Tests for writeback.query — structured query normalization and grammar."""

import pytest

from writeback.query import (
    QueryError,
    canonical_key,
    normalize_field_ref,
    normalize_filter,
    normalize_query,
    validate_filter,
    validate_query,
)

FIELD = ["field", 51, None]


class TestCanonicalKey:
    @pytest.mark.parametrize(
        "key",
        ["sourceTable", "source-table", "source_table", ":source-table", "SourceTable"],
    )
    def test_source_table_spellings(self, key):
        assert canonical_key(key) == "source_table"

    def test_row_payload_keys(self):
        assert canonical_key("createRow") == "create_row"
        assert canonical_key("update-row") == "update_row"

    def test_plain_keys_unchanged(self):
        assert canonical_key("database") == "database"
        assert canonical_key("filter") == "filter"

    def test_non_string_key(self):
        assert canonical_key(3) == 3


class TestNormalizeFieldRef:
    def test_bare_integer(self):
        assert normalize_field_ref(51) == FIELD

    def test_legacy_field_id(self):
        assert normalize_field_ref(["field-id", 51]) == FIELD

    def test_field_literal(self):
        assert normalize_field_ref(["field-literal", "name", "type/Text"]) == [
            "field",
            "name",
            {"base_type": "type/Text"},
        ]

    def test_fk_arrow(self):
        assert normalize_field_ref(["fk->", ["field-id", 1], ["field-id", 2]]) == [
            "field",
            2,
            {"source_field": 1},
        ]

    def test_field_without_options(self):
        assert normalize_field_ref(["field", 51]) == FIELD

    def test_canonical_unchanged(self):
        assert normalize_field_ref(["field", 51, {"base_type": "type/Integer"}]) == [
            "field",
            51,
            {"base_type": "type/Integer"},
        ]


class TestNormalizeFilter:
    def test_operator_case_and_dashes(self):
        assert normalize_filter(["IS-NULL", ["field-id", 51]]) == ["is_null", FIELD]

    def test_empty_filter_dropped(self):
        assert normalize_filter([]) is None
        assert normalize_filter(None) is None

    def test_single_argument_and_collapses(self):
        assert normalize_filter(["and", ["=", 51, 1]]) == ["=", FIELD, 1]

    def test_nested_and_flattened(self):
        clause = ["and", ["and", ["=", 51, 1], ["=", 51, 2]], ["=", 51, 3]]
        assert normalize_filter(clause) == [
            "and",
            ["=", FIELD, 1],
            ["=", FIELD, 2],
            ["=", FIELD, 3],
        ]

    def test_or_not_flattened_into_and(self):
        clause = ["and", ["or", ["=", 51, 1], ["=", 51, 2]], ["=", 51, 3]]
        result = normalize_filter(clause)
        assert result[0] == "and"
        assert result[1][0] == "or"

    def test_not_clause(self):
        assert normalize_filter(["NOT", ["=", 51, 1]]) == ["not", ["=", FIELD, 1]]

    def test_not_keeps_empty_subclause(self):
        clause = normalize_filter(["not", []])
        assert clause == ["not", []]
        with pytest.raises(QueryError, match=r"got \[\]") as exc_info:
            validate_filter(clause)
        assert exc_info.value.path == "query.filter[1]"

    def test_empty_subclauses_removed(self):
        assert normalize_filter(["and", [], ["=", 51, 1]]) == ["=", FIELD, 1]


class TestNormalizeQuery:
    def test_stamps_type_and_canonicalizes(self):
        doc = {"database": 2, "query": {"sourceTable": 29}, "createRow": {"firstName": "Bob"}}
        assert normalize_query(doc) == {
            "database": 2,
            "type": "query",
            "query": {"source_table": 29},
            "create_row": {"firstName": "Bob"},
        }

    def test_row_field_names_untouched(self):
        doc = {"database": 2, "query": {"source_table": 29}, "update_row": {"Created-At": 1}}
        assert normalize_query(doc)["update_row"] == {"Created-At": 1}

    def test_empty_filter_removed(self):
        doc = {"database": 2, "query": {"source_table": 29, "filter": []}}
        assert "filter" not in normalize_query(doc)["query"]

    def test_idempotent(self):
        doc = {
            "database": 2,
            "type": "native",
            "query": {
                "source-table": 29,
                "filter": ["AND", ["=", ["field-id", 51], 1], ["and", ["is-null", 52]]],
            },
            "updateRow": {"name": "Bob"},
        }
        once = normalize_query(doc)
        assert normalize_query(once) == once

    def test_does_not_mutate_input(self):
        doc = {"database": 2, "query": {"sourceTable": 29, "filter": ["=", 51, 1]}}
        normalize_query(doc)
        assert doc == {"database": 2, "query": {"sourceTable": 29, "filter": ["=", 51, 1]}}

    def test_rejects_non_mapping(self):
        with pytest.raises(QueryError, match="Expected a mapping"):
            normalize_query([1, 2])


class TestValidateFilter:
    @pytest.mark.parametrize(
        "clause",
        [
            ["=", FIELD, 1],
            ["=", FIELD, 1, 2, 3],
            ["!=", FIELD, "a"],
            ["<", FIELD, 1.5],
            ["between", FIELD, 1, 10],
            ["is_null", FIELD],
            ["contains", FIELD, "bob", {"case_sensitive": False}],
            ["and", ["=", FIELD, 1], ["is_null", FIELD]],
            ["not", ["=", FIELD, 1]],
            ["=", ["expression", "total"], 10],
            ["=", ["field", "name", {"base_type": "type/Text"}], "x"],
        ],
    )
    def test_valid_clauses(self, clause):
        validate_filter(clause)

    def test_unknown_operator(self):
        with pytest.raises(QueryError, match="Unknown filter operator") as exc_info:
            validate_filter(["bogus", FIELD])
        assert exc_info.value.path == "query.filter[0]"

    def test_wrong_arity(self):
        with pytest.raises(QueryError, match="Wrong number of arguments"):
            validate_filter(["between", FIELD, 1])

    def test_bad_field_reference(self):
        with pytest.raises(QueryError, match="field reference") as exc_info:
            validate_filter(["=", "name", 1])
        assert exc_info.value.path == "query.filter[1]"

    def test_non_scalar_value(self):
        with pytest.raises(QueryError, match="scalars"):
            validate_filter(["=", FIELD, {"a": 1}])

    def test_compound_needs_two_subclauses(self):
        with pytest.raises(QueryError, match="at least two"):
            validate_filter(["and", ["=", FIELD, 1]])

    def test_nested_error_path(self):
        with pytest.raises(QueryError) as exc_info:
            validate_filter(["and", ["=", FIELD, 1], ["<", FIELD]])
        assert exc_info.value.path == "query.filter[2]"

    def test_string_filter_needs_string(self):
        with pytest.raises(QueryError, match="requires a string"):
            validate_filter(["starts_with", FIELD, 1])


class TestValidateQuery:
    def _doc(self, **overrides):
        doc = {"database": 2, "type": "query", "query": {"source_table": 29}}
        doc.update(overrides)
        return doc

    def test_valid(self):
        validate_query(self._doc())

    def test_wrong_type(self):
        with pytest.raises(QueryError, match="Expected type"):
            validate_query(self._doc(type="native"))

    @pytest.mark.parametrize("database", [None, 0, -2, "2", True])
    def test_bad_database(self, database):
        with pytest.raises(QueryError, match="database") as exc_info:
            validate_query(self._doc(database=database))
        assert exc_info.value.path == "database"

    def test_missing_source_table(self):
        with pytest.raises(QueryError) as exc_info:
            validate_query(self._doc(query={}))
        assert exc_info.value.path == "query.source_table"

    def test_query_not_mapping(self):
        with pytest.raises(QueryError, match="query must be a mapping"):
            validate_query(self._doc(query=[29]))

    def test_checks_filter(self):
        with pytest.raises(QueryError):
            validate_query(self._doc(query={"source_table": 29, "filter": ["=", 51]}))
