"""Tests for the Question aggregate and its immutable update protocol."""

import copy

import pytest

from questionkit.errors import InvalidVariantAccess, UnknownQueryType
from questionkit.queries import MultiQuery, NativeQuery, StructuredQuery
from questionkit.question import Question

ORDERS = 2
ORDER_ID = 4
ORDER_STATUS = 8


def test_create_new_question_seeds_structured_query(sample_metadata):
    question = Question.create(sample_metadata, database_id=1, table_id=ORDERS)

    assert question.card() == {
        "name": None,
        "display": "table",
        "visualization_settings": {},
        "dataset_query": {"type": "query", "database": 1, "query": {"source_table": ORDERS}},
    }
    assert question.is_saved() is False
    assert question.can_run() is True


def test_query_is_memoized_per_instance(structured_card):
    question = Question(None, structured_card)
    assert question.query() is question.query()

    other = question.set_display("line")
    assert other.query() is not question.query()
    assert other.query() == question.query()


def test_unknown_query_type_propagates_from_query():
    question = Question(None, {"dataset_query": {"type": "graphql"}})
    with pytest.raises(UnknownQueryType):
        question.query()


def test_set_display_returns_new_question(structured_card):
    original_card = copy.deepcopy(structured_card)
    question = Question(None, structured_card)

    changed = question.set_display("pie")

    assert changed.display() == "pie"
    assert question.display() == "bar"
    assert structured_card == original_card
    assert changed is not question


def test_set_card_keeps_metadata_and_parameter_values(sample_metadata, structured_card):
    question = Question(sample_metadata, structured_card, {"p1": 3})
    changed = question.set_card({**structured_card, "name": "Renamed"})

    assert changed.metadata() is sample_metadata
    assert changed.parameter_values() == {"p1": 3}
    assert changed.display_name() == "Renamed"


def test_set_query_with_unchanged_payload_returns_equivalent(structured_card):
    question = Question(None, structured_card)
    same = question.set_query(question.query())

    assert same is not None
    assert same.card() == question.card()


def test_set_query_with_new_payload(structured_card):
    question = Question(None, structured_card)
    query = question.query().add_filter(["=", ["field-id", ORDER_STATUS], "pending"])

    changed = question.set_query(query)

    assert changed.card()["dataset_query"] is query.dataset_query()
    assert "filter" not in question.card()["dataset_query"]["query"]


def test_query_question_applies_query_to_owner(structured_card):
    question = Question(None, structured_card)
    limited = question.query().set_limit(5).question()

    assert limited.card()["dataset_query"]["query"]["limit"] == 5
    assert question.query().question().card() == question.card()


def test_set_dataset_query(structured_card):
    native = {"type": "native", "database": 1, "native": {"query": "SELECT 1"}}
    question = Question(None, structured_card).set_dataset_query(native)
    assert isinstance(question.query(), NativeQuery)


def test_new_question_strips_identity(saved_card):
    question = Question(None, saved_card)
    duplicate = question.new_question()

    card = duplicate.card()
    assert "id" not in card
    assert "name" not in card
    assert "description" not in card
    assert card["dataset_query"] is saved_card["dataset_query"]
    assert card["display"] == saved_card["display"]
    assert card["visualization_settings"] is saved_card["visualization_settings"]
    assert question.id() == 42
    assert duplicate.is_saved() is False


def test_parameter_values_are_independent_of_card(native_card):
    question = Question(None, native_card)
    with_value = question.set_parameter_value("tag-1", 500)

    assert with_value.card() is question.card()
    assert question.parameters()[0].get("value") is None
    assert with_value.parameters() == [
        {
            "id": "tag-1",
            "type": "category",
            "target": ["variable", ["template-tag", "min_total"]],
            "name": "Min total",
            "slug": "min_total",
            "default": 100,
            "value": 500,
        }
    ]


def test_parameter_values_are_copied_on_construction(native_card):
    values = {"tag-1": 200}
    question = Question(None, native_card, values)

    values["tag-1"] = 999
    values["other"] = 1

    assert question.parameter_values() == {"tag-1": 200}
    assert question.parameters()[0]["value"] == 200


def test_card_parameters_take_precedence(structured_card):
    card = {**structured_card, "parameters": [{"id": "p1", "slug": "status", "type": "category"}]}
    question = Question(None, card, {"p1": "pending", "other": 1})
    assert question.parameters() == [
        {"id": "p1", "slug": "status", "type": "category", "value": "pending"}
    ]


def test_readers_on_saved_card(saved_card):
    question = Question(None, {**saved_card, "public_uuid": "abc"})
    assert question.id() == 42
    assert question.is_saved() is True
    assert question.can_write() is True
    assert question.public_uuid() == "abc"
    assert question.display_name() == "Orders by status"


# =============================================================================
# Atomic queries and composite conversion
# =============================================================================

def test_atomic_queries_of_structured_is_itself(structured_card):
    question = Question(None, structured_card)
    assert question.atomic_queries() == [question.query()]
    assert question.atomic_queries()[0] is question.query()


def test_atomic_queries_of_multi(multi_card, structured_card, native_card):
    question = Question(None, multi_card)
    members = question.atomic_queries()

    assert len(members) == 2
    assert members[0].dataset_query() == structured_card["dataset_query"]
    assert members[1].dataset_query() == native_card["dataset_query"]
    assert question.is_multi_query() is True
    assert isinstance(question.multi_query(), MultiQuery)


def test_member_question_writes_back_into_composite(multi_card, native_card):
    question = Question(None, multi_card)
    member = question.atomic_queries()[0]

    updated = member.set_limit(5).question()

    assert updated.is_multi_query() is True
    queries = updated.card()["dataset_query"]["queries"]
    assert queries[0]["query"]["limit"] == 5
    assert queries[1] == native_card["dataset_query"]
    assert "limit" not in question.card()["dataset_query"]["queries"][0]["query"]
    assert question.atomic_queries()[1].question().card() == question.card()


def test_multi_query_shorthand_refuses_single_query(structured_card):
    with pytest.raises(InvalidVariantAccess):
        Question(None, structured_card).multi_query()


def test_convert_to_multi_query(structured_card):
    question = Question(None, structured_card)
    assert question.can_convert_to_multi_query() is True

    converted = question.convert_to_multi_query()

    assert converted.is_multi_query() is True
    member = converted.atomic_queries()[0]
    assert member.aggregations() == [["count"]]
    assert member.breakouts() == [["field-id", ORDER_STATUS]]
    assert question.is_multi_query() is False


def test_convert_to_multi_query_refuses_bare_rows(structured_card):
    card = copy.deepcopy(structured_card)
    del card["dataset_query"]["query"]["aggregation"]
    question = Question(None, card)

    assert question.can_convert_to_multi_query() is False
    assert question.convert_to_multi_query() is None


# =============================================================================
# Drill-through
# =============================================================================

def test_drill_pk_builds_single_row_question(sample_metadata, structured_card):
    question = Question(sample_metadata, {**structured_card, "id": 7})
    pk = sample_metadata.field(ORDER_ID)

    drilled = question.drill_pk(pk, 3)

    assert drilled.card()["dataset_query"] == {
        "type": "query",
        "database": 1,
        "query": {"source_table": ORDERS, "filter": ["=", ["field-id", ORDER_ID], 3]},
    }
    assert question.card()["dataset_query"] == structured_card["dataset_query"]


def test_drill_pk_not_applicable_to_native(sample_metadata, native_card):
    question = Question(sample_metadata, native_card)
    assert question.drill_pk(sample_metadata.field(ORDER_ID), 3) is None


def test_summarize_and_breakout(sample_metadata):
    question = Question.create(sample_metadata, database_id=1, table_id=ORDERS)

    summarized = question.summarize(["count"])
    assert summarized.display() == "scalar"
    assert isinstance(summarized.query(), StructuredQuery)
    assert summarized.query().aggregations() == [["count"]]

    broken_out = summarized.breakout(["field-id", ORDER_STATUS])
    assert broken_out.display() == "bar"
    assert broken_out.query().breakouts() == [["field-id", ORDER_STATUS]]
    assert question.query().is_bare_rows() is True


def test_to_underlying_data_only_changes_display(structured_card):
    question = Question(None, structured_card)
    underlying = question.to_underlying_data()
    assert underlying.display() == "table"
    assert underlying.card()["dataset_query"] is structured_card["dataset_query"]


def test_structured_only_actions_return_none_for_native(native_card):
    question = Question(None, native_card)
    assert question.to_underlying_records() is None
    assert question.summarize(["count"]) is None
    assert question.pivot(["field-id", ORDER_STATUS]) is None


def test_table_metadata(sample_metadata, structured_card, native_card):
    table = Question(sample_metadata, structured_card).table_metadata()
    assert table.table.name == "orders"
    assert table.pk_field().id == ORDER_ID
    assert Question(sample_metadata, native_card).table_metadata() is None
    assert Question(None, structured_card).table_metadata() is None
