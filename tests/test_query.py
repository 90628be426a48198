"""Tests for list-query translation."""
import pytest

from bookcatalog.catalog.query import (
    FilterCondition,
    Operator,
    PaginationPlan,
    ProjectionPlan,
    SortKey,
    translate,
)
from bookcatalog.errors import ValidationError


def test_bracket_suffix_becomes_comparison():
    """Test that price[gte]=9 is a typed gte condition."""
    plan = translate({"price[gte]": "9"})

    assert plan.filter.conditions == (FilterCondition("price", Operator.GTE, "9"),)
    assert plan.filter.to_store_filter() == {"price": {"$gte": "9"}}


def test_nested_mapping_suffixes():
    """Test operator suffixes given as a nested mapping."""
    plan = translate({"price": {"gte": "7", "lt": "10"}})

    assert plan.filter.to_store_filter() == {"price": {"$gte": "7", "$lt": "10"}}


def test_plain_key_is_equality():
    plan = translate({"author": "Harper Lee"})

    assert plan.filter.conditions == (FilterCondition("author", Operator.EQ, "Harper Lee"),)
    assert plan.filter.to_store_filter() == {"author": "Harper Lee"}


def test_equality_combined_with_range_on_same_field():
    plan = translate({"pages": "280", "pages[lte]": "300"})

    assert plan.filter.to_store_filter() == {"pages": {"$eq": "280", "$lte": "300"}}


def test_reserved_keys_are_not_filters():
    plan = translate({"page": "1", "limit": "2", "sort": "title", "fields": "title"})

    assert plan.filter.conditions == ()
    assert plan.filter.to_store_filter() == {}


def test_unknown_operator_rejected():
    with pytest.raises(ValidationError):
        translate({"price[regex]": ".*"})


def test_spelled_out_eq_suffix_rejected():
    with pytest.raises(ValidationError):
        translate({"price": {"eq": "9"}})


def test_store_operator_keys_rejected():
    """Test that a client cannot inject native store operators."""
    with pytest.raises(ValidationError):
        translate({"$where": "1"})


def test_repeated_key_uses_last_value():
    plan = translate({"author": ["Jane Austen", "Harper Lee"]})

    assert plan.filter.conditions[0].value == "Harper Lee"


def test_unknown_fields_pass_through():
    plan = translate({"publisher": "Penguin"})

    assert plan.filter.to_store_filter() == {"publisher": "Penguin"}


def test_default_sort_is_newest_first():
    plan = translate({})

    assert plan.sort.keys == (SortKey("createdAt", descending=True),)
    assert plan.sort.to_store_sort() == [("createdAt", -1)]


def test_sort_keys_in_listed_order():
    plan = translate({"sort": "-price,title"})

    assert plan.sort.to_store_sort() == [("price", -1), ("title", 1)]


def test_default_projection_hides_version():
    plan = translate({})

    assert plan.projection == ProjectionPlan()
    assert plan.projection.to_store_projection() == {"__v": 0}
    assert plan.projection.includes("category")
    assert not plan.projection.includes("__v")


def test_fields_allow_list():
    plan = translate({"fields": "title,price"})

    assert plan.projection.to_store_projection() == {"title": 1, "price": 1}
    assert not plan.projection.includes("category")


def test_fields_exclusion_list():
    plan = translate({"fields": "-description,-ratings"})

    assert plan.projection.to_store_projection() == {"description": 0, "ratings": 0}


def test_fields_cannot_mix_include_and_exclude():
    with pytest.raises(ValidationError):
        translate({"fields": "title,-price"})


def test_fields_may_drop_id_from_inclusion():
    plan = translate({"fields": "title,-_id"})

    assert plan.projection.to_store_projection() == {"title": 1, "_id": 0}


def test_pagination_skip():
    plan = translate({"page": "3", "limit": "2"})

    assert plan.pagination == PaginationPlan(page=3, limit=2)
    assert plan.pagination.skip == 4


def test_no_pagination_by_default():
    plan = translate({})

    assert plan.pagination.page is None
    assert plan.pagination.limit is None
    assert plan.pagination.skip == 0


@pytest.mark.parametrize("params", [{"page": "0"}, {"limit": "-1"}, {"page": "two"}])
def test_pagination_must_be_positive_integers(params):
    with pytest.raises(ValidationError):
        translate(params)
