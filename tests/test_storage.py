"""Tests for the in-memory entity store."""
import pytest

from bookcatalog.errors import StoreUnavailableError, ValidationError
from bookcatalog.storage import BOOK, CATEGORY, USER


def test_insert_assigns_id_timestamps_and_version(store, run):
    doc = run(store.insert(CATEGORY, {"title": "Poetry"}))

    assert len(doc["_id"]) == 24
    assert doc["title"] == "Poetry"
    assert doc["__v"] == 0
    assert doc["createdAt"] == doc["updatedAt"]


def test_insert_ignores_caller_supplied_id(store, run):
    doc = run(store.insert(CATEGORY, {"_id": "0" * 24, "title": "Poetry"}))

    assert doc["_id"] != "0" * 24


def test_insert_rejects_empty_title(store, run):
    with pytest.raises(ValidationError) as excinfo:
        run(store.insert(CATEGORY, {"title": "   "}))

    assert excinfo.value.detail[0]["loc"] == ("title",)


def test_insert_rejects_malformed_category_reference(store, run):
    with pytest.raises(ValidationError):
        run(store.insert(BOOK, {"title": "Dune", "category": "not-an-id"}))


def test_find_casts_filter_values_to_field_type(store, seeded, run):
    """Test that a string threshold compares numerically on a float field."""
    found = run(store.find(BOOK, {"price": {"$gte": "9"}}))

    assert sorted(doc["title"] for doc in found) == ["1984", "The Great Gatsby"]


def test_find_rejects_uncastable_filter_value(store, seeded, run):
    with pytest.raises(ValidationError):
        run(store.find(BOOK, {"price": {"$gte": "cheap"}}))


def test_find_rejects_unknown_operator(store, seeded, run):
    with pytest.raises(ValidationError):
        run(store.find(BOOK, {"price": {"$where": "1"}}))


def test_unknown_field_matches_nothing(store, seeded, run):
    assert run(store.find(BOOK, {"publisher": "Penguin"})) == []


def test_sort_with_tie_breaks(store, run):
    for title, price in (("B", 5), ("A", 5), ("C", 1)):
        run(store.insert(BOOK, {"title": title, "price": price}))

    found = run(store.find(BOOK, sort=[("price", -1), ("title", 1)]))

    assert [doc["title"] for doc in found] == ["A", "B", "C"]


def test_missing_values_sort_first(store, run):
    run(store.insert(BOOK, {"title": "Priced", "price": 3}))
    run(store.insert(BOOK, {"title": "Unpriced"}))

    found = run(store.find(BOOK, sort=[("price", 1)]))

    assert [doc["title"] for doc in found] == ["Unpriced", "Priced"]


def test_projection_inclusion_keeps_id(store, seeded, run):
    found = run(store.find(BOOK, projection={"title": 1}))

    assert all(set(doc) == {"_id", "title"} for doc in found)


def test_projection_exclusion(store, seeded, run):
    found = run(store.find(CATEGORY, projection={"__v": 0}))

    assert found
    assert all("__v" not in doc for doc in found)


def test_skip_and_limit(store, run):
    for title in ("A", "B", "C", "D"):
        run(store.insert(CATEGORY, {"title": title}))

    found = run(store.find(CATEGORY, sort=[("title", 1)], skip=1, limit=2))

    assert [doc["title"] for doc in found] == ["B", "C"]


def test_count_honours_filter(store, seeded, run):
    assert run(store.count(BOOK)) == 5
    assert run(store.count(BOOK, {"price": {"$lt": 8}})) == 2


def test_update_merges_and_bumps_version(store, run):
    doc = run(store.insert(BOOK, {"title": "Dune", "author": "Frank Herbert"}))

    updated = run(store.update_by_id(BOOK, doc["_id"], {"price": 12.5, "_id": "f" * 24}))

    assert updated["_id"] == doc["_id"]
    assert updated["author"] == "Frank Herbert"
    assert updated["price"] == 12.5
    assert updated["__v"] == 1
    assert updated["createdAt"] == doc["createdAt"]
    assert updated["updatedAt"] > doc["updatedAt"]


def test_update_validates_merged_record(store, run):
    doc = run(store.insert(CATEGORY, {"title": "Poetry"}))

    with pytest.raises(ValidationError):
        run(store.update_by_id(CATEGORY, doc["_id"], {"title": ""}))

    assert run(store.find_by_id(CATEGORY, doc["_id"]))["title"] == "Poetry"


def test_update_and_delete_missing_return_none(store, run):
    missing = "a" * 24

    assert run(store.update_by_id(CATEGORY, missing, {"title": "X"})) is None
    assert run(store.delete_by_id(CATEGORY, missing)) is None


def test_delete_returns_removed_document(store, run):
    doc = run(store.insert(CATEGORY, {"title": "Poetry"}))

    removed = run(store.delete_by_id(CATEGORY, doc["_id"]))

    assert removed["title"] == "Poetry"
    assert run(store.find_by_id(CATEGORY, doc["_id"])) is None


def test_reads_return_copies(store, run):
    doc = run(store.insert(CATEGORY, {"title": "Poetry"}))

    found = run(store.find_by_id(CATEGORY, doc["_id"]))
    found["title"] = "Changed"

    assert run(store.find_by_id(CATEGORY, doc["_id"]))["title"] == "Poetry"


def test_user_email_is_unique(store, run):
    user = {"firstname": "A", "lastname": "B", "email": "a@example.com", "passwordHash": "x"}
    run(store.insert(USER, user))

    with pytest.raises(ValidationError):
        run(store.insert(USER, dict(user, email="A@example.com")))


def test_closed_store_is_unavailable(store, run):
    store.close()

    with pytest.raises(StoreUnavailableError):
        run(store.find(CATEGORY))

    store.reopen()
    assert run(store.find(CATEGORY)) == []


def test_timestamp_filter_accepts_plain_date(store, seeded, run):
    """Test that a date without a timezone compares against UTC timestamps."""
    assert len(run(store.find(BOOK, {"createdAt": {"$gte": "2000-01-01"}}))) == 5
    assert run(store.find(BOOK, {"createdAt": {"$lt": "2000-01-01T00:00:00"}})) == []


def test_find_casts_and_checks_id_filter(store, seeded, run):
    target = run(store.find_one(BOOK, {"title": "1984"}))

    assert [doc["title"] for doc in run(store.find(BOOK, {"_id": target["_id"]}))] == ["1984"]
    with pytest.raises(ValidationError):
        run(store.find(BOOK, {"_id": "garbage"}))


def test_incomparable_filter_value_is_rejected(store, run):
    run(store.insert(BOOK, {"title": "Dune", "ratings": [{"star": 5}]}))

    with pytest.raises(ValidationError):
        run(store.find(BOOK, {"ratings": {"$gt": [{"star": 1}]}}))
