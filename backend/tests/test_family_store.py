"""Tests for the in-memory family member store."""

import os
import pytest
import sys

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from family_store import FamilyStore
from models import PersonRecord


def person(id, relation="Other", parent_id=None, spouse_id=None, age=30):
    return PersonRecord(
        id=id, name=f"Person {id}", age=age, relation=relation,
        parent_id=parent_id, spouse_id=spouse_id,
    )


@pytest.fixture
def store():
    """A small family: parents 1 and 2, children 3 (adult) and 4 (minor)."""
    return FamilyStore([
        person("1", "Father", spouse_id="2", age=60),
        person("2", "Mother", spouse_id="1", age=58),
        person("3", "Son", parent_id="1", age=30),
        person("4", "Daughter", parent_id="1", age=12),
    ])


class TestAdd:
    """Tests for adding members."""

    def test_add(self, store):
        assert store.add(person("5")) is True
        assert store.get_by_id("5").name == "Person 5"
        assert [r.id for r in store.list_all()] == ["1", "2", "3", "4", "5"]

    def test_add_duplicate_id_rejected(self, store):
        assert store.add(person("3", "Cousin")) is False
        assert len(store) == 4
        assert store.get_by_id("3").relation == "Son"

    def test_add_links_spouse_back(self, store):
        store.add(person("5", "Daughter-in-law", spouse_id="3"))
        assert store.get_by_id("3").spouse_id == "5"

    def test_add_does_not_overwrite_existing_spouse(self, store):
        store.add(person("5", spouse_id="1"))
        assert store.get_by_id("1").spouse_id == "2"

    def test_duplicate_ids_in_initial_records(self):
        store = FamilyStore([person("1"), person("1", "Son")])
        assert len(store) == 1
        assert store.get_by_id("1").relation == "Other"


class TestUpdate:
    """Tests for updating members."""

    def test_update_fields(self, store):
        assert store.update("3", {"name": "Tom", "age": 31}) is True
        updated = store.get_by_id("3")
        assert updated.name == "Tom"
        assert updated.age == 31
        assert updated.relation == "Son"

    def test_update_camel_case_keys(self, store):
        store.update("4", {"parentId": "2", "dateOfBirth": "2013-05-01"})
        updated = store.get_by_id("4")
        assert updated.parent_id == "2"
        assert updated.date_of_birth == "2013-05-01"

    def test_update_cannot_change_id(self, store):
        assert store.update("3", {"id": "99", "name": "Tom"}) is True
        assert store.get_by_id("99") is None
        assert store.get_by_id("3").name == "Tom"

    def test_update_unknown_member(self, store):
        assert store.update("404", {"name": "Nobody"}) is False

    def test_update_invalid_value_rejected(self, store):
        assert store.update("3", {"age": -5}) is False
        assert store.get_by_id("3").age == 30

    def test_update_keeps_position(self, store):
        store.update("2", {"name": "Jane"})
        assert [r.id for r in store.list_all()] == ["1", "2", "3", "4"]

    def test_update_clears_reference(self, store):
        store.update("3", {"parent_id": ""})
        assert store.get_by_id("3").parent_id is None


class TestDelete:
    """Tests for deleting members."""

    def test_delete_cascades_parent_and_spouse(self, store):
        assert store.delete("1") is True
        assert store.get_by_id("1") is None
        assert "1" not in store
        assert store.get_by_id("2").spouse_id is None
        assert store.get_by_id("3").parent_id is None
        assert store.get_by_id("4").parent_id is None

    def test_delete_unknown_member(self, store):
        assert store.delete("404") is False
        assert len(store) == 4


class TestQueries:
    """Tests for lookups and listings."""

    def test_get_by_id_missing(self, store):
        assert store.get_by_id("404") is None
        assert store.get_by_id(None) is None

    def test_list_all_is_a_copy(self, store):
        members = store.list_all()
        members.clear()
        assert len(store) == 4

    def test_list_adults(self, store):
        assert [r.id for r in store.list_adults()] == ["1", "2", "3"]

    def test_adult_boundary(self):
        store = FamilyStore([person("1", age=18), person("2", age=17)])
        assert [r.id for r in store.list_adults()] == ["1"]
