"""Tests for relation labels and spouse compatibility rules."""

import os
import sys

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from relations import (
    CoupleType,
    RelationKind,
    couple_type,
    is_compatible_spouse,
    is_in_law_label,
    suggested_relations,
)


class TestRelationKind:

    def test_parse_ignores_case_and_whitespace(self):
        assert RelationKind.parse("  daughter-IN-law ") is RelationKind.DAUGHTER_IN_LAW
        assert RelationKind.parse("Patriarch") is RelationKind.PATRIARCH

    def test_parse_unknown(self):
        assert RelationKind.parse("Neighbour") is None
        assert RelationKind.parse("") is None
        assert RelationKind.parse(None) is None

    def test_in_law_flag(self):
        assert RelationKind.SON_IN_LAW.is_in_law
        assert not RelationKind.SON.is_in_law


class TestCompatibility:
    """Tests for which labels may be married to each other."""

    def test_compatible_pairs(self):
        assert is_compatible_spouse("Son", "Daughter-in-law")
        assert is_compatible_spouse("Daughter", "Son-in-law")
        assert is_compatible_spouse("Patriarch", "Matriarch")
        assert is_compatible_spouse("Brother", "Wife")
        assert is_compatible_spouse("Grandmother", "Grandfather")

    def test_incompatible_pairs(self):
        assert not is_compatible_spouse("Son", "Daughter")
        assert not is_compatible_spouse("Father", "Matriarch")
        assert not is_compatible_spouse("Friend", "Mother")
        assert not is_compatible_spouse(None, "Mother")

    def test_couple_type(self):
        assert couple_type("Father", "Mother") is CoupleType.TRADITIONAL
        assert couple_type("Matriarch", "Patriarch") is CoupleType.TRADITIONAL
        assert couple_type("Daughter-in-law", "Son") is CoupleType.IN_LAW
        assert couple_type("Son", "Son") is None
        assert couple_type("Brother", "Sister") is None

    def test_is_in_law_label(self):
        assert is_in_law_label("Son-in-law")
        assert is_in_law_label("Sister-in-law")
        assert is_in_law_label("brother-in-law")
        assert not is_in_law_label("Daughter")
        assert not is_in_law_label(None)


class TestSuggestions:

    def test_known_generations(self):
        assert RelationKind.PATRIARCH in suggested_relations(1)
        assert suggested_relations(3) == [RelationKind.GRANDSON, RelationKind.GRANDDAUGHTER]

    def test_deep_generation_has_none(self):
        assert suggested_relations(9) == []
