"""Relation label vocabulary and spouse compatibility rules."""

from enum import Enum


class RelationKind(str, Enum):
    """Closed set of relation labels offered when adding a family member."""

    SON = "Son"
    DAUGHTER = "Daughter"
    FATHER = "Father"
    MOTHER = "Mother"
    GRANDFATHER = "Grandfather"
    GRANDMOTHER = "Grandmother"
    GRANDSON = "Grandson"
    GRANDDAUGHTER = "Granddaughter"
    GREAT_GRANDSON = "Great-grandson"
    GREAT_GRANDDAUGHTER = "Great-granddaughter"
    BROTHER = "Brother"
    SISTER = "Sister"
    UNCLE = "Uncle"
    AUNT = "Aunt"
    NEPHEW = "Nephew"
    NIECE = "Niece"
    COUSIN = "Cousin"
    SON_IN_LAW = "Son-in-law"
    DAUGHTER_IN_LAW = "Daughter-in-law"
    FATHER_IN_LAW = "Father-in-law"
    MOTHER_IN_LAW = "Mother-in-law"
    HUSBAND = "Husband"
    WIFE = "Wife"
    SPOUSE = "Spouse"
    PATRIARCH = "Patriarch"
    MATRIARCH = "Matriarch"
    FRIEND = "Friend"
    OTHER = "Other"

    @property
    def is_in_law(self) -> bool:
        return self.value.endswith("-in-law")

    @classmethod
    def parse(cls, label: str | None) -> "RelationKind | None":
        """Map a free-form label onto the vocabulary, or None if it isn't part of it."""
        if not label:
            return None
        return _BY_LOWER.get(" ".join(label.split()).lower())


_BY_LOWER = {kind.value.lower(): kind for kind in RelationKind}


class CoupleType(str, Enum):
    TRADITIONAL = "traditional"
    IN_LAW = "in_law"


# Labels a person may marry, keyed by their own label
SPOUSE_COMPATIBILITY: dict[RelationKind, frozenset[RelationKind]] = {
    RelationKind.SON: frozenset({RelationKind.DAUGHTER_IN_LAW}),
    RelationKind.DAUGHTER: frozenset({RelationKind.SON_IN_LAW}),
    RelationKind.SON_IN_LAW: frozenset({RelationKind.DAUGHTER}),
    RelationKind.DAUGHTER_IN_LAW: frozenset({RelationKind.SON}),
    RelationKind.FATHER: frozenset({RelationKind.MOTHER}),
    RelationKind.MOTHER: frozenset({RelationKind.FATHER}),
    RelationKind.PATRIARCH: frozenset({RelationKind.MATRIARCH}),
    RelationKind.MATRIARCH: frozenset({RelationKind.PATRIARCH}),
    RelationKind.BROTHER: frozenset({RelationKind.SISTER, RelationKind.WIFE}),
    RelationKind.SISTER: frozenset({RelationKind.BROTHER, RelationKind.HUSBAND}),
    RelationKind.GRANDFATHER: frozenset({RelationKind.GRANDMOTHER}),
    RelationKind.GRANDMOTHER: frozenset({RelationKind.GRANDFATHER}),
}

TRADITIONAL_COUPLES = frozenset({
    frozenset({RelationKind.FATHER, RelationKind.MOTHER}),
    frozenset({RelationKind.PATRIARCH, RelationKind.MATRIARCH}),
})

IN_LAW_COUPLES = frozenset({
    frozenset({RelationKind.SON, RelationKind.DAUGHTER_IN_LAW}),
    frozenset({RelationKind.DAUGHTER, RelationKind.SON_IN_LAW}),
})

GENERATION_SUGGESTIONS: dict[int, list[RelationKind]] = {
    1: [RelationKind.FATHER, RelationKind.MOTHER, RelationKind.PATRIARCH, RelationKind.MATRIARCH],
    2: [RelationKind.SON, RelationKind.DAUGHTER, RelationKind.SON_IN_LAW, RelationKind.DAUGHTER_IN_LAW],
    3: [RelationKind.GRANDSON, RelationKind.GRANDDAUGHTER],
    4: [RelationKind.GREAT_GRANDSON, RelationKind.GREAT_GRANDDAUGHTER],
}


def is_compatible_spouse(label: str | None, other_label: str | None) -> bool:
    """True if someone labelled `label` may be paired with someone labelled `other_label`."""
    kind = RelationKind.parse(label)
    other = RelationKind.parse(other_label)
    if kind is None or other is None:
        return False
    return other in SPOUSE_COMPATIBILITY.get(kind, frozenset())


def couple_type(label: str | None, other_label: str | None) -> CoupleType | None:
    """
    Classify a pair of labels as a traditional couple, an in-law couple, or neither.

    Traditional couples share a family branch; in-law couples join two branches.
    """
    kind = RelationKind.parse(label)
    other = RelationKind.parse(other_label)
    if kind is None or other is None or kind == other:
        return None
    pair = frozenset({kind, other})
    if pair in TRADITIONAL_COUPLES:
        return CoupleType.TRADITIONAL
    if pair in IN_LAW_COUPLES:
        return CoupleType.IN_LAW
    return None


def is_in_law_label(label: str | None) -> bool:
    if not label:
        return False
    kind = RelationKind.parse(label)
    if kind is not None:
        return kind.is_in_law
    return "in-law" in label.lower()


def suggested_relations(generation: int) -> list[RelationKind]:
    return list(GENERATION_SUGGESTIONS.get(generation, []))
