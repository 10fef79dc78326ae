"""Pydantic models for family members, snapshots and derived trees."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Gender = Literal["male", "female"]


def _clean_reference(value: Any) -> str | None:
    """Normalize an id reference: numbers become strings, blanks become None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class CamelModel(BaseModel):
    """Base model that reads and writes the camelCase keys of the JSON snapshot."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Person Records
# ============================================================================

class PersonRecord(CamelModel):
    """A single family member as stored in the flat member list."""
    id: str
    name: str = ""
    age: int = Field(default=0, ge=0)
    designation: str = ""
    relation: str = ""
    gender: Gender = "male"
    parent_id: str | None = None
    spouse_id: str | None = None
    photo: str | None = None
    date_of_birth: str | None = None
    place_of_birth: str | None = None
    occupation: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("parent_id", "spouse_id", mode="before")
    @classmethod
    def _coerce_reference(cls, value: Any) -> str | None:
        return _clean_reference(value)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PersonCreate(CamelModel):
    """Payload for adding a family member. The id is generated when omitted."""
    id: str | None = None
    name: str = Field(min_length=1)
    age: int = Field(gt=0)
    designation: str = Field(min_length=1)
    relation: str = Field(min_length=1)
    gender: Gender
    parent_id: str | None = None
    spouse_id: str | None = None
    photo: str | None = None
    date_of_birth: str | None = None
    place_of_birth: str | None = None
    occupation: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None

    @field_validator("id", "parent_id", "spouse_id", mode="before")
    @classmethod
    def _coerce_reference(cls, value: Any) -> str | None:
        return _clean_reference(value)


class PersonUpdate(CamelModel):
    """Partial update payload. Only fields that were sent are applied."""
    name: str | None = None
    age: int | None = Field(default=None, ge=0)
    designation: str | None = None
    relation: str | None = None
    gender: Gender | None = None
    parent_id: str | None = None
    spouse_id: str | None = None
    photo: str | None = None
    date_of_birth: str | None = None
    place_of_birth: str | None = None
    occupation: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None

    @field_validator("name", "age", "designation", "relation", "gender", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        # These can be left out but not cleared
        if value is None:
            raise ValueError("may not be null")
        return value

    @field_validator("parent_id", "spouse_id", mode="before")
    @classmethod
    def _coerce_reference(cls, value: Any) -> str | None:
        return _clean_reference(value)


# ============================================================================
# Snapshot (persisted / seed format)
# ============================================================================

class FamilyInfo(CamelModel):
    """Descriptive metadata stored next to the member list."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    family_name: str = ""
    motto: str = ""
    established: str = ""
    location: str = ""
    total_members: int = 0
    generations: int = 0
    last_updated: str = ""


class FamilyData(CamelModel):
    """The snapshot format: a `familyMembers` array plus a `familyInfo` record."""
    family_members: list[PersonRecord]
    family_info: FamilyInfo = Field(default_factory=FamilyInfo)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# Derived Structures
# ============================================================================

class DerivedTree(BaseModel):
    """
    Rooted view of the family, rebuilt from the flat member list after every change.

    Members are shallow copies of the stored records. Parent/child links live in the
    `children` index and spouse pairings in the symmetric `spouses` mapping, so no
    record ever points at another record object.
    """
    root: PersonRecord
    members: list[PersonRecord]
    children: dict[str, list[str]] = Field(default_factory=dict)
    spouses: dict[str, str] = Field(default_factory=dict)
    pairs: list[tuple[str, str]] = Field(default_factory=list)

    def get_member(self, member_id: str | None) -> PersonRecord | None:
        if member_id is None:
            return None
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def children_of(self, member_id: str) -> list[PersonRecord]:
        by_id = {m.id: m for m in self.members}
        return [by_id[cid] for cid in self.children.get(member_id, []) if cid in by_id]

    def spouse_of(self, member_id: str) -> PersonRecord | None:
        return self.get_member(self.spouses.get(member_id))

    def to_hierarchy(self) -> dict[str, Any]:
        """
        Nested descendant structure starting at the root, D3.js-compatible.

        Each node carries its spouse (without children) and a `children` list that is
        omitted for leaf nodes. A member reached twice through malformed parent links
        is emitted only once.
        """
        by_id = {m.id: m for m in self.members}
        visited: set[str] = set()

        def build_node(member: PersonRecord) -> dict[str, Any]:
            visited.add(member.id)
            node = member.to_dict()
            spouse = by_id.get(self.spouses.get(member.id, ""))
            if spouse is not None:
                node["spouse"] = spouse.to_dict()
            node["children"] = [
                build_node(by_id[cid])
                for cid in self.children.get(member.id, [])
                if cid in by_id and cid not in visited
            ]
            if not node["children"]:
                del node["children"]
            return node

        return build_node(by_id.get(self.root.id, self.root))


class GenerationLevel(BaseModel):
    """Members sharing one generation number, ordered for display."""
    level: int = Field(ge=1)
    members: list[PersonRecord]
    title: str
