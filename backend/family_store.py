"""In-memory store of the flat family member list."""

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from models import PersonRecord

logger = logging.getLogger("familytree.family_store")

ADULT_AGE = 18


class FamilyStore:
    """
    Ordered collection of person records with unique ids.

    Lookups are linear, in insertion order. Not thread-safe on its own;
    FamilyTreeService serializes access.
    """

    def __init__(self, records: Iterable[PersonRecord] = ()):
        self._records: list[PersonRecord] = []
        for record in records:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, member_id: str) -> bool:
        return self.get_by_id(member_id) is not None

    def _index_of(self, member_id: str) -> int:
        for index, record in enumerate(self._records):
            if record.id == member_id:
                return index
        return -1

    def add(self, record: PersonRecord) -> bool:
        """
        Append a record. Returns False if its id is already taken.

        If the record names a spouse who has no spouse yet, the link is made mutual.
        """
        if self._index_of(record.id) != -1:
            logger.warning(f"Member id {record.id} already exists, not adding {record.name!r}")
            return False

        self._records.append(record)

        if record.spouse_id:
            spouse = self.get_by_id(record.spouse_id)
            if spouse is not None and spouse.id != record.id and not spouse.spouse_id:
                spouse.spouse_id = record.id
                logger.debug(f"Linked spouse {spouse.id} back to new member {record.id}")

        logger.info(f"Added member {record.id} ({record.name})")
        return True

    def update(self, member_id: str, fields: dict[str, Any]) -> bool:
        """
        Merge `fields` into the record with `member_id`. Returns False if there is none.

        Keys may use either the attribute names or the camelCase JSON names. The id
        itself can't be changed.
        """
        index = self._index_of(member_id)
        if index == -1:
            logger.warning(f"Cannot update unknown member {member_id}")
            return False

        changes = _normalize_fields(fields)
        if "id" in changes and changes.pop("id") != member_id:
            logger.warning(f"Ignoring attempt to change id of member {member_id}")

        current = self._records[index].model_dump()
        current.update(changes)
        try:
            self._records[index] = PersonRecord.model_validate(current)
        except ValidationError as e:
            logger.error(f"Rejected update of member {member_id}: {e}")
            return False

        logger.info(f"Updated member {member_id}: {sorted(changes)}")
        return True

    def delete(self, member_id: str) -> bool:
        """Remove a record and clear every parent or spouse reference to it."""
        index = self._index_of(member_id)
        if index == -1:
            logger.warning(f"Cannot delete unknown member {member_id}")
            return False

        removed = self._records.pop(index)

        for record in self._records:
            if record.parent_id == member_id:
                record.parent_id = None
            if record.spouse_id == member_id:
                record.spouse_id = None

        logger.info(f"Deleted member {member_id} ({removed.name})")
        return True

    def get_by_id(self, member_id: str | None) -> PersonRecord | None:
        if member_id is None:
            return None
        index = self._index_of(member_id)
        return self._records[index] if index != -1 else None

    def list_all(self) -> list[PersonRecord]:
        return list(self._records)

    def list_adults(self) -> list[PersonRecord]:
        return [r for r in self._records if r.age >= ADULT_AGE]


def _normalize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Translate camelCase JSON keys to attribute names and drop unknown keys."""
    by_alias = {to_camel(name): name for name in PersonRecord.model_fields}
    normalized: dict[str, Any] = {}
    for key, value in fields.items():
        if key in PersonRecord.model_fields:
            normalized[key] = value
        elif key in by_alias:
            normalized[by_alias[key]] = value
        else:
            logger.debug(f"Ignoring unknown member field {key!r}")
    return normalized
