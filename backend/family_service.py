"""Family tree service: owns the member list, persistence and change notifications."""

import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from family_store import FamilyStore
from generations import get_generation_levels
from models import DerivedTree, FamilyData, FamilyInfo, GenerationLevel, PersonRecord
from relations import is_compatible_spouse
from storage import FAMILY_DATA_KEY, KeyValueStorage, MemoryStorage, fetch_seed
from tree_builder import (
    build_family_tree,
    detect_circular_ancestry,
    generate_member_id,
    get_family_name,
)

logger = logging.getLogger("familytree.family_service")

TreeListener = Callable[[DerivedTree], None]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_family_data() -> FamilyData:
    """Built-in two-member family used when neither saved data nor seed data is usable."""
    return FamilyData(
        family_members=[
            PersonRecord(
                id="1",
                name="John Smith",
                age=75,
                designation="Retired Engineer",
                relation="Patriarch",
                gender="male",
                spouse_id="2",
                date_of_birth="1948-03-15",
                place_of_birth="New York, USA",
                occupation="Engineer",
                email="john.smith@email.com",
                phone="+1-555-0101",
                address="123 Main St, Springfield, USA",
                notes="Family patriarch, founded the family business",
            ),
            PersonRecord(
                id="2",
                name="Mary Smith",
                age=72,
                designation="Retired Teacher",
                relation="Matriarch",
                gender="female",
                spouse_id="1",
                date_of_birth="1951-07-22",
                place_of_birth="Boston, USA",
                occupation="Teacher",
                email="mary.smith@email.com",
                phone="+1-555-0102",
                address="123 Main St, Springfield, USA",
                notes="Family matriarch, dedicated educator",
            ),
        ],
        family_info=FamilyInfo(
            family_name="Smith Family",
            motto="Unity in Diversity",
            established=str(datetime.now().year),
            location="Springfield, USA",
            total_members=2,
            generations=1,
            last_updated=_now_iso(),
        ),
    )


def parse_family_data(raw: Any) -> FamilyData:
    """
    Validate a decoded snapshot.

    Raises ValueError (pydantic's ValidationError included) when the `familyMembers`
    array is missing or a member can't be read.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("familyMembers"), list):
        raise ValueError("Invalid family data structure: expected a 'familyMembers' array")
    return FamilyData.model_validate(raw)


class FamilyTreeService:
    """
    Single owner of the family member list.

    Every successful add/update/delete rebuilds the derived tree from scratch,
    notifies subscribers with it and saves a snapshot on a best-effort basis. The
    read-store, rebuild, publish sequence runs under one lock so readers never see
    a tree built from a half-applied change.
    """

    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        seed_source: str | None = None,
        autoload: bool = True,
    ):
        self._storage = storage if storage is not None else MemoryStorage()
        self._seed_source = seed_source
        self._store = FamilyStore()
        self._family_info = FamilyInfo()
        self._tree = build_family_tree([])
        self._listeners: list[TreeListener] = []
        self._lock = threading.RLock()

        if autoload:
            self.load_family_data()

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    def load_family_data(self) -> None:
        """Load saved data if there is any, else the seed source, else the defaults."""
        saved = self._read_saved_data()
        if saved is not None:
            self.set_family_data(saved)
            return
        self.set_family_data(self._load_seed_or_default())

    def _read_saved_data(self) -> FamilyData | None:
        try:
            blob = self._storage.get(FAMILY_DATA_KEY)
        except Exception as e:
            logger.error(f"Failed to read saved family data: {e}")
            return None

        if not blob:
            return None

        try:
            data = parse_family_data(json.loads(blob))
        except ValueError as e:
            logger.error(f"Error parsing saved data, falling back to seed data: {e}")
            return None

        logger.info(f"Loaded {len(data.family_members)} saved family members")
        return data

    def _load_seed_or_default(self) -> FamilyData:
        if self._seed_source:
            try:
                data = parse_family_data(fetch_seed(self._seed_source))
                logger.info(f"Loaded {len(data.family_members)} family members from seed")
                return data
            except Exception as e:
                logger.error(f"Error loading seed data from {self._seed_source}: {e}")

        logger.info("Using default family data")
        return default_family_data()

    def set_family_data(self, data: FamilyData) -> None:
        with self._lock:
            self._store = FamilyStore(data.family_members)
            self._family_info = data.family_info.model_copy()
            self._refresh()

    def _snapshot(self) -> FamilyData:
        with self._lock:
            info = self._family_info.model_copy(update={
                "total_members": len(self._store),
                "generations": len(get_generation_levels(self._tree)) if len(self._store) else 0,
                "last_updated": _now_iso(),
            })
            return FamilyData(
                family_members=[r.model_copy() for r in self._store.list_all()],
                family_info=info,
            )

    def save_family_data(self) -> bool:
        """
        Persist the current snapshot. Failures are logged and reported as False.

        Runs under the service lock, so snapshots reach storage in mutation order.
        """
        with self._lock:
            snapshot = self._snapshot()
            try:
                self._storage.set(FAMILY_DATA_KEY, json.dumps(snapshot.to_dict(), ensure_ascii=False))
            except Exception as e:
                logger.error(f"Error saving family data: {e}")
                return False
            self._family_info = snapshot.family_info
        logger.debug(f"Saved {len(snapshot.family_members)} family members")
        return True

    def export_family_data(self) -> str:
        return json.dumps(self._snapshot().to_dict(), indent=2, ensure_ascii=False)

    def import_family_data(self, json_data: str) -> bool:
        """Replace all members with an exported snapshot. Malformed input is rejected."""
        try:
            data = parse_family_data(json.loads(json_data))
        except ValueError as e:
            logger.error(f"Error importing family data: {e}")
            return False

        with self._lock:
            self.set_family_data(data)
            self.save_family_data()
        logger.info(f"Imported {len(data.family_members)} family members")
        return True

    def reset_to_default_data(self) -> bool:
        """Reload the seed (or default) data and forget any saved changes."""
        data = self._load_seed_or_default()
        with self._lock:
            self.set_family_data(data)
            try:
                self._storage.remove(FAMILY_DATA_KEY)
            except Exception as e:
                logger.error(f"Error clearing saved family data: {e}")
        return True

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: TreeListener) -> Callable[[], None]:
        """
        Call `listener` with the new tree after every change.

        The listener is called once right away with the current tree. Returns a
        function that unsubscribes it.
        """
        with self._lock:
            self._listeners.append(listener)
            tree = self._tree
        listener(tree)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _refresh(self) -> None:
        tree = build_family_tree(self._store.list_all())
        self._tree = tree
        for listener in list(self._listeners):
            try:
                listener(tree)
            except Exception:
                logger.exception("Family tree listener failed")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_member(self, member: PersonRecord) -> bool:
        with self._lock:
            if not self._store.add(member):
                return False
            self._warn_if_circular(member.id)
            self._refresh()
            self.save_family_data()
        return True

    def update_member(self, member_id: str, updates: dict[str, Any]) -> bool:
        with self._lock:
            if not self._store.update(member_id, updates):
                return False
            self._warn_if_circular(member_id)
            self._refresh()
            self.save_family_data()
        return True

    def delete_member(self, member_id: str) -> bool:
        with self._lock:
            if not self._store.delete(member_id):
                return False
            self._refresh()
            self.save_family_data()
        return True

    def _warn_if_circular(self, member_id: str) -> None:
        member = self._store.get_by_id(member_id)
        if member is None or not member.parent_id:
            return
        if detect_circular_ancestry(self._store.list_all(), member.id, member.parent_id):
            logger.warning(f"Parent link of member {member_id} creates circular ancestry")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def family_info(self) -> FamilyInfo:
        return self._family_info

    def get_family_tree(self) -> DerivedTree:
        return self._tree

    def get_all_members(self) -> list[PersonRecord]:
        with self._lock:
            return self._store.list_all()

    def get_member_by_id(self, member_id: str) -> PersonRecord | None:
        with self._lock:
            return self._store.get_by_id(member_id)

    def get_potential_parents(self) -> list[PersonRecord]:
        with self._lock:
            return self._store.list_adults()

    def get_potential_spouses(self, relation: str | None = None) -> list[PersonRecord]:
        """Members without a spouse whose relation fits `relation` (any, if not given)."""
        with self._lock:
            members = self._store.list_all()
        candidates = [m for m in members if not m.spouse_id]
        if relation:
            candidates = [m for m in candidates if is_compatible_spouse(relation, m.relation)]
        return candidates

    def get_generation_levels(self) -> list[GenerationLevel]:
        return get_generation_levels(self._tree)

    def get_family_name(self) -> str:
        return get_family_name(self._tree.members)

    def generate_member_id(self) -> str:
        with self._lock:
            return generate_member_id(self._store.list_all())
