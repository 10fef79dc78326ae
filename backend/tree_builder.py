"""Family tree construction: spouse resolution, root selection and tree assembly."""

import logging
from collections.abc import Sequence

from models import DerivedTree, PersonRecord
from relations import CoupleType, RelationKind, couple_type

logger = logging.getLogger("familytree.tree_builder")

PLACEHOLDER_ID = "default"


def placeholder_member() -> PersonRecord:
    """Stand-in root used when there are no family members at all."""
    return PersonRecord(
        id=PLACEHOLDER_ID,
        name="Default Member",
        age=50,
        designation="Family Member",
        relation=RelationKind.PATRIARCH.value,
        gender="male",
    )


# ============================================================================
# Spouse Resolution
# ============================================================================

class SpousePairing:
    """
    Symmetric, one-partner-per-person spouse mapping.

    Pairs are remembered in the order they were discovered.
    """

    def __init__(self):
        self._partner: dict[str, str] = {}
        self.pairs: list[tuple[str, str]] = []

    def pair(self, first_id: str, second_id: str) -> None:
        if first_id == second_id or self.is_paired(first_id) or self.is_paired(second_id):
            raise ValueError(f"Cannot pair {first_id} with {second_id}")
        self._partner[first_id] = second_id
        self._partner[second_id] = first_id
        self.pairs.append((first_id, second_id))

    def is_paired(self, person_id: str) -> bool:
        return person_id in self._partner

    def spouse_of(self, person_id: str) -> str | None:
        return self._partner.get(person_id)

    def as_dict(self) -> dict[str, str]:
        return dict(self._partner)

    def __len__(self) -> int:
        return len(self.pairs)


def is_structurally_valid_couple(member: PersonRecord, candidate: PersonRecord) -> bool:
    """
    Check the family-boundary rule for an inferred couple.

    Traditional couples (Father/Mother, Patriarch/Matriarch) must share a parent
    reference, both being roots counts as sharing. In-law couples must come from
    different parents. Every other label combination is rejected.
    """
    kind = couple_type(member.relation, candidate.relation)
    if kind is CoupleType.TRADITIONAL:
        return member.parent_id == candidate.parent_id
    if kind is CoupleType.IN_LAW:
        return member.parent_id != candidate.parent_id
    return False


def _is_unattached(record: PersonRecord, pairing: SpousePairing) -> bool:
    return record.spouse_id is None and not pairing.is_paired(record.id)


def resolve_spouses(records: Sequence[PersonRecord]) -> SpousePairing:
    """
    Determine the authoritative spouse of each person.

    Explicit `spouse_id` links are used first: mutual links, then one-sided links
    whose target has no spouse recorded. Remaining people with no `spouse_id` of
    their own are matched by relation label, first valid candidate in record order
    wins.
    """
    pairing = SpousePairing()
    by_id = {r.id: r for r in records}

    # Mutual explicit links
    for record in records:
        partner = by_id.get(record.spouse_id)
        if partner is None or partner.id == record.id:
            continue
        if pairing.is_paired(record.id) or pairing.is_paired(partner.id):
            continue
        if partner.spouse_id == record.id:
            pairing.pair(record.id, partner.id)

    # One-sided explicit links that can be repaired
    for record in records:
        partner = by_id.get(record.spouse_id)
        if partner is None or partner.id == record.id:
            continue
        if pairing.is_paired(record.id) or pairing.is_paired(partner.id):
            continue
        if partner.spouse_id is None:
            logger.debug(f"Repairing one-sided spouse link {record.id} -> {partner.id}")
            pairing.pair(record.id, partner.id)
        else:
            logger.debug(
                f"Ignoring spouse link {record.id} -> {partner.id}: "
                f"partner already points at {partner.spouse_id}"
            )

    # Label-based inference
    for record in records:
        if not _is_unattached(record, pairing):
            continue
        for candidate in records:
            if candidate.id == record.id or not _is_unattached(candidate, pairing):
                continue
            if is_structurally_valid_couple(record, candidate):
                logger.debug(
                    f"Inferred spouses {record.id} ({record.relation}) and "
                    f"{candidate.id} ({candidate.relation})"
                )
                pairing.pair(record.id, candidate.id)
                break

    return pairing


# ============================================================================
# Root Selection
# ============================================================================

def select_root(records: Sequence[PersonRecord]) -> PersonRecord:
    """
    Pick the person the tree is anchored at.

    Among people without a parent: a Patriarch, else a Matriarch, else the oldest
    (earliest in record order on ties). With no parentless person the first record
    is used, and an empty list yields the placeholder member.
    """
    candidates = [r for r in records if not r.parent_id]

    if not candidates:
        if records:
            return records[0]
        return placeholder_member()

    if len(candidates) == 1:
        return candidates[0]

    for preferred in (RelationKind.PATRIARCH, RelationKind.MATRIARCH):
        for candidate in candidates:
            if RelationKind.parse(candidate.relation) is preferred:
                return candidate

    # max() keeps the first of equally old candidates
    return max(candidates, key=lambda r: r.age)


# ============================================================================
# Tree Assembly
# ============================================================================

def assemble_tree(
    records: Sequence[PersonRecord],
    pairing: SpousePairing,
    root: PersonRecord,
) -> DerivedTree:
    """
    Build the derived tree from the flat records.

    Works on shallow copies: spouse ids discovered by the resolver are written onto
    the copies where they are missing, never onto the stored records.
    """
    members = [r.model_copy() for r in records]
    by_id = {m.id: m for m in members}

    children: dict[str, list[str]] = {m.id: [] for m in members}
    for member in members:
        if member.parent_id and member.parent_id in by_id and member.parent_id != member.id:
            children[member.parent_id].append(member.id)

    for first_id, second_id in pairing.pairs:
        first, second = by_id[first_id], by_id[second_id]
        if first.spouse_id is None:
            first.spouse_id = second_id
        if second.spouse_id is None:
            second.spouse_id = first_id

    root_copy = by_id.get(root.id, root)

    return DerivedTree(
        root=root_copy,
        members=members,
        children=children,
        spouses=pairing.as_dict(),
        pairs=list(pairing.pairs),
    )


def build_family_tree(records: Sequence[PersonRecord]) -> DerivedTree:
    """Run the whole pipeline: resolve spouses, select the root, assemble the tree."""
    if not records:
        placeholder = placeholder_member()
        logger.info("No family members, using placeholder root")
        return DerivedTree(root=placeholder, members=[placeholder], children={placeholder.id: []})

    pairing = resolve_spouses(records)
    root = select_root(records)
    tree = assemble_tree(records, pairing, root)
    logger.debug(
        f"Built family tree rooted at {tree.root.id} with {len(tree.members)} members "
        f"and {len(pairing)} couples"
    )
    return tree


# ============================================================================
# Helpers
# ============================================================================

def generate_member_id(records: Sequence[PersonRecord]) -> str:
    """Generate a new unique member ID, one past the largest numeric ID in use."""
    existing_ids = []
    for record in records:
        try:
            existing_ids.append(int(record.id))
        except ValueError:
            pass

    max_id = max(existing_ids) if existing_ids else 0
    candidate = max_id + 1
    taken = {r.id for r in records}
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def detect_circular_ancestry(
    records: Sequence[PersonRecord], person_id: str, potential_parent_id: str
) -> bool:
    """
    Check if making potential_parent the parent of person would create circular ancestry.
    Returns True if circular relationship detected.
    """
    by_id = {r.id: r for r in records}
    visited: set[str] = set()
    current = potential_parent_id

    # Walk up from the potential parent; reaching the person means a loop
    while current is not None and current not in visited:
        if current == person_id:
            return True
        visited.add(current)
        record = by_id.get(current)
        current = record.parent_id if record else None

    return False


def get_family_name(members: Sequence[PersonRecord]) -> str:
    """Name the tree after the founder's surname, e.g. 'Smith Family Tree'."""
    founder = next(
        (
            m for m in members
            if RelationKind.parse(m.relation) is RelationKind.PATRIARCH
            or (RelationKind.parse(m.relation) is RelationKind.FATHER and not m.parent_id)
        ),
        None,
    )
    if founder is None or not founder.name.strip():
        founder = next((m for m in members if not m.parent_id and m.gender == "male" and m.name.strip()), None)

    if founder is None or not founder.name.strip():
        return "Family Tree"

    last_name = founder.name.strip().split()[-1]
    return f"{last_name} Family Tree"


def get_parent_name(members: Sequence[PersonRecord], parent_id: str | None) -> str:
    if not parent_id:
        return "Unknown"
    parent = next((m for m in members if m.id == parent_id), None)
    return parent.name if parent else "Unknown"
