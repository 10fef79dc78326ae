"""Generation numbering and display grouping for a derived family tree."""

import logging
from collections.abc import Sequence

from models import DerivedTree, GenerationLevel, PersonRecord
from relations import couple_type, is_in_law_label

logger = logging.getLogger("familytree.generations")

GENERATION_TITLES = {
    1: "👑 First Generation (Founders)",
    2: "🌟 Second Generation (Children)",
    3: "🌱 Third Generation (Grandchildren)",
    4: "🌸 Fourth Generation (Great-Grandchildren)",
    5: "🌺 Fifth Generation (Great-Great-Grandchildren)",
    6: "🌻 Sixth Generation",
}


def get_generation_title(level: int) -> str:
    return GENERATION_TITLES.get(level, f"Generation {level}")


# ============================================================================
# Base Generations (parent chains)
# ============================================================================

def _resolve_generation(
    start_id: str, by_id: dict[str, PersonRecord], levels: dict[str, int]
) -> int:
    """
    Resolve one member's generation by walking up its parent chain.

    The members on the chain being walked form the visited set for this call. A
    member met twice closes a cycle: every member of that cycle is generation 1 and
    leaves the visited set, and the members below it count down from there.
    """
    path: list[str] = []
    on_path: set[str] = set()
    current = start_id

    while True:
        if current in levels:
            base = levels[current]
            break

        if current in on_path:
            cycle_start = path.index(current)
            cycle = path[cycle_start:]
            logger.warning(f"Circular parent references detected: {cycle}")
            for member_id in cycle:
                levels[member_id] = 1
                on_path.discard(member_id)
            del path[cycle_start:]
            base = 1
            break

        path.append(current)
        on_path.add(current)

        parent_id = by_id[current].parent_id
        if not parent_id or parent_id not in by_id:
            if parent_id:
                logger.debug(f"Member {current} references missing parent {parent_id}")
            levels[current] = 1
            path.pop()
            on_path.discard(current)
            base = 1
            break

        current = parent_id

    # Each remaining entry is the child of the one after it
    for member_id in reversed(path):
        base += 1
        levels[member_id] = base

    return levels[start_id]


def compute_base_generations(members: Sequence[PersonRecord]) -> dict[str, int]:
    """Generation of every member from parent links alone: parentless is 1, child is parent + 1."""
    by_id = {m.id: m for m in members}
    levels: dict[str, int] = {}
    for member in members:
        if member.id not in levels:
            _resolve_generation(member.id, by_id, levels)
    return levels


# ============================================================================
# Spouse Alignment
# ============================================================================

def find_alignment_pairs(tree: DerivedTree) -> list[tuple[str, str]]:
    """
    Spouse pairs whose generations should be reconciled.

    Starts from the tree's resolved pairs, then pairs any still-single member with
    the first other member whose relation label forms a couple, unless that member
    is already taken.
    """
    pairs = list(tree.pairs)
    processed: set[str] = set()
    for first_id, second_id in pairs:
        processed.add(first_id)
        processed.add(second_id)

    for member in tree.members:
        if member.id in processed:
            continue
        detected = next(
            (m for m in tree.members if m.id != member.id and couple_type(member.relation, m.relation)),
            None,
        )
        if detected is not None and detected.id not in processed:
            pairs.append((member.id, detected.id))
            processed.add(member.id)
            processed.add(detected.id)

    return pairs


def align_spouse_generations(
    tree: DerivedTree, levels: dict[str, int], pairs: Sequence[tuple[str, str]]
) -> None:
    """
    Put both members of each pair on one generation, in place.

    An in-law takes the partner's generation; otherwise the couple takes the
    smaller (closer to the root) of the two.
    """
    by_id = {m.id: m for m in tree.members}

    for member_id, spouse_id in pairs:
        member_level = levels.get(member_id, 1)
        spouse_level = levels.get(spouse_id, 1)
        member = by_id.get(member_id)
        spouse = by_id.get(spouse_id)

        if member is None or spouse is None:
            target = min(member_level, spouse_level)
        elif is_in_law_label(member.relation):
            target = spouse_level
        elif is_in_law_label(spouse.relation):
            target = member_level
        else:
            target = min(member_level, spouse_level)

        levels[member_id] = target
        levels[spouse_id] = target


def compute_generations(
    tree: DerivedTree, pairs: Sequence[tuple[str, str]] | None = None
) -> dict[str, int]:
    """Final generation number of every member of the tree."""
    if pairs is None:
        pairs = find_alignment_pairs(tree)
    levels = compute_base_generations(tree.members)
    align_spouse_generations(tree, levels, pairs)
    return levels


# ============================================================================
# Display Grouping
# ============================================================================

def group_spouses(members: Sequence[PersonRecord], partners: dict[str, str]) -> list[PersonRecord]:
    """Reorder members so each spouse directly follows the partner listed first."""
    present = {m.id: m for m in members}
    processed: set[str] = set()
    grouped: list[PersonRecord] = []

    for member in members:
        if member.id in processed:
            continue
        grouped.append(member)
        processed.add(member.id)

        spouse = present.get(partners.get(member.id, ""))
        if spouse is not None and spouse.id not in processed:
            grouped.append(spouse)
            processed.add(spouse.id)

    return grouped


def get_generation_levels(tree: DerivedTree) -> list[GenerationLevel]:
    """Members grouped by generation, lowest generation first, couples side by side."""
    if not tree.members:
        return []

    pairs = find_alignment_pairs(tree)
    levels = compute_generations(tree, pairs)

    partners: dict[str, str] = {}
    for first_id, second_id in pairs:
        partners[first_id] = second_id
        partners[second_id] = first_id

    by_level: dict[int, list[PersonRecord]] = {}
    for member in tree.members:
        by_level.setdefault(levels.get(member.id, 1), []).append(member)

    return [
        GenerationLevel(
            level=level,
            members=group_spouses(by_level[level], partners),
            title=get_generation_title(level),
        )
        for level in sorted(by_level)
    ]
