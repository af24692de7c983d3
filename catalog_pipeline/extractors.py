"""
Extractors — one pure function per facet of a unit entry.

Each extractor takes an entry Node (plus the document's entry index when it
has to follow cross-references) and returns plain records.  None of them
mutates the tree or the index, and none of them raises on malformed input:
missing characteristics fall back to defaults, unresolvable references
contribute nothing.

Cross-references can form cycles (A links B, B links A), so every function
that follows links carries an explicit ``depth`` and stops at ``max_depth``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from catalog_pipeline.characteristics import (
    ABILITY_PROFILE,
    MELEE_PROFILE,
    RANGED_PROFILE,
    UNIT_PROFILE,
    cost_points,
    parse_characteristics,
    profiles_of_type,
)
from catalog_pipeline.entry_index import EntryIndex
from catalog_pipeline.loader import Node
from catalog_pipeline.models import Ability, PointsTier, WargearOption, Weapon
from utils.config import GameSystem
from utils.patterns import INVULNERABLE_SAVE
from utils.strings import parse_int, split_keywords

logger = logging.getLogger(__name__)

MAX_REFERENCE_DEPTH = 6


# ── Weapons ───────────────────────────────────────────────────────────────────


def _weapon_from_profile(profile: Node) -> Weapon:
    chars = parse_characteristics(profile)
    ranged = profile.get("typeName") == RANGED_PROFILE
    return Weapon(
        name=profile.name,
        kind="ranged" if ranged else "melee",
        range=(chars.get("Range") or None) if ranged else None,
        attacks=chars.get("A") or "1",
        skill=chars.get("BS") or chars.get("WS") or "4+",
        strength=parse_int(chars.get("S")) or 4,
        ap=parse_int(chars.get("AP")) or 0,
        damage=chars.get("D") or "1",
        keywords=split_keywords(chars.get("Keywords")),
    )


def extract_weapons(
    node: Node,
    index: EntryIndex,
    depth: int = 0,
    max_depth: int = MAX_REFERENCE_DEPTH,
) -> list[Weapon]:
    """Collect weapon profiles from *node*, its sub-entries and its links.

    Walk order: profiles on the node, child entries, child groups, then each
    cross-reference (its resolved target, then the link element itself).
    Past *max_depth* the walk returns nothing for that branch.  The result
    may contain the same weapon more than once; see ``dedupe_weapons``.
    """
    if depth > max_depth:
        logger.debug("Reference depth %d exceeded at %r", max_depth, node)
        return []

    weapons = [
        _weapon_from_profile(p)
        for p in node.items("profiles", "profile")
        if p.get("typeName") in (RANGED_PROFILE, MELEE_PROFILE)
    ]

    for child in node.items("selectionEntries", "selectionEntry"):
        weapons.extend(extract_weapons(child, index, depth + 1, max_depth))
    for group in node.items("selectionEntryGroups", "selectionEntryGroup"):
        weapons.extend(extract_weapons(group, index, depth + 1, max_depth))

    for link in node.items("entryLinks", "entryLink"):
        target = index.get(link.get("targetId", ""))
        if target is not None:
            weapons.extend(extract_weapons(target, index, depth + 1, max_depth))
        else:
            logger.debug("Unresolved link %s -> %s", link.name, link.get("targetId"))
        weapons.extend(extract_weapons(link, index, depth + 1, max_depth))

    return weapons


def dedupe_weapons(weapons: Iterable[Weapon]) -> list[Weapon]:
    """Keep the first weapon for each (name, kind)."""
    seen: dict[tuple[str, str], Weapon] = {}
    for weapon in weapons:
        seen.setdefault((weapon.name, weapon.kind), weapon)
    return list(seen.values())


# ── Abilities ─────────────────────────────────────────────────────────────────


def classify_ability(name: str) -> str:
    """Classify an ability by name.

    Precedence: invulnerable save > core ability > faction ability > unique.
    Matching is a case-insensitive substring test.
    """
    lowered = name.lower()
    if "invulnerable" in lowered or INVULNERABLE_SAVE.search(lowered):
        return "invulnerable"
    if any(core in lowered for core in GameSystem.CORE_ABILITIES):
        return "core"
    if any(rule in lowered for rule in GameSystem.FACTION_ABILITIES):
        return "faction"
    return "unique"


def extract_abilities(node: Node) -> list[Ability]:
    """Ability profiles on the node itself, plus allow-listed rule links.

    Sub-entries are not searched.  A rule-type infoLink whose name contains
    one of ``GameSystem.LINKED_FACTION_RULES`` adds a faction ability unless
    an ability with the same name (ignoring case) is already present.
    """
    abilities = []
    for profile in profiles_of_type(node, ABILITY_PROFILE):
        chars = parse_characteristics(profile)
        abilities.append(Ability(
            name=profile.name,
            classification=classify_ability(profile.name),
            description=chars.get("Description", ""),
        ))

    for link in node.items("infoLinks", "infoLink"):
        if link.type != "rule" or not link.name:
            continue
        lowered = link.name.lower()
        if not any(rule in lowered for rule in GameSystem.LINKED_FACTION_RULES):
            continue
        if any(a.name.lower() == lowered for a in abilities):
            continue
        abilities.append(Ability(name=link.name, classification="faction", description=""))

    return abilities


# ── Stat line ─────────────────────────────────────────────────────────────────


def extract_stat_line(
    node: Node,
    depth: int = 0,
    max_depth: int = MAX_REFERENCE_DEPTH,
) -> dict[str, str] | None:
    """Characteristics of the first Unit profile found depth-first.

    Search order: the node's own profiles, then each child entry, then the
    entries inside each child group.  None when no Unit profile exists.
    """
    if depth > max_depth:
        return None

    for profile in profiles_of_type(node, UNIT_PROFILE):
        return parse_characteristics(profile)

    for child in node.items("selectionEntries", "selectionEntry"):
        stats = extract_stat_line(child, depth + 1, max_depth)
        if stats is not None:
            return stats
    for group in node.items("selectionEntryGroups", "selectionEntryGroup"):
        for child in group.items("selectionEntries", "selectionEntry"):
            stats = extract_stat_line(child, depth + 1, max_depth)
            if stats is not None:
                return stats

    return None


# ── Points ────────────────────────────────────────────────────────────────────


def model_count_range(node: Node) -> tuple[int, int]:
    """(min, max) model counts from the unit's group "selections" constraints.

    Both default to 1.  Later constraints overwrite earlier ones.
    """
    min_models, max_models = 1, 1
    for group in node.items("selectionEntryGroups", "selectionEntryGroup"):
        for constraint in group.items("constraints", "constraint"):
            if constraint.get("field") != "selections":
                continue
            value = parse_int(constraint.get("value"))
            if constraint.type == "min":
                min_models = value or 1
            elif constraint.type == "max" and value and value > 0:
                max_models = value
    return min_models, max_models


def extract_points_tiers(node: Node) -> list[PointsTier]:
    """Base tier plus one tier per "at least N selections" points modifier.

    The base tier is (min models, own cost) and only exists for a positive
    cost.  Tiers are returned in discovery order; thresholds are not sorted,
    checked for monotonic cost, or deduplicated here.
    """
    tiers = []

    base_points = cost_points(node)
    min_models, _ = model_count_range(node)
    if base_points > 0:
        tiers.append(PointsTier(model_count=min_models, points=base_points))

    for modifier in node.items("modifiers", "modifier"):
        if modifier.get("field") != GameSystem.POINTS_COST_TYPE_ID:
            continue
        new_points = parse_int(modifier.get("value")) or 0
        for condition in modifier.items("conditions", "condition"):
            if condition.type != "atLeast" or condition.get("field") != "selections":
                continue
            threshold = parse_int(condition.get("value")) or 0
            if new_points > 0 and threshold > 0:
                tiers.append(PointsTier(model_count=threshold, points=new_points))

    return tiers


def dedupe_tiers(tiers: Iterable[PointsTier]) -> list[PointsTier]:
    """Keep the first tier for each model count, preserving order."""
    seen: dict[int, PointsTier] = {}
    for tier in tiers:
        seen.setdefault(tier.model_count, tier)
    return list(seen.values())


def resolve_tier_points(tiers: Iterable[PointsTier], model_count: int) -> int:
    """Points for *model_count* models: the highest threshold not above it.

    Returns 0 when no tier qualifies.
    """
    best: PointsTier | None = None
    for tier in tiers:
        if tier.model_count <= model_count and (best is None or tier.model_count > best.model_count):
            best = tier
    return best.points if best is not None else 0


# ── Role, keywords, uniqueness ────────────────────────────────────────────────


def _category_names(node: Node) -> list[str]:
    return [link.name for link in node.items("categoryLinks", "categoryLink") if link.name]


def extract_role(node: Node) -> str:
    """Single role from the unit's categories, by ``GameSystem.ROLE_PRIORITY``."""
    roles = {
        role for role in map(GameSystem.role_for_category, _category_names(node))
        if role is not None
    }
    for role in GameSystem.ROLE_PRIORITY:
        if role in roles:
            return role
    # "allied" sits outside the priority order but still beats the infantry
    # default: a unit whose only role category is allied reports "allied"
    if "allied" in roles:
        return "allied"
    return GameSystem.DEFAULT_ROLE


def extract_keywords(node: Node) -> list[str]:
    """Category labels in document order, minus faction/config/denied ones."""
    return [name for name in _category_names(node) if GameSystem.is_keyword(name)]


def is_unique_unit(node: Node, role: str | None = None) -> bool:
    """Epic heroes, and units limited to one per roster."""
    if (role or extract_role(node)) == "epic_hero":
        return True
    for constraint in node.items("constraints", "constraint"):
        if (constraint.type == "max"
                and parse_int(constraint.get("value")) == 1
                and constraint.get("scope") == "roster"
                and constraint.get("field") == "selections"):
            return True
    return False


# ── Wargear ───────────────────────────────────────────────────────────────────


class _WargearGroups:
    """Accumulates options, first option per group is the default."""

    def __init__(self) -> None:
        self.options: list[WargearOption] = []
        self._seen: set[tuple[str, str]] = set()
        self._groups: set[str] = set()

    def add(self, group_name: str, name: str, points: int) -> None:
        key = (group_name, name)
        if key in self._seen:
            return
        self._seen.add(key)
        is_default = group_name not in self._groups
        self._groups.add(group_name)
        self.options.append(WargearOption(
            group_name=group_name, name=name, is_default=is_default, points=points,
        ))


def _collect_group_options(group: Node, group_name: str, index: EntryIndex,
                           acc: _WargearGroups) -> None:
    for entry in group.items("selectionEntries", "selectionEntry"):
        if entry.type == "upgrade" and entry.name:
            acc.add(group_name, entry.name, cost_points(entry))
    for link in group.items("entryLinks", "entryLink"):
        name = link.name
        if not name:
            target = index.get(link.get("targetId", ""))
            name = target.name if target is not None else ""
        if name:
            acc.add(group_name, name, cost_points(link))


def extract_wargear_options(node: Node, index: EntryIndex) -> list[WargearOption]:
    """Options from the unit's "Wargear" groups.

    Direct upgrade entries and links of a Wargear group form the "Wargear"
    option group; each nested sub-group (e.g. "Weapon 1") forms its own.
    Within a group the first option is the default; a repeated
    (group, name) pair is dropped.
    """
    acc = _WargearGroups()
    wargear = GameSystem.WARGEAR_GROUP_NAME
    for group in node.items("selectionEntryGroups", "selectionEntryGroup"):
        if group.name != wargear:
            continue
        _collect_group_options(group, wargear, index, acc)
        for subgroup in group.items("selectionEntryGroups", "selectionEntryGroup"):
            _collect_group_options(subgroup, subgroup.name or wargear, index, acc)
    return acc.options
