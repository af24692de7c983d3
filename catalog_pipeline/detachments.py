"""
Detachment / Enhancement Resolver.

A catalog lists its detachments as the entries of one group named
"Detachment" (or "Detachments"), usually reached through the shared group
pool and often only through a cross-reference.  Enhancements live in groups
named "Enhancements", either directly or split into one sub-group per
detachment ("Gladius Task Force Enhancements").

Nothing in the document links an enhancement to its detachment explicitly, so
attribution is heuristic; ``match_enhancement`` holds the whole rule.
"""

from __future__ import annotations

import logging

from catalog_pipeline.characteristics import (
    ABILITY_PROFILE,
    cost_points,
    parse_characteristics,
    profiles_of_type,
)
from catalog_pipeline.entry_index import EntryIndex
from catalog_pipeline.loader import Node
from catalog_pipeline.models import Detachment, Enhancement
from utils.config import GameSystem
from utils.strings import strip_suffix_ci

logger = logging.getLogger(__name__)

MAX_SEARCH_DEPTH = 5
RULE_TEXT_LIMIT = 2000


def _is_detachment_container(node: Node) -> bool:
    return node.name in GameSystem.DETACHMENT_GROUP_NAMES


def find_detachment_group(
    node: Node,
    index: EntryIndex,
    depth: int = 0,
    max_depth: int = MAX_SEARCH_DEPTH,
) -> Node | None:
    """The first "Detachment(s)" node with child entries under *node*.

    Searches *node* itself, then its child groups, then the targets of its
    cross-references, depth-first and bounded by *max_depth*.
    """
    if depth > max_depth:
        return None
    if _is_detachment_container(node) and node.items("selectionEntries", "selectionEntry"):
        return node

    for group in node.items("selectionEntryGroups", "selectionEntryGroup"):
        found = find_detachment_group(group, index, depth + 1, max_depth)
        if found is not None:
            return found

    for link in node.items("entryLinks", "entryLink"):
        target = index.get(link.get("targetId", ""))
        if target is None:
            continue
        found = find_detachment_group(target, index, depth + 1, max_depth)
        if found is not None:
            return found

    return None


def find_enhancement_groups(node: Node) -> list[Node]:
    """Groups holding enhancement entries at or below *node*.

    An "Enhancements" group contributes each of its sub-groups, and itself
    when it has entries of its own.  The search does not descend further
    once an "Enhancements" group is found.
    """
    if node.name == GameSystem.ENHANCEMENT_GROUP_NAME:
        groups = list(node.items("selectionEntryGroups", "selectionEntryGroup"))
        if node.items("selectionEntries", "selectionEntry"):
            groups.append(node)
        return groups

    groups = []
    for child in node.items("selectionEntryGroups", "selectionEntryGroup"):
        groups.extend(find_enhancement_groups(child))
    return groups


def match_enhancement(group_name: str, detachment_name: str, annotation: str = "") -> str | None:
    """Decide whether an enhancement belongs to a detachment.

    Rules, in precedence order (all case-insensitive):

    1. ``"group"``: the enhancement's group name contains the detachment
       name, or the detachment name contains the group name once a trailing
       " Enhancements" is removed.  An empty remainder never matches.
    2. ``"annotation"``: the enhancement's annotation (its ``comment``)
       equals the detachment name exactly.

    Returns the name of the rule that matched, or None.

    Containment in either direction means a short detachment name can match
    an unrelated group that happens to contain it; that is accepted.
    """
    group = group_name.lower()
    detachment = detachment_name.lower()
    if not detachment:
        return None

    stripped = strip_suffix_ci(group, GameSystem.ENHANCEMENT_GROUP_SUFFIX)
    if detachment in group or (stripped and stripped in detachment):
        return "group"

    if annotation and annotation.lower() == detachment:
        return "annotation"
    return None


def _rule_text(entry: Node, limit: int) -> str:
    text = "\n\n".join(
        f"{rule.name}: {rule.child_text('description')}"
        for rule in entry.items("rules", "rule")
    )
    return text[:limit]


def _enhancement_from_entry(entry: Node) -> Enhancement:
    description = ""
    for profile in profiles_of_type(entry, ABILITY_PROFILE):
        description = parse_characteristics(profile).get("Description", "")
    return Enhancement(name=entry.name, points=cost_points(entry), description=description)


def _locate_detachment_group(root: Node, index: EntryIndex) -> Node | None:
    for group in root.items("sharedSelectionEntryGroups", "selectionEntryGroup"):
        found = find_detachment_group(group, index)
        if found is not None:
            return found

    for container in ("sharedSelectionEntries", "selectionEntries"):
        for entry in root.items(container, "selectionEntry"):
            if _is_detachment_container(entry):
                found = find_detachment_group(entry, index)
                if found is not None:
                    return found
                break
    return None


def extract_detachments(
    root: Node,
    index: EntryIndex,
    rule_text_limit: int = RULE_TEXT_LIMIT,
) -> list[Detachment]:
    """Detachments of one document with their attributed enhancements.

    The detachment group is searched in the shared group pool, then among
    shared entries, then among top-level entries.  Enhancement groups come
    from the shared group pool.  Returns an empty list when the document has
    no detachment group; the assembler supplies a default.
    """
    detachment_group = _locate_detachment_group(root, index)
    if detachment_group is None:
        logger.debug("No detachment group in %r", root)
        return []

    enhancement_groups = []
    for group in root.items("sharedSelectionEntryGroups", "selectionEntryGroup"):
        enhancement_groups.extend(find_enhancement_groups(group))

    detachments = []
    for entry in detachment_group.items("selectionEntries", "selectionEntry"):
        if not entry.name:
            continue

        enhancements: dict[str, Enhancement] = {}
        for group in enhancement_groups:
            for enh_entry in group.items("selectionEntries", "selectionEntry"):
                reason = match_enhancement(group.name, entry.name, enh_entry.child_text("comment"))
                if reason is None or enh_entry.name in enhancements:
                    continue
                logger.debug("Enhancement %s -> %s (by %s)", enh_entry.name, entry.name, reason)
                enhancements[enh_entry.name] = _enhancement_from_entry(enh_entry)

        detachments.append(Detachment(
            name=entry.name,
            rule_text=_rule_text(entry, rule_text_limit),
            enhancements=list(enhancements.values()),
        ))

    return detachments


def default_detachment() -> Detachment:
    return Detachment(
        name=GameSystem.DEFAULT_DETACHMENT_NAME,
        rule_text=GameSystem.DEFAULT_DETACHMENT_RULE,
    )
