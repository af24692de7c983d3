"""
Catalog Assembler — one faction's documents in, one FactionBundle out.

``parse_catalog`` turns a single loaded document into units and detachments
labelled with the document's own faction title.  ``merge_catalogs`` folds the
per-document results of one faction together (first-seen wins by name) and
rebases unit ids onto the faction's clean name.  ``assemble_faction`` does
both from file paths, resolving cross-references between the documents of
the same faction.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from pathlib import Path

from catalog_pipeline import identity
from catalog_pipeline.characteristics import cost_points
from catalog_pipeline.detachments import (
    RULE_TEXT_LIMIT,
    default_detachment,
    extract_detachments,
)
from catalog_pipeline.entry_index import EntryIndex, build_entry_index, link_indexes
from catalog_pipeline.extractors import (
    MAX_REFERENCE_DEPTH,
    dedupe_tiers,
    dedupe_weapons,
    extract_abilities,
    extract_keywords,
    extract_points_tiers,
    extract_role,
    extract_stat_line,
    extract_wargear_options,
    extract_weapons,
    is_unique_unit,
)
from catalog_pipeline.loader import Node, load_document
from catalog_pipeline.models import (
    CatalogResult,
    Detachment,
    Faction,
    FactionBundle,
    StatLine,
    Unit,
)
from utils.config import GameSystem
from utils.strings import normalize_whitespace

logger = logging.getLogger(__name__)


def normalize_faction_name(title: str) -> str:
    """Strip organizational prefixes/suffixes from a catalog title.

    Example:
        "Imperium - Astra Militarum - Library" -> "Astra Militarum"
    """
    name = normalize_whitespace(title)
    for prefix in GameSystem.FACTION_PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix):]
    for suffix in GameSystem.FACTION_SUFFIXES:
        if name.endswith(suffix):
            name = name[:-len(suffix)]
    return name


def _is_unit_entry(entry: Node) -> bool:
    """Units, and single models sold on their own (they carry a direct cost)."""
    if entry.type == "unit":
        return True
    return entry.type == "model" and cost_points(entry) > 0


def build_unit(
    entry: Node,
    name: str,
    faction: str,
    index: EntryIndex,
    max_depth: int = MAX_REFERENCE_DEPTH,
) -> tuple[Unit | None, str | None]:
    """Build a Unit from an admitted entry.

    Returns ``(unit, None)``, or ``(None, reason)`` when the entry has no
    stat line (``"no_stats"``) or no positive points tier (``"no_points"``).
    """
    chars = extract_stat_line(entry, max_depth=max_depth)
    if chars is None:
        return None, "no_stats"

    tiers = dedupe_tiers(extract_points_tiers(entry))
    if not tiers:
        return None, "no_points"

    role = extract_role(entry)
    stats = StatLine.from_characteristics(chars)
    unit = Unit(
        id=identity.unit_id(faction, name),
        name=name,
        role=role,
        keywords=extract_keywords(entry),
        is_unique=is_unique_unit(entry, role),
        points_tiers=tiers,
        weapons=dedupe_weapons(extract_weapons(entry, index, max_depth=max_depth)),
        abilities=extract_abilities(entry),
        wargear_options=extract_wargear_options(entry, index),
        **stats.model_dump(),
    )
    return unit, None


def _unit_candidates(root: Node, index: EntryIndex) -> Iterable[tuple[Node, str, bool]]:
    """Yield ``(entry, unit name, hidden)`` in discovery order.

    Sources, in order: top-level entries, top-level cross-references, the
    shared pool.  A link is hidden when either the link or its target is.
    """
    for entry in root.items("selectionEntries", "selectionEntry"):
        if _is_unit_entry(entry):
            yield entry, entry.name, entry.hidden

    for link in root.items("entryLinks", "entryLink"):
        target = index.get(link.get("targetId", ""))
        if target is None:
            logger.debug("Unresolved top-level link %s -> %s", link.name, link.get("targetId"))
            continue
        if _is_unit_entry(target):
            yield target, target.name or link.name, link.hidden or target.hidden

    for entry in root.items("sharedSelectionEntries", "selectionEntry"):
        if _is_unit_entry(entry):
            yield entry, entry.name, entry.hidden


def parse_catalog(
    root: Node,
    index: EntryIndex | None = None,
    source: str = "",
    max_depth: int = MAX_REFERENCE_DEPTH,
    rule_text_limit: int = RULE_TEXT_LIMIT,
) -> CatalogResult:
    """Extract units and detachments from one loaded document.

    Args:
        root: Document root from the loader.
        index: Entry index to resolve links with; built from *root* when
               omitted.
        source: Label recorded on the result (usually the file name).
        max_depth: Cross-reference traversal budget for the extractors.
        rule_text_limit: Cap on detachment rule text.

    Returns:
        CatalogResult labelled with the document's normalized faction title.
        ``stats["skipped"]`` counts excluded entries by reason.
    """
    if index is None:
        index = build_entry_index(root)

    faction_name = normalize_faction_name(root.name or Path(source).stem)
    skipped: Counter[str] = Counter()
    units: list[Unit] = []
    seen: set[str] = set()

    for entry, name, hidden in _unit_candidates(root, index):
        if hidden:
            skipped["hidden"] += 1
            logger.debug("Skipping hidden entry %r", entry)
            continue
        if not name:
            continue
        if name in seen:
            skipped["duplicate"] += 1
            logger.debug("Skipping duplicate unit %s", name)
            continue

        unit, reason = build_unit(entry, name, faction_name, index, max_depth)
        if unit is None:
            skipped[reason] += 1
            logger.debug("Skipping %s: %s", name, reason)
            continue

        seen.add(name)
        units.append(unit)

    detachments = extract_detachments(root, index, rule_text_limit)
    logger.debug("%s: %d units, %d detachments, skipped %s",
                 source or faction_name, len(units), len(detachments), dict(skipped))

    return CatalogResult(
        faction_name=faction_name,
        source=source,
        units=units,
        detachments=detachments,
        stats={"skipped": dict(skipped)},
    )


def merge_catalogs(
    faction_name: str,
    results: Sequence[CatalogResult],
    missing_documents: Sequence[str] = (),
) -> FactionBundle:
    """Merge per-document results for one faction.

    Units and detachments are deduplicated by name, first-seen wins, so the
    order of *results* decides which version survives.  Unit ids are
    re-seeded from *faction_name*.  A faction with no detachments gets the
    default one.
    """
    units: dict[str, Unit] = {}
    detachments: dict[str, Detachment] = {}
    skipped: Counter[str] = Counter()

    for result in results:
        skipped.update(result.stats.get("skipped", {}))
        for unit in result.units:
            if unit.name in units:
                continue
            units[unit.name] = unit.model_copy(
                update={"id": identity.unit_id(faction_name, unit.name)}
            )
        for detachment in result.detachments:
            detachments.setdefault(detachment.name, detachment)

    merged_detachments = list(detachments.values())
    if not merged_detachments:
        merged_detachments = [default_detachment()]

    return FactionBundle(
        faction=Faction(id=identity.faction_id(faction_name), name=faction_name),
        units=list(units.values()),
        detachments=merged_detachments,
        stats={
            "documents": [r.source for r in results],
            "units": len(units),
            "detachments": len(detachments),
            "default_detachment": not detachments,
            "skipped": dict(skipped),
            "missing_documents": list(missing_documents),
        },
    )


def assemble_faction(
    faction_name: str,
    paths: Sequence[Path | str],
    max_depth: int = MAX_REFERENCE_DEPTH,
    rule_text_limit: int = RULE_TEXT_LIMIT,
) -> FactionBundle:
    """Load, parse and merge all documents of one faction.

    Missing documents are logged and skipped (listed under
    ``stats["missing_documents"]``).  Each document resolves links against
    its own index first, then the indexes of its sibling documents.

    Raises:
        CatalogParseError: A present document is not a readable catalog.
    """
    loaded: list[tuple[Path, Node]] = []
    missing: list[str] = []
    for path in map(Path, paths):
        try:
            loaded.append((path, load_document(path)))
        except FileNotFoundError:
            logger.warning("  (file not found: %s)", path.name)
            missing.append(path.name)

    indexes = [build_entry_index(root) for _, root in loaded]
    results = []
    for i, (path, root) in enumerate(loaded):
        others = indexes[:i] + indexes[i + 1:]
        index = link_indexes(indexes[i], *others)
        results.append(parse_catalog(root, index, path.name, max_depth, rule_text_limit))

    return merge_catalogs(faction_name, results, missing)
