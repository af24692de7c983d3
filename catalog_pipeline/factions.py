"""
Faction registry — which catalog documents make up which faction.

A faction is one clean display name plus an ordered list of catalog files.
Order matters: when two documents define the same unit or detachment, the
earlier document wins the merge.  Library documents may be shared between
factions (Aeldari and Drukhari both draw on the Aeldari library); each
faction still parses them independently.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from utils.patterns import CATALOG_EXTENSIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactionSource:
    name: str
    files: tuple[str, ...]

    def paths(self, data_dir: Path) -> list[Path]:
        return [Path(data_dir) / f for f in self.files]


def _faction(name: str, *files: str) -> FactionSource:
    return FactionSource(name=name, files=files)


DEFAULT_FACTIONS: tuple[FactionSource, ...] = (
    _faction("Space Marines", "Imperium - Space Marines.cat"),
    _faction("Adepta Sororitas", "Imperium - Adepta Sororitas.cat"),
    _faction("Adeptus Custodes", "Imperium - Adeptus Custodes.cat"),
    _faction("Adeptus Mechanicus", "Imperium - Adeptus Mechanicus.cat"),
    _faction("Astra Militarum",
             "Imperium - Astra Militarum.cat", "Imperium - Astra Militarum - Library.cat"),
    _faction("Grey Knights", "Imperium - Grey Knights.cat"),
    _faction("Imperial Knights",
             "Imperium - Imperial Knights.cat", "Imperium - Imperial Knights - Library.cat"),
    _faction("Black Templars", "Imperium - Black Templars.cat"),
    _faction("Blood Angels", "Imperium - Blood Angels.cat"),
    _faction("Dark Angels", "Imperium - Dark Angels.cat"),
    _faction("Deathwatch", "Imperium - Deathwatch.cat"),
    _faction("Space Wolves", "Imperium - Space Wolves.cat"),
    _faction("Chaos Space Marines", "Chaos - Chaos Space Marines.cat"),
    _faction("Death Guard", "Chaos - Death Guard.cat"),
    _faction("Thousand Sons", "Chaos - Thousand Sons.cat"),
    _faction("World Eaters", "Chaos - World Eaters.cat"),
    _faction("Chaos Knights", "Chaos - Chaos Knights.cat", "Chaos - Chaos Knights Library.cat"),
    _faction("Chaos Daemons", "Chaos - Chaos Daemons.cat", "Chaos - Chaos Daemons Library.cat"),
    _faction("Aeldari", "Aeldari - Craftworlds.cat", "Aeldari - Aeldari Library.cat"),
    _faction("Drukhari", "Aeldari - Drukhari.cat", "Aeldari - Aeldari Library.cat"),
    _faction("Leagues of Votann", "Leagues of Votann.cat"),
    _faction("Genestealer Cults", "Genestealer Cults.cat", "Library - Tyranids.cat"),
    _faction("Necrons", "Necrons.cat"),
    _faction("Orks", "Orks.cat"),
    _faction("T'au Empire", "T'au Empire.cat"),
    _faction("Tyranids", "Tyranids.cat", "Library - Tyranids.cat"),
)


def load_factions_file(path: Path) -> list[FactionSource]:
    """Read a registry from JSON: ``[{"name": ..., "files": [...]}, ...]``.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the JSON is not a list of name/files objects, or a
            faction name appears twice (compared case-insensitively).
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of factions")

    factions = []
    seen: dict[str, int] = {}
    for i, item in enumerate(data):
        if (not isinstance(item, dict) or not isinstance(item.get("name"), str)
                or not item["name"] or not item.get("files")):
            raise ValueError(f"{path}: entry {i} needs a 'name' and a non-empty 'files' list")
        # one entry per name: the name seeds the faction's identifiers
        key = item["name"].lower()
        if key in seen:
            raise ValueError(
                f"{path}: entry {i} repeats faction {item['name']!r} (entry {seen[key]})")
        seen[key] = i
        files = item["files"]
        if isinstance(files, str) or not all(isinstance(f, str) for f in files):
            raise ValueError(f"{path}: entry {i} 'files' must be a list of file names")
        for name in files:
            if not CATALOG_EXTENSIONS.search(name):
                logger.warning("%s: %r does not look like a catalog file", path.name, name)
        factions.append(FactionSource(name=item["name"], files=tuple(files)))
    return factions


def select_factions(
    factions: Sequence[FactionSource],
    names: Iterable[str] | None,
) -> tuple[list[FactionSource], list[str]]:
    """Filter *factions* by name, case-insensitively, keeping registry order.

    Returns:
        (selected factions, requested names that matched nothing)
    """
    if not names:
        return list(factions), []
    wanted = {n.lower(): n for n in names}
    selected = [f for f in factions if f.name.lower() in wanted]
    found = {f.name.lower() for f in selected}
    unknown = [orig for low, orig in wanted.items() if low not in found]
    return selected, unknown


def all_documents(factions: Iterable[FactionSource]) -> list[str]:
    """Every distinct catalog file named by *factions*, sorted."""
    return sorted({f for faction in factions for f in faction.files})
