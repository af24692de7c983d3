"""
Entry Index — identifier → entry lookup for one catalog document.

Cross-references (``entryLink`` targetId) point at entries defined anywhere in
the document: nested under a unit, inside a group, or in the shared pools.
``build_entry_index`` walks the tree once and returns a read-only mapping;
extraction only ever queries it.
"""

from __future__ import annotations

import logging
from collections import ChainMap
from collections.abc import Mapping
from types import MappingProxyType

from catalog_pipeline.loader import Node

logger = logging.getLogger(__name__)

EntryIndex = Mapping[str, Node]

# Elements that are indexable entries
ENTRY_TAGS = ("selectionEntry", "selectionEntryGroup")

# Wrapper elements whose children are entries
ENTRY_CONTAINERS = (
    "selectionEntries",
    "selectionEntryGroups",
    "sharedSelectionEntries",
    "sharedSelectionEntryGroups",
)


def build_entry_index(root: Node) -> EntryIndex:
    """Index every entry reachable through the document's entry containers.

    Nesting depth is unbounded (the document is a finite tree; links are not
    followed here).  When two entries share an id the one visited later wins.

    Args:
        root: Document root returned by the loader.

    Returns:
        Read-only mapping of entry id to entry Node.
    """
    index: dict[str, Node] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        if node.tag in ENTRY_TAGS and node.id and node.name:
            if node.id in index:
                logger.debug("Duplicate entry id %s (%s replaces %s)",
                             node.id, node.name, index[node.id].name)
            index[node.id] = node
        children: list[Node] = []
        for container in ENTRY_CONTAINERS:
            for tag in ENTRY_TAGS:
                children.extend(node.items(container, tag))
        # Reversed so entries are visited in document order
        stack.extend(reversed(children))

    logger.debug("Indexed %d entries", len(index))
    return MappingProxyType(index)


def link_indexes(primary: EntryIndex, *fallbacks: EntryIndex) -> EntryIndex:
    """Chain indexes so lookups try *primary* first, then each fallback.

    Used for documents of one faction that reference each other (a catalog
    and its library).  The result is read-only.
    """
    if not fallbacks:
        return primary
    return MappingProxyType(ChainMap(primary, *fallbacks))
