"""
Document Loader — turns a catalog file into an attributed node tree.

Catalog documents are XML with a default namespace; every element becomes a
``Node`` carrying its un-namespaced tag, its attributes, its stripped text and
its children.  Children whose tag is in ``COLLECTION_TAGS`` are always exposed
as lists (possibly empty), so extractor code never has to distinguish "one
occurrence" from "several" or "none"::

    for entry in node.items("selectionEntries", "selectionEntry"):
        ...

Both plain (``.cat``/``.gst``) and zipped (``.catz``/``.gstz``) documents are
accepted.  Anything that is not a well-formed catalog raises
``CatalogParseError``.
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from xml.etree import ElementTree as ET

logger = logging.getLogger(__name__)

# Tags that may repeat under their parent; always materialized as lists
COLLECTION_TAGS = frozenset({
    "selectionEntry",
    "selectionEntryGroup",
    "entryLink",
    "profile",
    "characteristic",
    "categoryLink",
    "categoryEntry",
    "cost",
    "constraint",
    "modifier",
    "condition",
    "rule",
    "infoLink",
})

ROOT_TAGS = frozenset({"catalogue", "catalog", "gameSystem"})

ZIPPED_SUFFIXES = (".catz", ".gstz")


class CatalogParseError(ValueError):
    """A source document is not a readable catalog."""


@dataclass
class Node:
    """One element of a loaded catalog document."""

    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""
    collections: dict[str, list[Node]] = field(default_factory=dict)
    fields: dict[str, Node] = field(default_factory=dict)

    # ── attribute shortcuts ───────────────────────────────────────────────

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attrs.get(name, default)

    @property
    def id(self) -> str | None:
        return self.attrs.get("id")

    @property
    def name(self) -> str:
        return self.attrs.get("name", "")

    @property
    def type(self) -> str:
        return self.attrs.get("type", "")

    @property
    def hidden(self) -> bool:
        return "true" in self.attrs.get("hidden", "").lower()

    # ── child access ──────────────────────────────────────────────────────

    def collection(self, tag: str) -> list[Node]:
        """Repeatable children with *tag*; empty when there are none."""
        return self.collections.get(tag, [])

    def child(self, tag: str) -> Node | None:
        """The single child with *tag*, or None."""
        found = self.fields.get(tag)
        if found is None and tag in self.collections:
            found = self.collections[tag][0]
        return found

    def child_text(self, tag: str) -> str:
        found = self.child(tag)
        return found.text if found is not None else ""

    def items(self, wrapper: str, tag: str) -> list[Node]:
        """Children *tag* inside the *wrapper* element, e.g. costs/cost."""
        container = self.child(wrapper)
        if container is None:
            return []
        return container.collection(tag)

    def __repr__(self) -> str:
        label = self.name or self.id or ""
        return f"Node({self.tag!r}, {label!r})"


def _local_name(tag: str) -> str:
    """Strip an ElementTree ``{namespace}`` prefix from a tag."""
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag


def _convert(element: ET.Element, collection_tags: frozenset[str]) -> Node:
    node = Node(
        tag=_local_name(element.tag),
        attrs={_local_name(k): v for k, v in element.attrib.items()},
        text=(element.text or "").strip(),
    )
    for child in element:
        converted = _convert(child, collection_tags)
        if converted.tag in collection_tags:
            node.collections.setdefault(converted.tag, []).append(converted)
        elif converted.tag not in node.fields:
            node.fields[converted.tag] = converted
        else:
            logger.debug("Ignoring repeated <%s> under <%s>", converted.tag, node.tag)
    return node


def parse_document(
    data: bytes | str,
    collection_tags: frozenset[str] = COLLECTION_TAGS,
    source: str = "<memory>",
) -> Node:
    """Parse catalog XML into a Node tree.

    Args:
        data: Raw XML document.
        collection_tags: Tags always exposed as lists.
        source: Label used in error messages.

    Returns:
        The root Node (``catalogue`` or ``gameSystem``).

    Raises:
        CatalogParseError: Not well-formed XML, or not a catalog root.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise CatalogParseError(f"{source}: not a well-formed document ({exc})") from exc

    tree = _convert(root, collection_tags)
    if tree.tag not in ROOT_TAGS:
        raise CatalogParseError(f"{source}: unexpected root element <{tree.tag}>")
    return tree


def _read_zipped(path: Path) -> bytes:
    try:
        with zipfile.ZipFile(path) as zf:
            members = [m for m in zf.namelist() if not m.endswith("/")]
            if len(members) != 1:
                raise CatalogParseError(
                    f"{path.name}: expected exactly one document in archive, "
                    f"found {len(members)}"
                )
            return zf.read(members[0])
    except zipfile.BadZipFile as exc:
        raise CatalogParseError(f"{path.name}: not a valid zip archive") from exc


def load_document(
    path: Path | str,
    collection_tags: frozenset[str] = COLLECTION_TAGS,
) -> Node:
    """Read and parse one catalog file.

    Raises:
        FileNotFoundError: The file does not exist.
        CatalogParseError: The file is not a readable catalog.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Catalog not found: {path}")

    if path.suffix.lower() in ZIPPED_SUFFIXES:
        data = _read_zipped(path)
    else:
        data = path.read_bytes()

    logger.debug("Loaded %s (%d bytes)", path.name, len(data))
    return parse_document(data, collection_tags, source=path.name)
