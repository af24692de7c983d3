"""
Pytest fixtures for the catalog pipeline tests.

Catalog documents are built from the string helpers in ``catalog_xml`` and
written to ``tmp_path``; nothing here touches the network or real catalog
data.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent))

import catalog_xml as cx  # noqa: E402

from catalog_pipeline.loader import parse_document  # noqa: E402


# ── Helpers ───────────────────────────────────────────────────────────────────

def write_catalog(directory: Path, file_name: str, xml: str) -> Path:
    """Write *xml* to ``directory/file_name`` and return the path."""
    path = directory / file_name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(xml, encoding="utf-8")
    return path


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def sample_xml():
    """XML text of the sample catalog (see ``catalog_xml.sample_catalogue``)."""
    return cx.sample_catalogue()


@pytest.fixture()
def sample_root(sample_xml):
    """Loaded root Node of the sample catalog."""
    return parse_document(sample_xml)


@pytest.fixture()
def data_dir(tmp_path):
    """A data directory holding the sample catalog and a two-document faction.

    Files:
        Imperium - Test Marines.cat   sample catalog
        Orks.cat                      one unit, links into the library
        Orks - Library.cat            the linked unit plus a "Detachments" group
    """
    d = tmp_path / "data"
    write_catalog(d, "Imperium - Test Marines.cat", cx.sample_catalogue())
    write_catalog(d, "Orks.cat", cx.catalogue(
        "Orks",
        cx.selection_entries(
            cx.simple_unit("Boyz", 85, ("Battleline", "Infantry", "Mob")),
        ),
        cx.entry_links(cx.link("lib-nob", "Nob on Smasha Squig")),
        cid="cat-orks",
    ))
    write_catalog(d, "Orks - Library.cat", cx.catalogue(
        "Orks - Library",
        cx.shared_entries(
            cx.simple_unit("Nob on Smasha Squig", 75, ("Character", "Mounted"),
                           type="model", id="lib-nob"),
        ),
        cx.shared_groups(cx.group(
            "Detachments",
            cx.selection_entries(cx.entry("Waaagh! Tribe", type="upgrade")),
        )),
        cid="cat-orks-lib",
    ))
    return d


@pytest.fixture()
def factions_file(tmp_path):
    """JSON registry naming the two factions in ``data_dir``."""
    path = tmp_path / "factions.json"
    path.write_text(
        '[{"name": "Test Marines", "files": ["Imperium - Test Marines.cat"]},'
        ' {"name": "Orks", "files": ["Orks.cat", "Orks - Library.cat"]}]',
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def memory_db():
    """In-memory SQLite connection in manual transaction mode."""
    conn = sqlite3.connect(":memory:", isolation_level=None)
    yield conn
    conn.close()
