"""
Tests for the catalog assembler — catalog_pipeline/assembler.py

Covers unit admission and skip accounting for a single document, the
first-seen merge across documents of one faction, and assembling a faction
from files on disk.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import catalog_xml as cx
from catalog_pipeline import identity
from catalog_pipeline.assembler import (
    assemble_faction,
    merge_catalogs,
    normalize_faction_name,
    parse_catalog,
)
from catalog_pipeline.loader import CatalogParseError, parse_document
from catalog_pipeline.models import CatalogResult, Detachment, Unit


def _units_by_name(result):
    return {u.name: u for u in result.units}


# ── normalize_faction_name ────────────────────────────────────────────────────

class TestNormalizeFactionName:
    @pytest.mark.parametrize("title, expected", [
        ("Imperium - Space Marines", "Space Marines"),
        ("Imperium - Astra Militarum - Library", "Astra Militarum"),
        ("Chaos - Chaos Knights Library", "Chaos Knights"),
        ("Aeldari - Craftworlds", "Craftworlds"),
        ("Orks", "Orks"),
        ("T'au Empire", "T'au Empire"),
    ])
    def test_strips_decorations(self, title, expected):
        assert normalize_faction_name(title) == expected


# ── parse_catalog ─────────────────────────────────────────────────────────────

class TestParseCatalog:
    def test_faction_label(self, sample_root):
        assert parse_catalog(sample_root).faction_name == "Test Marines"

    def test_units_in_discovery_order(self, sample_root):
        result = parse_catalog(sample_root)
        assert [u.name for u in result.units] == [
            "Intercessor Squad", "Redemptor Dreadnought", "Librarian",
        ]

    def test_skip_accounting(self, sample_root):
        skipped = parse_catalog(sample_root).stats["skipped"]
        assert skipped == {"no_points": 1, "hidden": 1, "duplicate": 1}

    def test_unit_fields(self, sample_root):
        squad = _units_by_name(parse_catalog(sample_root))["Intercessor Squad"]
        assert squad.role == "battleline"
        assert squad.movement == '6"'
        assert squad.toughness == 4
        assert squad.save == "3+"
        assert squad.wounds == 2
        assert squad.leadership == 6
        assert squad.objective_control == 2
        assert squad.keywords == ["Battleline", "Infantry", "Imperium"]
        assert not squad.is_unique
        assert [(t.model_count, t.points) for t in squad.points_tiers] == [(5, 80), (10, 160)]
        assert {w.name for w in squad.weapons} == {"Bolt rifle", "Close combat weapon"}
        assert [a.name for a in squad.abilities] == ["Oath of Moment"]
        assert len(squad.wargear_options) == 2

    def test_linked_model_unit(self, sample_root):
        librarian = _units_by_name(parse_catalog(sample_root))["Librarian"]
        assert librarian.role == "character"
        assert librarian.is_unique
        assert [(t.model_count, t.points) for t in librarian.points_tiers] == [(1, 65)]

    def test_unit_id_seeded_from_label(self, sample_root):
        squad = _units_by_name(parse_catalog(sample_root))["Intercessor Squad"]
        assert squad.id == identity.unit_id("Test Marines", "Intercessor Squad")

    def test_zero_cost_model_not_admitted(self):
        root = parse_document(cx.catalogue("X", cx.selection_entries(
            cx.simple_unit("Free Model", 0, type="model"),
            cx.simple_unit("Paid Model", 20, type="model"),
        )))
        assert [u.name for u in parse_catalog(root).units] == ["Paid Model"]

    def test_zero_cost_unit_skipped(self):
        root = parse_document(cx.catalogue("X", cx.selection_entries(
            cx.simple_unit("Free Unit", 0))))
        result = parse_catalog(root)
        assert result.units == []
        assert result.stats["skipped"] == {"no_points": 1}

    def test_missing_stats_skipped(self):
        root = parse_document(cx.catalogue("X", cx.selection_entries(
            cx.entry("Ghost", cx.costs(50)))))
        assert parse_catalog(root).stats["skipped"] == {"no_stats": 1}

    def test_hidden_link_skipped(self):
        root = parse_document(cx.catalogue(
            "X",
            cx.shared_entries(cx.simple_unit("Linked", 40, id="u1")),
            cx.entry_links(cx.link("u1", "Linked", hidden=True)),
        ))
        result = parse_catalog(root)
        # The shared entry itself is visible and admitted afterwards
        assert [u.name for u in result.units] == ["Linked"]
        assert result.stats["skipped"] == {"hidden": 1}

    def test_upgrades_never_units(self, sample_root):
        names = {u.name for u in parse_catalog(sample_root).units}
        assert "Bolt rifle" not in names

    def test_detachments_included(self, sample_root):
        result = parse_catalog(sample_root)
        assert [d.name for d in result.detachments] == ["Gladius Task Force", "Index Raiders"]

    def test_source_recorded(self, sample_root):
        assert parse_catalog(sample_root, source="sm.cat").source == "sm.cat"

    def test_title_falls_back_to_source(self):
        root = parse_document('<catalogue xmlns="x"/>')
        assert parse_catalog(root, source="Necrons.cat").faction_name == "Necrons"


# ── merge_catalogs ────────────────────────────────────────────────────────────

def _result(label, units=(), detachments=(), source=""):
    return CatalogResult(
        faction_name=label,
        source=source or f"{label}.cat",
        units=[Unit(id=identity.unit_id(label, name), name=name, wounds=w) for name, w in units],
        detachments=[Detachment(name=n) for n in detachments],
        stats={"skipped": {"hidden": 1}},
    )


class TestMergeCatalogs:
    def test_first_seen_wins(self):
        main = _result("Astra Militarum", [("Guardsmen", 1)], ["Combined Arms"])
        library = _result("Astra Militarum - Library", [("Guardsmen", 9), ("Tank", 13)])
        bundle = merge_catalogs("Astra Militarum", [main, library])
        units = {u.name: u for u in bundle.units}
        assert units["Guardsmen"].wounds == 1
        assert set(units) == {"Guardsmen", "Tank"}

    def test_ids_reseeded_from_clean_name(self):
        library = _result("Library Label", [("Tank", 13)])
        bundle = merge_catalogs("Astra Militarum", [library])
        assert bundle.units[0].id == identity.unit_id("Astra Militarum", "Tank")

    def test_order_decides_survivor(self):
        a = _result("A", [("Shared", 1)])
        b = _result("B", [("Shared", 2)])
        assert merge_catalogs("F", [a, b]).units[0].wounds == 1
        assert merge_catalogs("F", [b, a]).units[0].wounds == 2

    def test_deterministic(self):
        docs = [_result("A", [("X", 1), ("Y", 2)], ["D1"]), _result("B", [("Z", 3)], ["D2"])]
        assert merge_catalogs("F", docs) == merge_catalogs("F", docs)

    def test_detachments_first_seen(self):
        a = _result("A", detachments=["Alpha"])
        b = _result("B", detachments=["Alpha", "Beta"])
        bundle = merge_catalogs("F", [a, b])
        assert [d.name for d in bundle.detachments] == ["Alpha", "Beta"]
        assert bundle.stats["default_detachment"] is False

    def test_default_detachment_when_none(self):
        bundle = merge_catalogs("F", [_result("A", [("X", 1)])])
        assert [d.name for d in bundle.detachments] == ["Index"]
        assert bundle.stats["default_detachment"] is True
        assert bundle.stats["detachments"] == 0

    def test_faction_record(self):
        bundle = merge_catalogs("Orks", [])
        assert bundle.faction.name == "Orks"
        assert bundle.faction.id == identity.faction_id("Orks")
        assert bundle.units == []

    def test_stats(self):
        bundle = merge_catalogs("F", [_result("A", [("X", 1)]), _result("B")], ["Gone.cat"])
        assert bundle.stats["documents"] == ["A.cat", "B.cat"]
        assert bundle.stats["units"] == 1
        assert bundle.stats["skipped"] == {"hidden": 2}
        assert bundle.stats["missing_documents"] == ["Gone.cat"]


# ── assemble_faction ──────────────────────────────────────────────────────────

class TestAssembleFaction:
    def test_single_document(self, data_dir):
        bundle = assemble_faction("Test Marines", [data_dir / "Imperium - Test Marines.cat"])
        assert len(bundle.units) == 3
        assert len(bundle.detachments) == 2
        assert bundle.stats["missing_documents"] == []

    def test_cross_document_links(self, data_dir):
        bundle = assemble_faction("Orks", [data_dir / "Orks.cat", data_dir / "Orks - Library.cat"])
        assert [u.name for u in bundle.units] == ["Boyz", "Nob on Smasha Squig"]
        assert [d.name for d in bundle.detachments] == ["Waaagh! Tribe"]
        nob = bundle.units[1]
        assert nob.id == identity.unit_id("Orks", "Nob on Smasha Squig")
        assert nob.role == "character"

    def test_missing_document_recorded(self, data_dir):
        bundle = assemble_faction("Orks", [data_dir / "Orks.cat", data_dir / "Missing.cat"])
        assert bundle.stats["missing_documents"] == ["Missing.cat"]
        # The link into the absent library no longer resolves
        assert [u.name for u in bundle.units] == ["Boyz"]
        assert [d.name for d in bundle.detachments] == ["Index"]

    def test_all_documents_missing(self, tmp_path):
        bundle = assemble_faction("Nobody", [tmp_path / "a.cat"])
        assert bundle.units == []
        assert bundle.stats["missing_documents"] == ["a.cat"]

    def test_parse_error_propagates(self, tmp_path):
        bad = tmp_path / "Bad.cat"
        bad.write_text("<catalogue", encoding="utf-8")
        with pytest.raises(CatalogParseError):
            assemble_faction("Bad", [bad])

    def test_rerun_identical(self, data_dir):
        paths = [data_dir / "Orks.cat", data_dir / "Orks - Library.cat"]
        assert assemble_faction("Orks", paths) == assemble_faction("Orks", paths)
