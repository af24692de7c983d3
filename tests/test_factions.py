"""
Tests for the faction registry — catalog_pipeline/factions.py
"""
import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from catalog_pipeline.factions import (
    DEFAULT_FACTIONS,
    FactionSource,
    all_documents,
    load_factions_file,
    select_factions,
)


class TestDefaultFactions:
    def test_names_unique(self):
        names = [f.name for f in DEFAULT_FACTIONS]
        assert len(names) == len(set(names))

    def test_every_faction_has_files(self):
        assert all(f.files for f in DEFAULT_FACTIONS)

    def test_multi_document_factions(self):
        by_name = {f.name: f for f in DEFAULT_FACTIONS}
        assert by_name["Astra Militarum"].files == (
            "Imperium - Astra Militarum.cat", "Imperium - Astra Militarum - Library.cat")
        assert "Library - Tyranids.cat" in by_name["Genestealer Cults"].files

    def test_shared_library(self):
        assert "Aeldari - Aeldari Library.cat" in all_documents(DEFAULT_FACTIONS)
        uses = [f.name for f in DEFAULT_FACTIONS if "Aeldari - Aeldari Library.cat" in f.files]
        assert uses == ["Aeldari", "Drukhari"]


class TestFactionSource:
    def test_paths(self, tmp_path):
        source = FactionSource("Orks", ("Orks.cat", "Orks - Library.cat"))
        assert source.paths(tmp_path) == [tmp_path / "Orks.cat", tmp_path / "Orks - Library.cat"]


class TestLoadFactionsFile:
    def test_loads(self, factions_file):
        factions = load_factions_file(factions_file)
        assert factions == [
            FactionSource("Test Marines", ("Imperium - Test Marines.cat",)),
            FactionSource("Orks", ("Orks.cat", "Orks - Library.cat")),
        ]

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "f.json"
        path.write_text(json.dumps({"name": "Orks"}))
        with pytest.raises(ValueError, match="list"):
            load_factions_file(path)

    def test_entry_without_files(self, tmp_path):
        path = tmp_path / "f.json"
        path.write_text(json.dumps([{"name": "Orks", "files": []}]))
        with pytest.raises(ValueError, match="entry 0"):
            load_factions_file(path)

    def test_files_as_string(self, tmp_path):
        path = tmp_path / "f.json"
        path.write_text(json.dumps([{"name": "Orks", "files": "Orks.cat"}]))
        with pytest.raises(ValueError, match="list of file names"):
            load_factions_file(path)

    def test_duplicate_name_rejected(self, tmp_path):
        path = tmp_path / "f.json"
        path.write_text(json.dumps([
            {"name": "Orks", "files": ["Orks.cat"]},
            {"name": "orks", "files": ["Orks - Library.cat"]},
        ]))
        with pytest.raises(ValueError, match="entry 1 repeats faction 'orks' \\(entry 0\\)"):
            load_factions_file(path)

    def test_non_string_name(self, tmp_path):
        path = tmp_path / "f.json"
        path.write_text(json.dumps([{"name": 7, "files": ["Orks.cat"]}]))
        with pytest.raises(ValueError, match="entry 0"):
            load_factions_file(path)

    def test_unusual_extension_warns(self, tmp_path, caplog):
        path = tmp_path / "f.json"
        path.write_text(json.dumps([{"name": "Orks", "files": ["Orks.xml"]}]))
        with caplog.at_level(logging.WARNING):
            factions = load_factions_file(path)
        assert factions[0].files == ("Orks.xml",)
        assert "does not look like a catalog" in caplog.text

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_factions_file(tmp_path / "nope.json")


class TestSelectFactions:
    def test_no_filter(self):
        selected, unknown = select_factions(DEFAULT_FACTIONS, None)
        assert selected == list(DEFAULT_FACTIONS)
        assert unknown == []

    def test_case_insensitive_keeps_registry_order(self):
        selected, unknown = select_factions(DEFAULT_FACTIONS, ["orks", "NECRONS"])
        assert [f.name for f in selected] == ["Necrons", "Orks"]
        assert unknown == []

    def test_unknown_reported(self):
        selected, unknown = select_factions(DEFAULT_FACTIONS, ["Orks", "Squats"])
        assert [f.name for f in selected] == ["Orks"]
        assert unknown == ["Squats"]


def test_all_documents_sorted_unique():
    factions = [FactionSource("A", ("b.cat", "a.cat")), FactionSource("B", ("a.cat",))]
    assert all_documents(factions) == ["a.cat", "b.cat"]
