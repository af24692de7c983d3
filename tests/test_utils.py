"""
Tests for the shared utilities — utils/strings.py, utils/patterns.py,
utils/database.py, utils/common.py and utils/config.py
"""
import json
import sqlite3
import sys
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.common import elapsed, format_bytes, get_connection
from utils.config import Config, DownloadConfig, GameSystem, PipelineConfig
from utils.database import (
    batch_insert,
    batch_upsert,
    conflict_clause,
    get_table_count,
    init_pragmas,
    query_to_dicts,
    table_exists,
    upsert_sql,
)
from utils.patterns import CATALOG_EXTENSIONS, INVULNERABLE_SAVE, LEADING_INT
from utils.strings import normalize_whitespace, parse_int, split_keywords, strip_suffix_ci


# ── strings ───────────────────────────────────────────────────────────────────

class TestParseInt:
    @pytest.mark.parametrize("value, expected", [
        ("3+", 3),
        ('6"', 6),
        ("-1", -1),
        ("+2", 2),
        ("5.0", 5),
        (" 12 ", 12),
        (7, 7),
        (7.9, 7),
        ("D6", None),
        ("-", None),
        ("", None),
        (None, None),
    ])
    def test_values(self, value, expected):
        assert parse_int(value) == expected


class TestNormalizeWhitespace:
    def test_collapses_and_trims(self):
        assert normalize_whitespace("  Imperium -\tSpace   Marines\n") == "Imperium - Space Marines"


class TestSplitKeywords:
    def test_split_and_trim(self):
        assert split_keywords("Assault,  Heavy , Rapid Fire 1") == ["Assault", "Heavy", "Rapid Fire 1"]

    def test_placeholder_and_empty_dropped(self):
        assert split_keywords("-") == []
        assert split_keywords("Blast, , -") == ["Blast"]
        assert split_keywords(None) == []
        assert split_keywords("") == []


class TestStripSuffix:
    def test_case_insensitive(self):
        assert strip_suffix_ci("Index Raiders ENHANCEMENTS", " Enhancements") == "Index Raiders"

    def test_only_at_end(self):
        assert strip_suffix_ci("Enhancements of Old", " Enhancements") == "Enhancements of Old"

    def test_empty_suffix(self):
        assert strip_suffix_ci("abc", "") == "abc"


# ── patterns ──────────────────────────────────────────────────────────────────

class TestPatterns:
    @pytest.mark.parametrize("name", ["Orks.cat", "Game.gst", "Orks.catz", "X.GSTZ"])
    def test_catalog_extensions(self, name):
        assert CATALOG_EXTENSIONS.search(name)

    @pytest.mark.parametrize("name", ["Orks.xml", "Orks.cat.bak", "catalog"])
    def test_not_catalog(self, name):
        assert not CATALOG_EXTENSIONS.search(name)

    def test_invulnerable_save(self):
        assert INVULNERABLE_SAVE.search("4+ Invulnerable Save")
        assert INVULNERABLE_SAVE.search("5+invuln")
        assert not INVULNERABLE_SAVE.search("Invulnerable")

    def test_leading_int(self):
        assert LEADING_INT.match("10+").group(1) == "10"
        assert LEADING_INT.match("D3") is None


# ── database ──────────────────────────────────────────────────────────────────

@pytest.fixture()
def conn():
    c = sqlite3.connect(":memory:")
    c.execute("CREATE TABLE t (id TEXT PRIMARY KEY, name TEXT, n INTEGER)")
    yield c
    c.close()


class TestConflictClause:
    def test_plain_insert(self):
        assert conflict_clause(["id", "name"]) == ""

    def test_update_all_other_columns(self):
        assert conflict_clause(["id", "name", "n"], ["id"]) == \
            "ON CONFLICT(id) DO UPDATE SET name = excluded.name, n = excluded.n"

    def test_selected_columns(self):
        assert conflict_clause(["id", "name", "n"], ["id"], ["n"]) == \
            "ON CONFLICT(id) DO UPDATE SET n = excluded.n"

    def test_do_nothing(self):
        assert conflict_clause(["id", "name"], ["id"], []) == "ON CONFLICT(id) DO NOTHING"

    def test_upsert_sql(self):
        assert upsert_sql("t", ["id", "name"], ["id"]) == \
            "INSERT INTO t (id, name) VALUES (?, ?) ON CONFLICT(id) DO UPDATE SET name = excluded.name"
        assert upsert_sql("t", ["id"]) == "INSERT INTO t (id) VALUES (?)"


class TestBatchOperations:
    def test_batch_insert_in_chunks(self, conn):
        rows = [(str(i), f"n{i}", i) for i in range(25)]
        assert batch_insert(conn, "INSERT INTO t VALUES (?, ?, ?)", rows, batch_size=10) == 25
        assert get_table_count(conn, "t") == 25

    def test_batch_upsert_updates(self, conn):
        batch_upsert(conn, "t", ["id", "name", "n"], [("a", "old", 1)], ["id"])
        batch_upsert(conn, "t", ["id", "name", "n"], [("a", "new", 2)], ["id"], ["name"])
        assert query_to_dicts(conn, "SELECT * FROM t") == [{"id": "a", "name": "new", "n": 1}]

    def test_batch_upsert_empty(self, conn):
        assert batch_upsert(conn, "t", ["id"], [], ["id"]) == 0

    def test_no_commit_leaves_transaction_open(self, conn):
        batch_upsert(conn, "t", ["id", "name", "n"], [("a", "x", 1)], ["id"], commit=False)
        assert conn.in_transaction
        conn.rollback()
        assert get_table_count(conn, "t") == 0

    def test_table_exists(self, conn):
        assert table_exists(conn, "t")
        assert not table_exists(conn, "missing")

    def test_init_pragmas(self, tmp_path):
        c = get_connection(tmp_path / "db" / "x.sqlite")
        init_pragmas(c)
        assert c.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert c.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        c.close()


# ── common ────────────────────────────────────────────────────────────────────

class TestCommon:
    def test_format_bytes(self):
        assert format_bytes(512 * 1024) == "512 KB"
        assert format_bytes(int(1.5 * 1024 * 1024)) == "1.5 MB"
        assert format_bytes(2 * 1024 ** 3) == "2.00 GB"

    def test_elapsed(self):
        assert elapsed(time.time() - 135) == "2m 15s"
        assert elapsed(time.time() - 3930) == "1h 05m 30s"

    def test_get_connection_autocommit(self, tmp_path):
        c = get_connection(tmp_path / "nested" / "x.sqlite")
        assert c.isolation_level is None
        assert (tmp_path / "nested").is_dir()
        c.close()

    def test_get_connection_memory(self):
        c = get_connection(":memory:")
        assert c.execute("SELECT 1").fetchone() == (1,)
        c.close()


# ── config ────────────────────────────────────────────────────────────────────

class TestConfig:
    def test_round_trip_json(self, tmp_path):
        cfg = DownloadConfig()
        cfg.max_retries = 9
        path = tmp_path / "cfg" / "download.json"
        cfg.save_json(path)
        assert json.loads(path.read_text())["max_retries"] == 9
        loaded = DownloadConfig.load_json(path)
        assert loaded.max_retries == 9
        assert loaded.timeout_seconds == 30

    def test_to_dict_hides_private(self):
        cfg = Config()
        cfg.visible = 1
        cfg._hidden = 2
        assert cfg.to_dict() == {"visible": 1}


class TestPipelineConfig:
    def test_defaults(self, monkeypatch):
        for var in ("CATALOG_DATA_DIR", "CATALOG_SQL_DIALECT", "CATALOG_MAX_REFERENCE_DEPTH",
                    "CATALOG_RULE_TEXT_LIMIT"):
            monkeypatch.delenv(var, raising=False)
        cfg = PipelineConfig.from_env()
        assert cfg.data_dir == Path("data/bsdata")
        assert cfg.sql_dialect == "postgres"
        assert cfg.max_reference_depth == 6
        assert cfg.rule_text_limit == 2000

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CATALOG_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("CATALOG_SQL_DIALECT", "sqlite")
        monkeypatch.setenv("CATALOG_MAX_REFERENCE_DEPTH", "3")
        cfg = PipelineConfig.from_env()
        assert cfg.data_dir == tmp_path
        assert cfg.sql_dialect == "sqlite"
        assert cfg.max_reference_depth == 3


class TestGameSystem:
    def test_role_for_category(self):
        assert GameSystem.role_for_category("Epic Hero") == "epic_hero"
        assert GameSystem.role_for_category("Allied Units") == "allied"
        assert GameSystem.role_for_category("Fly") is None

    def test_priority_covers_roles(self):
        assert set(GameSystem.ROLE_PRIORITY) | {"allied"} == GameSystem.ROLES

    @pytest.mark.parametrize("label, expected", [
        ("Infantry", True),
        ("Faction: Orks", False),
        ("Configuration", False),
        ("Grenades", False),
        ("", False),
    ])
    def test_is_keyword(self, label, expected):
        assert GameSystem.is_keyword(label) is expected
