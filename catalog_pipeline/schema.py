"""
Relational schema for the emitted game-reference data.

Pipeline-owned tables hold everything derived from catalogs and are replaced
wholesale on each run.  User tables (rosters and their items) reference them
and are emptied by cascade when the reference data is cleared.

``TABLE_COLUMNS`` is the single description of what the emitter writes; the
SQL renderer, the SQLite sink and the Parquet staging layer all read it.
"""

import sqlite3

# ── Column layout ────────────────────────────────────────────────────────────

# Column kinds: "text", "int", "bool", "text[]"
TABLE_COLUMNS: dict[str, list[tuple[str, str]]] = {
    "factions": [
        ("id", "text"),
        ("name", "text"),
    ],
    "detachments": [
        ("id", "text"),
        ("faction_id", "text"),
        ("name", "text"),
        ("rule_text", "text"),
    ],
    "enhancements": [
        ("id", "text"),
        ("detachment_id", "text"),
        ("name", "text"),
        ("points", "int"),
        ("description", "text"),
    ],
    "units": [
        ("id", "text"),
        ("faction_id", "text"),
        ("name", "text"),
        ("role", "text"),
        ("movement", "text"),
        ("toughness", "int"),
        ("save", "text"),
        ("wounds", "int"),
        ("leadership", "int"),
        ("objective_control", "int"),
        ("keywords", "text[]"),
        ("is_unique", "bool"),
    ],
    "unit_points_tiers": [
        ("unit_id", "text"),
        ("model_count", "int"),
        ("points", "int"),
    ],
    "weapons": [
        ("unit_id", "text"),
        ("name", "text"),
        ("type", "text"),
        ("range", "text"),
        ("attacks", "text"),
        ("skill", "text"),
        ("strength", "int"),
        ("ap", "int"),
        ("damage", "text"),
        ("keywords", "text[]"),
    ],
    "abilities": [
        ("unit_id", "text"),
        ("name", "text"),
        ("type", "text"),
        ("description", "text"),
    ],
    "wargear_options": [
        ("id", "text"),
        ("unit_id", "text"),
        ("group_name", "text"),
        ("name", "text"),
        ("is_default", "bool"),
        ("points", "int"),
    ],
}

# Parent tables first; inserts follow this order, deletes run it reversed
PIPELINE_TABLES = tuple(TABLE_COLUMNS)

# Roster tables, parent first
USER_TABLES = (
    "army_lists",
    "army_list_units",
    "army_list_enhancements",
    "army_list_unit_wargear",
)

# Tables that may not exist in older Postgres deployments
OPTIONAL_TABLES = ("army_list_unit_wargear", "wargear_options")


def column_names(table: str) -> list[str]:
    return [name for name, _ in TABLE_COLUMNS[table]]


# ── SQLite DDL ───────────────────────────────────────────────────────────────

SQLITE_DDL = """
CREATE TABLE IF NOT EXISTS factions (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL UNIQUE,
    icon_url    TEXT,
    created_at  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS detachments (
    id          TEXT PRIMARY KEY,
    faction_id  TEXT NOT NULL REFERENCES factions(id) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    rule_text   TEXT,
    created_at  TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (faction_id, name)
);

CREATE TABLE IF NOT EXISTS enhancements (
    id              TEXT PRIMARY KEY,
    detachment_id   TEXT NOT NULL REFERENCES detachments(id) ON DELETE CASCADE,
    name            TEXT NOT NULL,
    points          INTEGER NOT NULL,
    description     TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS units (
    id                  TEXT PRIMARY KEY,
    faction_id          TEXT NOT NULL REFERENCES factions(id) ON DELETE CASCADE,
    name                TEXT NOT NULL,
    role                TEXT NOT NULL CHECK (role IN (
        'epic_hero', 'character', 'battleline', 'infantry',
        'mounted', 'beast', 'vehicle', 'monster',
        'fortification', 'dedicated_transport', 'allied'
    )),
    movement            TEXT NOT NULL DEFAULT '6"',
    toughness           INTEGER NOT NULL DEFAULT 4,
    save                TEXT NOT NULL DEFAULT '3+',
    wounds              INTEGER NOT NULL DEFAULT 1,
    leadership          INTEGER NOT NULL DEFAULT 6,
    objective_control   INTEGER NOT NULL DEFAULT 1,
    keywords            TEXT NOT NULL DEFAULT '[]',
    is_unique           INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS unit_points_tiers (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    unit_id     TEXT NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    model_count INTEGER NOT NULL,
    points      INTEGER NOT NULL,
    UNIQUE (unit_id, model_count)
);

CREATE TABLE IF NOT EXISTS weapons (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    unit_id     TEXT NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    type        TEXT NOT NULL CHECK (type IN ('ranged', 'melee')),
    range       TEXT,
    attacks     TEXT NOT NULL DEFAULT '1',
    skill       TEXT NOT NULL DEFAULT '3+',
    strength    INTEGER NOT NULL DEFAULT 4,
    ap          INTEGER NOT NULL DEFAULT 0,
    damage      TEXT NOT NULL DEFAULT '1',
    keywords    TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS abilities (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    unit_id     TEXT NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    name        TEXT NOT NULL,
    type        TEXT NOT NULL CHECK (type IN ('core', 'faction', 'unique', 'invulnerable')),
    description TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS wargear_options (
    id          TEXT PRIMARY KEY,
    unit_id     TEXT NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    group_name  TEXT NOT NULL,
    name        TEXT NOT NULL,
    is_default  INTEGER NOT NULL DEFAULT 0,
    points      INTEGER NOT NULL DEFAULT 0,
    UNIQUE (unit_id, group_name, name)
);

CREATE INDEX IF NOT EXISTS idx_units_faction ON units(faction_id);
CREATE INDEX IF NOT EXISTS idx_weapons_unit ON weapons(unit_id);
CREATE INDEX IF NOT EXISTS idx_abilities_unit ON abilities(unit_id);
CREATE INDEX IF NOT EXISTS idx_wargear_options_unit ON wargear_options(unit_id);

-- Roster tables
CREATE TABLE IF NOT EXISTS army_lists (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    name            TEXT NOT NULL,
    faction_id      TEXT NOT NULL REFERENCES factions(id) ON DELETE CASCADE,
    detachment_id   TEXT NOT NULL REFERENCES detachments(id) ON DELETE CASCADE,
    points_limit    INTEGER NOT NULL DEFAULT 2000,
    created_at      TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at      TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS army_list_units (
    id              TEXT PRIMARY KEY,
    army_list_id    TEXT NOT NULL REFERENCES army_lists(id) ON DELETE CASCADE,
    unit_id         TEXT NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    model_count     INTEGER NOT NULL DEFAULT 1,
    sort_order      INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS army_list_enhancements (
    id                  TEXT PRIMARY KEY,
    army_list_id        TEXT NOT NULL REFERENCES army_lists(id) ON DELETE CASCADE,
    enhancement_id      TEXT NOT NULL REFERENCES enhancements(id) ON DELETE CASCADE,
    army_list_unit_id   TEXT NOT NULL REFERENCES army_list_units(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS army_list_unit_wargear (
    id                  TEXT PRIMARY KEY,
    army_list_unit_id   TEXT NOT NULL REFERENCES army_list_units(id) ON DELETE CASCADE,
    wargear_option_id   TEXT NOT NULL REFERENCES wargear_options(id) ON DELETE CASCADE,
    UNIQUE (army_list_unit_id, wargear_option_id)
);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they do not exist."""
    conn.executescript(SQLITE_DDL)
