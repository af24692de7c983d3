"""
Record Emitter — FactionBundles to table upserts.

``build_upsert_batch`` flattens merged bundles into one ``UpsertBatch``: an
ordered list of per-table operations (rows plus the natural key each table
upserts on).  The batch then goes to one or more destinations:

    render_sql(batch, "postgres")  → migration script (TRUNCATE ... CASCADE)
    render_sql(batch, "sqlite")    → script for the sqlite3 shell
    apply_batch(conn, batch)       → straight into a SQLite database

By default every destination clears the pipeline-owned tables first, so one
batch is a complete replacement of the game-reference data.  With
``replace_all=False`` only the factions in the batch are replaced: their
rosters and faction rows are deleted and the cascade removes the rest, while
other factions and their rosters stay untouched.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field

from catalog_pipeline import identity
from catalog_pipeline.models import FactionBundle
from catalog_pipeline.schema import (
    OPTIONAL_TABLES,
    PIPELINE_TABLES,
    TABLE_COLUMNS,
    USER_TABLES,
    column_names,
    create_schema,
)
from utils.database import batch_upsert, conflict_clause

logger = logging.getLogger(__name__)

SQL_DIALECTS = ("postgres", "sqlite")

# Natural key and updated columns per table.  No key means plain insert;
# an empty update tuple means DO NOTHING; None updates every other column.
TABLE_CONFLICTS: dict[str, tuple[tuple[str, ...], tuple[str, ...] | None]] = {
    "factions": (("name",), ("name",)),
    "detachments": (("faction_id", "name"), ("rule_text",)),
    "enhancements": ((), None),
    "units": (("id",), None),
    "unit_points_tiers": ((), None),
    "weapons": ((), None),
    "abilities": ((), None),
    "wargear_options": (("unit_id", "group_name", "name"), ("is_default", "points")),
}

ROWS_PER_STATEMENT = 500


@dataclass
class TableOp:
    """Rows for one table, in ``schema.TABLE_COLUMNS`` order."""

    table: str
    rows: list[tuple] = field(default_factory=list)

    @property
    def columns(self) -> list[str]:
        return column_names(self.table)

    @property
    def conflict(self) -> tuple[str, ...]:
        return TABLE_CONFLICTS[self.table][0]

    @property
    def update(self) -> tuple[str, ...] | None:
        return TABLE_CONFLICTS[self.table][1]


@dataclass
class UpsertBatch:
    """Table operations for a whole run, parent tables first."""

    ops: list[TableOp] = field(default_factory=lambda: [TableOp(t) for t in PIPELINE_TABLES])

    def op(self, table: str) -> TableOp:
        for op in self.ops:
            if op.table == table:
                return op
        raise KeyError(table)

    def counts(self) -> dict[str, int]:
        return {op.table: len(op.rows) for op in self.ops}

    @property
    def faction_names(self) -> list[str]:
        return [row[1] for row in self.op("factions").rows]

    @property
    def faction_ids(self) -> list[str]:
        return [row[0] for row in self.op("factions").rows]


# ── Batch construction ───────────────────────────────────────────────────────


def build_upsert_batch(bundles: Iterable[FactionBundle]) -> UpsertBatch:
    """Flatten merged faction bundles into table rows.

    Ids come from ``identity``: units carry theirs already, detachment,
    enhancement and wargear ids are seeded here from the faction name.
    """
    batch = UpsertBatch()
    factions = batch.op("factions").rows
    detachments = batch.op("detachments").rows
    enhancements = batch.op("enhancements").rows
    units = batch.op("units").rows
    tiers = batch.op("unit_points_tiers").rows
    weapons = batch.op("weapons").rows
    abilities = batch.op("abilities").rows
    wargear = batch.op("wargear_options").rows

    for bundle in bundles:
        faction = bundle.faction
        factions.append((faction.id, faction.name))

        for det in bundle.detachments:
            det_id = identity.detachment_id(faction.name, det.name)
            detachments.append((det_id, faction.id, det.name, det.rule_text))
            for enh in det.enhancements:
                enhancements.append((
                    identity.enhancement_id(faction.name, det.name, enh.name),
                    det_id, enh.name, enh.points, enh.description,
                ))

        for unit in bundle.units:
            units.append((
                unit.id, faction.id, unit.name, unit.role,
                unit.movement, unit.toughness, unit.save, unit.wounds,
                unit.leadership, unit.objective_control,
                list(unit.keywords), unit.is_unique,
            ))
            tiers.extend((unit.id, t.model_count, t.points) for t in unit.points_tiers)
            weapons.extend(
                (unit.id, w.name, w.kind, w.range, w.attacks, w.skill,
                 w.strength, w.ap, w.damage, list(w.keywords))
                for w in unit.weapons
            )
            abilities.extend(
                (unit.id, a.name, a.classification, a.description)
                for a in unit.abilities
            )
            wargear.extend(
                (identity.wargear_id(faction.name, unit.name, o.group_name, o.name),
                 unit.id, o.group_name, o.name, o.is_default, o.points)
                for o in unit.wargear_options
            )

    logger.debug("Built upsert batch: %s", batch.counts())
    return batch


# ── SQL rendering ────────────────────────────────────────────────────────────


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _pg_array(items: list[str]) -> str:
    escaped = (s.replace("\\", "\\\\").replace('"', '\\"') for s in items)
    return _quote("{" + ", ".join(f'"{s}"' for s in escaped) + "}")


def sql_literal(value, kind: str, dialect: str) -> str:
    """Render one value of column *kind* as a SQL literal."""
    if value is None:
        return "NULL"
    if kind == "int":
        return str(int(value))
    if kind == "bool":
        if dialect == "postgres":
            return "TRUE" if value else "FALSE"
        return "1" if value else "0"
    if kind == "text[]":
        if dialect == "postgres":
            return _pg_array(list(value))
        return _quote(json.dumps(list(value)))
    return _quote(str(value))


def _clear_statements(dialect: str) -> list[str]:
    if dialect == "sqlite":
        return [f"DELETE FROM {t};" for t in reversed(PIPELINE_TABLES)]

    lines = ["DO $$ BEGIN"]
    for table in OPTIONAL_TABLES:
        lines.append(
            "  IF EXISTS (SELECT 1 FROM information_schema.tables "
            f"WHERE table_schema = 'public' AND table_name = '{table}') THEN"
        )
        lines.append(f"    TRUNCATE public.{table} CASCADE;")
        lines.append("  END IF;")
    lines.append("END $$;")

    # Child tables first, as in the sqlite dialect
    required = [t for t in reversed(PIPELINE_TABLES) if t not in OPTIONAL_TABLES]
    rosters = [t for t in reversed(USER_TABLES) if t not in OPTIONAL_TABLES]
    for table in rosters + required:
        lines.append(f"TRUNCATE public.{table} CASCADE;")
    return lines


def _scoped_clear_statements(faction_ids: list[str], dialect: str) -> list[str]:
    """Delete only the listed factions.

    Rosters go first: in deployed schemas ``army_lists.faction_id`` does not
    cascade.  Everything below a faction row does.
    """
    if not faction_ids:
        return []
    prefix = "public." if dialect == "postgres" else ""
    ids = ", ".join(_quote(i) for i in faction_ids)
    return [
        f"DELETE FROM {prefix}army_lists WHERE faction_id IN ({ids});",
        f"DELETE FROM {prefix}factions WHERE id IN ({ids});",
    ]


def _insert_statements(op: TableOp, dialect: str) -> list[str]:
    if not op.rows:
        return []
    prefix = "public." if dialect == "postgres" else ""
    kinds = [kind for _, kind in TABLE_COLUMNS[op.table]]
    head = f"INSERT INTO {prefix}{op.table} ({', '.join(op.columns)}) VALUES"
    clause = conflict_clause(op.columns, op.conflict, op.update)

    statements = []
    for start in range(0, len(op.rows), ROWS_PER_STATEMENT):
        chunk = op.rows[start:start + ROWS_PER_STATEMENT]
        values = ",\n".join(
            "  (" + ", ".join(sql_literal(v, k, dialect) for v, k in zip(row, kinds)) + ")"
            for row in chunk
        )
        tail = f"\n{clause};" if clause else ";"
        statements.append(f"{head}\n{values}{tail}")
    return statements


def render_sql(batch: UpsertBatch, dialect: str = "postgres", replace_all: bool = True) -> str:
    """Render the batch as one SQL script: clear step, then upserts.

    With *replace_all* the clear step empties every pipeline table;
    otherwise it deletes only the batch's own factions.  The output depends
    only on its arguments, so the same input always yields a byte-identical
    script.

    Raises:
        ValueError: Unknown dialect.
    """
    if dialect not in SQL_DIALECTS:
        raise ValueError(f"Unknown SQL dialect {dialect!r}; expected one of {SQL_DIALECTS}")

    counts = batch.counts()
    lines = [
        "-- ============================================================",
        "-- AUTO-GENERATED from catalog data",
        f"-- {counts['factions']} factions, {counts['units']} total units",
        "-- ============================================================",
        "",
    ]
    if dialect == "sqlite":
        lines.insert(0, "PRAGMA foreign_keys = ON;")
    if replace_all:
        lines.append("-- Clean existing seed data (preserve schema)")
        lines.append("BEGIN;")
        lines.extend(_clear_statements(dialect))
    else:
        lines.append(f"-- Replace seed data of {counts['factions']} factions only")
        lines.append("BEGIN;")
        lines.extend(_scoped_clear_statements(batch.faction_ids, dialect))

    for op in batch.ops:
        statements = _insert_statements(op, dialect)
        if not statements:
            continue
        lines.append("")
        lines.append(f"-- {op.table} ({len(op.rows)})")
        lines.extend(statements)

    lines.append("")
    lines.append("COMMIT;")
    return "\n".join(lines) + "\n"


# ── SQLite sink ──────────────────────────────────────────────────────────────


def _sqlite_row(row: tuple, kinds: list[str]) -> tuple:
    out = []
    for value, kind in zip(row, kinds):
        if kind == "text[]" and value is not None:
            value = json.dumps(list(value))
        elif kind == "bool" and value is not None:
            value = int(bool(value))
        out.append(value)
    return tuple(out)


def apply_batch(conn: sqlite3.Connection, batch: UpsertBatch,
                replace_all: bool = True) -> dict[str, int]:
    """Replace the game-reference data in a SQLite database with *batch*.

    Creates the schema when missing, turns foreign keys on (so roster rows
    pointing at cleared records are deleted by cascade), then clears and
    inserts inside a single transaction.  Without *replace_all* only the
    batch's own factions are cleared.

    Returns:
        Rows written per table.

    Raises:
        sqlite3.Error: After rolling back; the database is left unchanged.
    """
    create_schema(conn)
    conn.execute("PRAGMA foreign_keys=ON")

    written: dict[str, int] = {}
    conn.execute("BEGIN")
    try:
        if replace_all:
            for table in reversed(PIPELINE_TABLES):
                conn.execute(f"DELETE FROM {table}")
        else:
            for statement in _scoped_clear_statements(batch.faction_ids, "sqlite"):
                conn.execute(statement)
        for op in batch.ops:
            kinds = [kind for _, kind in TABLE_COLUMNS[op.table]]
            rows = [_sqlite_row(r, kinds) for r in op.rows]
            written[op.table] = batch_upsert(
                conn, op.table, op.columns, rows,
                list(op.conflict),
                list(op.update) if op.update is not None else None,
                commit=False,
            )
        conn.execute("COMMIT")
    except sqlite3.Error:
        conn.execute("ROLLBACK")
        logger.error("SQLite write failed; rolled back")
        raise

    logger.info("Wrote %d rows to SQLite (%s)", sum(written.values()), written)
    return written
