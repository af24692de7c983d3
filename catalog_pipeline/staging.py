"""
Parquet Staging Layer for the catalog pipeline

Keeps the last emitted batch on disk so an unchanged run can skip parsing:

    Normal:        catalogs → parse → UpsertBatch → SQL / SQLite
    With staging:  catalogs unchanged? → staging/*.parquet → UpsertBatch → SQL / SQLite

One Parquet file per table plus ``_metadata.json``, which records the faction
selection (clean names and their documents) plus the size and mtime of every
source document the batch was built from.

Usage:
    python run_pipeline.py --use-staging --staging-dir staging
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq

from catalog_pipeline.emitter import TableOp, UpsertBatch
from catalog_pipeline.factions import FactionSource
from catalog_pipeline.schema import PIPELINE_TABLES, TABLE_COLUMNS

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────────────────

STAGING_VERSION = 2

METADATA_FILE = "_metadata.json"

ARROW_TYPES = {
    "text": pa.string(),
    "int": pa.int64(),
    "bool": pa.bool_(),
    "text[]": pa.list_(pa.string()),
}


def arrow_schema(table: str) -> pa.Schema:
    return pa.schema([pa.field(name, ARROW_TYPES[kind]) for name, kind in TABLE_COLUMNS[table]])


# ── Change detection ─────────────────────────────────────────────────────────


def _source_fingerprint(sources: Iterable[Path]) -> dict[str, dict[str, Any]]:
    """Size and mtime per source document; absent files map to None values."""
    prints = {}
    for source in sorted(set(map(Path, sources))):
        if source.exists():
            stat = source.stat()
            prints[str(source)] = {"size": stat.st_size, "mtime": stat.st_mtime}
        else:
            prints[str(source)] = {"size": None, "mtime": None}
    return prints


def _selection(factions: Iterable[FactionSource] | None) -> list[list[Any]] | None:
    """Clean name and document list per faction, as stored in the metadata."""
    if factions is None:
        return None
    return [[f.name, list(f.files)] for f in factions]


def needs_restaging(
    sources: Iterable[Path],
    staging_dir: Path,
    factions: Iterable[FactionSource] | None = None,
) -> bool:
    """Check whether the staged batch is stale for *sources*.

    Returns True if nothing is staged, the metadata is missing/corrupt or from
    another staging version, the set of source documents differs, or any
    document's size or mtime changed.  When *factions* is given, a different
    faction selection (names, or which documents a name draws on) is stale
    too: the clean name seeds every identifier in the batch.
    """
    meta_path = staging_dir / METADATA_FILE
    if not meta_path.exists():
        return True
    try:
        meta = json.loads(meta_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return True

    if meta.get("staging_version", 0) != STAGING_VERSION:
        return True
    if any(not (staging_dir / f"{t}.parquet").exists() for t in PIPELINE_TABLES):
        return True
    if factions is not None and meta.get("selection") != _selection(factions):
        return True

    staged = meta.get("sources") or {}
    current = _source_fingerprint(sources)
    if set(staged) != set(current):
        return True
    for name, now in current.items():
        then = staged[name]
        if then.get("size") != now["size"]:
            return True
        if abs((then.get("mtime") or 0) - (now["mtime"] or 0)) > 1:
            return True
    return False


# ── Write / read ─────────────────────────────────────────────────────────────


def stage_batch(
    batch: UpsertBatch,
    staging_dir: Path,
    sources: Iterable[Path],
    factions: Iterable[FactionSource] | None = None,
) -> dict[str, Any]:
    """Write *batch* as one Parquet file per table plus ``_metadata.json``.

    *factions* is the selection the batch was built from; recording it lets
    ``needs_restaging`` notice a renamed or remapped faction.

    Returns:
        The metadata dict that was written.
    """
    staging_dir.mkdir(parents=True, exist_ok=True)

    for op in batch.ops:
        schema = arrow_schema(op.table)
        columns = list(zip(*op.rows)) if op.rows else [[] for _ in schema]
        arrays = [
            pa.array(list(values), type=f.type)
            for values, f in zip(columns, schema)
        ]
        table = pa.Table.from_arrays(arrays, schema=schema)
        pq.write_table(table, str(staging_dir / f"{op.table}.parquet"), compression="snappy")

    meta = {
        "staging_version": STAGING_VERSION,
        "last_updated": datetime.now(timezone.utc).isoformat(),
        "row_counts": batch.counts(),
        "factions": batch.faction_names,
        "sources": _source_fingerprint(sources),
        "selection": _selection(factions),
    }
    (staging_dir / METADATA_FILE).write_text(json.dumps(meta, indent=2), encoding="utf-8")
    logger.info("Staged %d rows across %d tables in %s",
                sum(meta["row_counts"].values()), len(batch.ops), staging_dir)
    return meta


def load_staged_batch(staging_dir: Path) -> UpsertBatch:
    """Read a staged batch back.

    Raises:
        FileNotFoundError: A table's Parquet file is missing.
    """
    ops = []
    for table in PIPELINE_TABLES:
        path = staging_dir / f"{table}.parquet"
        if not path.exists():
            raise FileNotFoundError(f"Staged table not found: {path}")
        data = pq.read_table(str(path)).to_pydict()
        names = [name for name, _ in TABLE_COLUMNS[table]]
        ops.append(TableOp(table, rows=list(zip(*(data[n] for n in names)))))

    batch = UpsertBatch(ops=ops)
    logger.info("Loaded staged batch from %s: %s", staging_dir, batch.counts())
    return batch
