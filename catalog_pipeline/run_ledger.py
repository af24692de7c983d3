"""
Pipeline Run Ledger — append-only JSONL history of pipeline runs.

Every time ``run_pipeline.py`` finishes (successfully or not), one JSON line
is appended to ``logs/pipeline/ledger.jsonl`` with the exit code, the
per-step counts and the factions emitted::

    tail -5 logs/pipeline/ledger.jsonl | python -m json.tool
"""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from catalog_pipeline.logging import PipelineLogger

LEDGER_FILE = "ledger.jsonl"


def _step_entry(rpt) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "status": rpt.status,
        "elapsed": round(rpt.elapsed_seconds, 1),
        "processed": rpt.items_processed,
        "skipped": rpt.items_skipped,
        "errored": rpt.items_errored,
    }
    if rpt.metrics:
        entry["metrics"] = rpt.metrics
    skip_cats = rpt.skip_counts_by_category()
    if skip_cats:
        entry["skip_categories"] = skip_cats
    return entry


def append_to_ledger(
    pl: PipelineLogger,
    exit_code: int,
    factions: list[str] | None = None,
    ledger_path: Path | None = None,
) -> Path:
    """Append a one-line JSON record summarising this run to the ledger.

    Args:
        pl: The PipelineLogger for the current run (holds reports + args).
        exit_code: The pipeline exit code (0 = success).
        factions: Names of the factions emitted by this run.
        ledger_path: Override the default ``<logs_root>/ledger.jsonl``.

    Returns:
        The path to the ledger file.
    """
    if ledger_path is None:
        ledger_path = pl.logs_root / LEDGER_FILE

    record = {
        "run_id": pl.run_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total_seconds": round(time.monotonic() - pl.pipeline_start, 1),
        "exit_code": exit_code,
        "args": pl.args_dict,
        "factions": factions or [],
        "steps": {name: _step_entry(rpt) for name, rpt in pl.get_reports().items()},
    }

    ledger_path.parent.mkdir(parents=True, exist_ok=True)
    with open(ledger_path, "a") as f:
        f.write(json.dumps(record, separators=(",", ":"), default=str) + "\n")

    return ledger_path


def read_ledger(ledger_path: Path, limit: int | None = None) -> list[dict[str, Any]]:
    """Return ledger records, oldest first; the last *limit* when given."""
    if not ledger_path.exists():
        return []
    with open(ledger_path) as f:
        records = [json.loads(line) for line in f if line.strip()]
    return records[-limit:] if limit else records
