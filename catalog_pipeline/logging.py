"""
Run Logging — one log file per pipeline step, plus a structured account of
what each step parsed, skipped and failed on.

A run owns a directory under the logs root::

    logs/pipeline/2026-10-18T14-30-00/
        download.log
        parse.log
        emit.log
        summary.json

While a step is open its ``FileHandler`` sits on the root logger, so every
``logging.getLogger(__name__)`` call made by the extractors lands in that
step's file without the modules knowing about runs.  Closing the step
detaches the handler and appends a summary block.

Skip categories:
    user_skipped        step disabled by a command-line flag
    missing_document    a file of a faction's document set is absent
    empty_faction       faction produced zero units and is not emitted
    error_skip          faction dropped because a document failed to parse
    incremental_skip    catalogs unchanged, batch loaded from staging
    config_skip         faction filtered out by --factions
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

SKIP_CATEGORIES = frozenset({
    "user_skipped",
    "missing_document",
    "empty_faction",
    "error_skip",
    "incremental_skip",
    "config_skip",
})

LOG_FORMAT = "%(asctime)s  %(levelname)-7s  %(name)s  %(message)s"
MAX_FOOTER_ERRORS = 20


@dataclass
class SkipRecord:
    category: str
    detail: str
    item: str = ""         # faction or file name, when the skip concerns one

    def to_dict(self) -> dict[str, str]:
        d = {"category": self.category, "detail": self.detail}
        if self.item:
            d["item"] = self.item
        return d


@dataclass
class StepReport:
    """What one step did: counters, skips with reasons, errors and metrics.

    ``items`` holds per-faction counts (``{"Orks": {"units": 12, ...}}``) for
    steps that work faction by faction.
    """

    step_name: str
    status: str = "not_started"   # started | completed | failed | skipped
    elapsed_seconds: float = 0.0
    items_processed: int = 0
    items_skipped: int = 0
    items_errored: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    items: dict[str, dict[str, int]] = field(default_factory=dict)
    detail: str = ""

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        if category not in SKIP_CATEGORIES:
            raise ValueError(f"Unknown skip category: {category!r}")
        self.skips.append(SkipRecord(category, detail, item))
        self.items_skipped += 1

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.items_errored += 1

    def add_metric(self, key: str, amount: int = 1) -> None:
        """Increment a numeric metric, creating it at zero."""
        self.metrics[key] = self.metrics.get(key, 0) + amount

    def record_item(self, name: str, **counts: int) -> None:
        """Count one processed faction and fold its *counts* into the metrics."""
        self.items_processed += 1
        self.items[name] = dict(counts)
        for key, value in counts.items():
            self.add_metric(key, value)

    def skip_counts_by_category(self) -> dict[str, int]:
        return dict(Counter(s.category for s in self.skips))

    def console_summary(self) -> str:
        """One-line summary for the terminal, e.g. ``2 processed | units: 140``."""
        parts: list[str] = []
        if self.items_processed:
            parts.append(f"{self.items_processed:,} processed")
        if self.items_skipped:
            cats = ", ".join(
                f"{n} {cat.replace('_', ' ')}"
                for cat, n in sorted(self.skip_counts_by_category().items())
            )
            parts.append(f"{self.items_skipped:,} skipped ({cats})")
        if self.items_errored:
            parts.append(f"{self.items_errored:,} errors")
        if self.detail:
            parts.append(self.detail)
        for key, val in self.metrics.items():
            # bools are flags, not counts
            if isinstance(val, bool):
                continue
            if isinstance(val, int):
                parts.append(f"{key}: {val:,}")
            elif isinstance(val, float):
                parts.append(f"{key}: {val:.1f}")
        return " | ".join(parts) or "no activity"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "step_name": self.step_name,
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "items_processed": self.items_processed,
            "items_skipped": self.items_skipped,
            "items_errored": self.items_errored,
            "metrics": self.metrics,
        }
        if self.items:
            d["items"] = self.items
        if self.detail:
            d["detail"] = self.detail
        if self.skips:
            d["skips"] = [s.to_dict() for s in self.skips]
        if self.errors:
            d["errors"] = self.errors
        return d


def _new_run_dir(logs_root: Path, run_id: str) -> Path:
    """Create the run directory, suffixing ``-2``, ``-3``... on a same-second rerun."""
    candidate = logs_root / run_id
    n = 1
    while True:
        try:
            candidate.mkdir(parents=True)
            return candidate
        except FileExistsError:
            n += 1
            candidate = logs_root / f"{run_id}-{n}"


class PipelineLogger:
    """Per-run log directory with one attached file handler per open step."""

    def __init__(self, logs_dir: Path | str = "logs/pipeline") -> None:
        self.logs_root = Path(logs_dir)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        self.run_dir = _new_run_dir(self.logs_root, stamp)
        self.run_id = self.run_dir.name

        self._handlers: dict[str, logging.FileHandler] = {}
        self._started: dict[str, float] = {}
        self._reports: dict[str, StepReport] = {}

        self.pipeline_start = time.monotonic()
        self.args_dict: dict[str, Any] = {}

    def start_step(self, step_name: str) -> StepReport:
        """Attach ``<step_name>.log`` to the root logger and return a fresh report.

        The file receives whatever the root logger's level lets through
        (DEBUG with ``--verbose``).
        """
        handler = logging.FileHandler(self.run_dir / f"{step_name}.log", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logging.getLogger().addHandler(handler)
        self._handlers[step_name] = handler
        self._started[step_name] = time.monotonic()

        report = StepReport(step_name=step_name, status="started")
        self._reports[step_name] = report
        return report

    def finish_step(self, step_name: str, report: StepReport | None = None) -> None:
        """Settle the report's status and close the step's log file.

        A step that only errored is ``failed``; one that processed anything
        at all is ``completed`` and keeps its errors in the report.
        """
        if report is None:
            report = self._reports.get(step_name, StepReport(step_name=step_name))
        report.elapsed_seconds = time.monotonic() - self._started.pop(
            step_name, self.pipeline_start)
        if report.status == "started":
            only_errors = report.items_errored and not report.items_processed
            report.status = "failed" if only_errors else "completed"
        self._reports[step_name] = report

        if report.items_skipped or report.items_errored:
            print(f"  [{step_name}] {report.console_summary()}", flush=True)

        handler = self._handlers.pop(step_name, None)
        if handler:
            logging.getLogger().removeHandler(handler)
            handler.stream.write(_footer(report))
            handler.close()

    def record_user_skip(self, step_name: str, reason: str) -> None:
        """Record a step the command line switched off."""
        report = StepReport(step_name=step_name, status="skipped")
        report.add_skip("user_skipped", reason)
        self._reports[step_name] = report

    def write_summary(self) -> Path:
        """Dump every step report to ``summary.json`` in the run directory."""
        summary = {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_elapsed_seconds": round(time.monotonic() - self.pipeline_start, 2),
            "args": self.args_dict,
            "steps": {name: rpt.to_dict() for name, rpt in self._reports.items()},
        }
        with open(self.summary_path, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, default=str)
        return self.summary_path

    def get_reports(self) -> dict[str, StepReport]:
        return dict(self._reports)

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.json"


def _footer(report: StepReport) -> str:
    bar = "=" * 60
    lines = [
        "",
        bar,
        f"STEP SUMMARY: {report.step_name}",
        f"  Status:    {report.status}",
        f"  Elapsed:   {report.elapsed_seconds:.1f}s",
        f"  Processed: {report.items_processed}",
        f"  Skipped:   {report.items_skipped}",
        f"  Errors:    {report.items_errored}",
    ]
    if report.items:
        lines.append("  Per faction:")
        for name, counts in report.items.items():
            detail = ", ".join(f"{k} {v}" for k, v in counts.items())
            lines.append(f"    {name}: {detail}")
    if report.skips:
        lines.append("  Skip breakdown:")
        for cat, count in sorted(report.skip_counts_by_category().items()):
            lines.append(f"    {cat}: {count}")
    if report.errors:
        lines.append("  Error details:")
        lines.extend(f"    - {err}" for err in report.errors[:MAX_FOOTER_ERRORS])
        if len(report.errors) > MAX_FOOTER_ERRORS:
            lines.append(f"    ... and {len(report.errors) - MAX_FOOTER_ERRORS} more")
    lines.append(bar)
    return "\n".join(lines) + "\n"
