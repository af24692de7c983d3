"""
Full pipeline runner -- turns wargame catalog documents into seed data.

Steps (in order):
  1. download  -- fetch catalog files missing from the data dir (optional, --download)
  2. parse     -- load, index and assemble every selected faction
  3. emit      -- write the SQL seed script and/or the SQLite database

Features:
  - Per-faction isolation: a catalog that fails to parse skips that faction only
  - Subset runs (--factions, or a faction that failed to parse) replace only the
    factions they emit; an empty batch is never emitted
  - Optional Parquet staging: unchanged catalogs skip the parse step
  - Per-step log files under logs/pipeline/<run-id>/ with skip accounting
  - Append-only JSONL ledger for cross-run history

Usage:
    python run_pipeline.py                                  # all factions -> out/seed_all_factions.sql
    python run_pipeline.py --factions Orks Necrons          # subset
    python run_pipeline.py --db catalog.sqlite --no-sql     # SQLite only
    python run_pipeline.py --dialect sqlite --out seed.sql  # script for the sqlite3 shell
    python run_pipeline.py --download --use-staging         # fetch missing files, reuse staged batch
"""

from __future__ import annotations

import argparse
import logging
import sqlite3
import sys
import time
from pathlib import Path

from catalog_pipeline.assembler import assemble_faction
from catalog_pipeline.download import fetch_missing
from catalog_pipeline.emitter import SQL_DIALECTS, UpsertBatch, apply_batch, build_upsert_batch, render_sql
from catalog_pipeline.factions import (
    DEFAULT_FACTIONS,
    FactionSource,
    all_documents,
    load_factions_file,
    select_factions,
)
from catalog_pipeline.loader import CatalogParseError
from catalog_pipeline.logging import PipelineLogger, StepReport
from catalog_pipeline.models import FactionBundle
from catalog_pipeline.run_ledger import append_to_ledger
from catalog_pipeline.staging import load_staged_batch, needs_restaging, stage_batch
from utils.common import elapsed, format_bytes, get_connection
from utils.config import PipelineConfig
from utils.database import init_pragmas

logger = logging.getLogger(__name__)

SQL_FILE_NAME = "seed_all_factions.sql"


# ── Helpers ───────────────────────────────────────────────────────────────────


def _banner(text: str) -> None:
    bar = "=" * 60
    print(f"\n{bar}")
    print(f"  {text}")
    print(f"{bar}\n", flush=True)


def _parse_factions(
    factions: list[FactionSource],
    data_dir: Path,
    cfg: PipelineConfig,
    report: StepReport,
) -> list[FactionBundle]:
    """Assemble each faction, recording skips and errors on *report*."""
    bundles = []
    for faction in factions:
        print(f"Parsing: {faction.name}...", flush=True)
        try:
            bundle = assemble_faction(
                faction.name,
                faction.paths(data_dir),
                max_depth=cfg.max_reference_depth,
                rule_text_limit=cfg.rule_text_limit,
            )
        except CatalogParseError as e:
            logger.error("  -> %s", e)
            report.add_error(f"{faction.name}: {e}")
            report.add_skip("error_skip", str(e), item=faction.name)
            continue

        for name in bundle.stats.get("missing_documents", []):
            report.add_skip("missing_document", f"{name} not found", item=faction.name)

        if not bundle.units:
            logger.warning("  -> No units found, skipping")
            report.add_skip("empty_faction", "no units in any document", item=faction.name)
            continue

        print(f"  -> {len(bundle.units)} units, {len(bundle.detachments)} detachments",
              flush=True)
        report.record_item(faction.name, units=len(bundle.units),
                           detachments=len(bundle.detachments))
        for reason, count in bundle.stats.get("skipped", {}).items():
            report.add_metric(f"entries_skipped_{reason}", count)
        bundles.append(bundle)
    return bundles


def _emit(batch: UpsertBatch, args: argparse.Namespace, report: StepReport,
          replace_all: bool = True) -> None:
    """Write the batch to the SQL script and/or the SQLite database."""
    if not args.no_sql:
        out_path = Path(args.out)
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(render_sql(batch, args.dialect, replace_all), encoding="utf-8")
        except OSError as e:
            report.add_error(f"SQL script: {e}")
        else:
            report.items_processed += 1
            print(f"  SQL ({args.dialect}) : {out_path} "
                  f"({format_bytes(out_path.stat().st_size)})", flush=True)
    else:
        report.add_skip("user_skipped", "User passed --no-sql")

    if args.db:
        db_path = Path(args.db)
        conn = None
        try:
            conn = get_connection(db_path)
            init_pragmas(conn)
            written = apply_batch(conn, batch, replace_all)
        except sqlite3.Error as e:
            report.add_error(f"SQLite {db_path}: {e}")
        else:
            report.items_processed += 1
            report.metrics["rows_written"] = sum(written.values())
            print(f"  SQLite         : {db_path}", flush=True)
        finally:
            if conn is not None:
                conn.close()


# ── Argument parser ───────────────────────────────────────────────────────────


def _parse_args(argv: list[str] | None, cfg: PipelineConfig) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Compile wargame catalogs into seed data: [download] -> parse -> emit",
    )

    # Inputs
    p.add_argument(
        "--data-dir", default=str(cfg.data_dir),
        help=f"Directory holding the catalog files (default: {cfg.data_dir})",
    )
    p.add_argument(
        "--factions", nargs="+", default=None, metavar="NAME",
        help="Only process these factions (case-insensitive)",
    )
    p.add_argument(
        "--factions-file", default=None, metavar="PATH",
        help='JSON list of {"name": ..., "files": [...]} replacing the built-in registry',
    )
    p.add_argument(
        "--download", action="store_true",
        help="Download catalog files missing from --data-dir",
    )

    # Outputs
    p.add_argument(
        "--out", default=str(cfg.out_dir / SQL_FILE_NAME),
        help=f"SQL script path (default: {cfg.out_dir / SQL_FILE_NAME})",
    )
    p.add_argument(
        "--no-sql", action="store_true",
        help="Do not write the SQL script",
    )
    p.add_argument(
        "--dialect", choices=SQL_DIALECTS, default=cfg.sql_dialect,
        help=f"SQL script dialect (default: {cfg.sql_dialect})",
    )
    p.add_argument(
        "--db", default=None, metavar="PATH",
        help="Also write into this SQLite database",
    )

    # Staging
    p.add_argument(
        "--use-staging", action="store_true",
        help="Reuse the staged batch when no catalog changed; restage otherwise",
    )
    p.add_argument(
        "--staging-dir", default=str(cfg.staging_dir),
        help=f"Staging directory for Parquet files (default: {cfg.staging_dir})",
    )

    # Logging
    p.add_argument(
        "--logs-dir", default=str(cfg.logs_dir),
        help=f"Directory for pipeline run logs (default: {cfg.logs_dir})",
    )
    p.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log skipped entries and unresolved references (DEBUG)",
    )

    return p.parse_args(argv)


# ── Main ──────────────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    cfg = PipelineConfig.from_env()
    args = _parse_args(argv, cfg)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        force=True,
    )

    pl = PipelineLogger(logs_dir=args.logs_dir)
    pl.args_dict = {
        k: v for k, v in vars(args).items()
        if v is not None and v is not False
    }
    pipeline_start = time.time()
    data_dir = Path(args.data_dir)
    staging_dir = Path(args.staging_dir)

    # ── Faction registry ──────────────────────────────────────────────────
    registry: list[FactionSource] = list(DEFAULT_FACTIONS)
    if args.factions_file:
        try:
            registry = load_factions_file(Path(args.factions_file))
        except (OSError, ValueError) as e:
            print(f"\nCannot read factions file: {e}", flush=True)
            _finalize_pipeline(pl, 1)
            return 1

    selected, unknown = select_factions(registry, args.factions)
    for name in unknown:
        print(f"  WARNING: unknown faction {name!r}", flush=True)

    print("\nCatalog Pipeline")
    print(f"  Data dir : {data_dir}")
    print(f"  Factions : {len(selected)} of {len(registry)}")
    print(f"  SQL      : {'skip' if args.no_sql else f'{args.out} [{args.dialect}]'}")
    print(f"  SQLite   : {args.db or 'skip'}")
    if args.use_staging:
        print(f"  Staging  : {staging_dir}")
    print(f"  Logs     : {pl.run_dir}")

    # ── Step 1: Download (optional) ──────────────────────────────────────
    if args.download:
        _banner("Step 1 / 3 -- Download catalogs")
        dl_report = pl.start_step("download")
        result = fetch_missing(all_documents(selected), data_dir, cfg.source_url)
        dl_report.items_processed = len(result["downloaded"])
        dl_report.metrics["already_present"] = len(result["present"])
        for name in result["failed"]:
            dl_report.add_error(f"Download failed: {name}")
        pl.finish_step("download", dl_report)
        print(f"  Downloaded: {len(result['downloaded'])}, "
              f"present: {len(result['present'])}, failed: {len(result['failed'])}")
    else:
        pl.record_user_skip("download", "--download not set")

    # ── Step 2: Parse ────────────────────────────────────────────────────
    _banner("Step 2 / 3 -- Parse catalogs")
    parse_report = pl.start_step("parse")
    for faction in registry:
        if faction not in selected:
            parse_report.add_skip("config_skip", "not selected by --factions", item=faction.name)

    sources = [path for faction in selected for path in faction.paths(data_dir)]
    batch = None
    if args.use_staging and not needs_restaging(sources, staging_dir, selected):
        try:
            batch = load_staged_batch(staging_dir)
        except (OSError, ValueError) as e:
            logger.warning("  Staged batch unreadable (%s); parsing instead", e)
        else:
            parse_report.add_skip("incremental_skip", "catalogs unchanged since last staging")
            print(f"  Loaded staged batch from {staging_dir}", flush=True)

    if batch is None:
        bundles = _parse_factions(selected, data_dir, cfg, parse_report)
        batch = build_upsert_batch(bundles)
        if args.use_staging and not parse_report.items_errored:
            stage_batch(batch, staging_dir, sources, selected)
    parse_report.metrics["rows"] = sum(batch.counts().values())
    pl.finish_step("parse", parse_report)

    # ── Step 3: Emit ─────────────────────────────────────────────────────
    _banner("Step 3 / 3 -- Emit seed data")
    emit_report = pl.start_step("emit")
    # A full clear only when the batch stands for the whole registry
    replace_all = len(selected) == len(registry) and not parse_report.items_errored
    if not batch.faction_names:
        logger.error("  No factions to emit; destinations left untouched")
        emit_report.add_error("empty batch: no faction produced units")
    else:
        if not replace_all:
            print(f"  Replacing only: {', '.join(batch.faction_names)}", flush=True)
        _emit(batch, args, emit_report, replace_all)
    pl.finish_step("emit", emit_report)

    # ── Done ─────────────────────────────────────────────────────────────
    exit_code = 1 if (parse_report.items_errored or emit_report.items_errored) else 0
    counts = batch.counts()
    status = "complete" if exit_code == 0 else "finished with errors"
    _banner(f"Pipeline {status} -- {elapsed(pipeline_start)} total")
    print(f"  {counts['factions']} factions, {counts['units']} total units", flush=True)

    _finalize_pipeline(pl, exit_code, batch.faction_names)
    return exit_code


def _finalize_pipeline(pl: PipelineLogger, exit_code: int,
                       factions: list[str] | None = None) -> None:
    """Write run summary JSON and append to the cross-run ledger."""
    summary_path = pl.write_summary()
    ledger_path = append_to_ledger(pl, exit_code, factions)

    print(f"\n  Run logs : {pl.run_dir}", flush=True)
    print(f"  Summary  : {summary_path}", flush=True)
    print(f"  Ledger   : {ledger_path}", flush=True)


if __name__ == "__main__":
    sys.exit(main())
