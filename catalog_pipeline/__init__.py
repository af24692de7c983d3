"""
Catalog pipeline package -- wargame catalog documents to relational records.

Re-exports key entry points so callers can do::

    from catalog_pipeline import assemble_faction, build_upsert_batch, render_sql
"""

from catalog_pipeline.assembler import assemble_faction, merge_catalogs, parse_catalog
from catalog_pipeline.emitter import apply_batch, build_upsert_batch, render_sql
from catalog_pipeline.loader import CatalogParseError, load_document, parse_document

__all__ = [
    "assemble_faction",
    "merge_catalogs",
    "parse_catalog",
    "apply_batch",
    "build_upsert_batch",
    "render_sql",
    "CatalogParseError",
    "load_document",
    "parse_document",
]
