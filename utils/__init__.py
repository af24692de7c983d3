"""Shared utilities for the catalog pipeline tools."""

# Common utilities
from utils.common import format_bytes, elapsed, get_connection

# Pattern definitions
from utils.patterns import (
    CATALOG_EXTENSIONS,
    LEADING_INT,
    INVULNERABLE_SAVE,
)

# String utilities
from utils.strings import (
    parse_int,
    normalize_whitespace,
    split_keywords,
    strip_suffix_ci,
)

# Database utilities
from utils.database import (
    init_pragmas,
    batch_insert,
    batch_upsert,
    upsert_sql,
    conflict_clause,
    get_table_count,
    table_exists,
    query_to_dicts,
)

# Configuration
from utils.config import (
    Config,
    PipelineConfig,
    DownloadConfig,
    GameSystem,
)

# HTTP utilities
from utils.http import (
    RetryStrategy,
    SessionManager,
    download_file,
)

__all__ = [
    # Common
    "format_bytes",
    "elapsed",
    "get_connection",
    # Patterns
    "CATALOG_EXTENSIONS",
    "LEADING_INT",
    "INVULNERABLE_SAVE",
    # Strings
    "parse_int",
    "normalize_whitespace",
    "split_keywords",
    "strip_suffix_ci",
    # Database
    "init_pragmas",
    "batch_insert",
    "batch_upsert",
    "upsert_sql",
    "conflict_clause",
    "get_table_count",
    "table_exists",
    "query_to_dicts",
    # Config
    "Config",
    "PipelineConfig",
    "DownloadConfig",
    "GameSystem",
    # HTTP
    "RetryStrategy",
    "SessionManager",
    "download_file",
]
