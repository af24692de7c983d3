"""Database utilities for the catalog pipeline.

Provides reusable functions for:
- SQLite pragmas
- Batch insert and upsert operations
- Table introspection used by the sink and the tests
"""

import sqlite3
from typing import List, Dict, Any, Optional, Sequence


def init_pragmas(conn: sqlite3.Connection) -> None:
    """Initialize SQLite performance and reliability pragmas.

    - WAL mode for concurrent readers while the pipeline writes
    - NORMAL synchronous mode for speed without data loss
    - Memory temp store and a larger cache
    - Foreign keys on, so clearing game data cascades into roster tables

    Args:
        conn: SQLite connection to configure
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA temp_store=MEMORY")
    conn.execute("PRAGMA cache_size=-64000")
    conn.execute("PRAGMA foreign_keys=ON")


def batch_insert(conn: sqlite3.Connection, query: str, rows: List[tuple],
                 batch_size: int = 1000, commit: bool = True) -> int:
    """Execute batch insert operations efficiently.

    Inserts rows in batches to balance memory usage and performance.

    Args:
        conn: SQLite connection
        query: SQL INSERT query with ? placeholders
        rows: List of tuples to insert
        batch_size: Number of rows per batch (default: 1000)
        commit: Commit after each batch. Pass False when the caller owns
                the transaction.

    Returns:
        Total number of rows inserted

    Example:
        rows = [(1, 'name1'), (2, 'name2'), ...]
        batch_insert(conn, 'INSERT INTO table (id, name) VALUES (?, ?)', rows)
    """
    total_inserted = 0

    for i in range(0, len(rows), batch_size):
        batch = rows[i:i + batch_size]
        conn.executemany(query, batch)
        if commit:
            conn.commit()
        total_inserted += len(batch)

    return total_inserted


def upsert_sql(
    table: str,
    columns: Sequence[str],
    conflict_columns: Sequence[str] = (),
    update_columns: Optional[Sequence[str]] = None,
    placeholder: str = "?",
) -> str:
    """Build an INSERT statement with an optional ON CONFLICT clause.

    Args:
        table: Target table name.
        columns: Column names to insert.
        conflict_columns: Unique key to conflict on. Empty means plain insert.
        update_columns: Columns overwritten on conflict. None updates every
                        non-key column; an empty sequence means DO NOTHING.
        placeholder: Parameter placeholder for the VALUES list.

    Returns:
        SQL string.
    """
    cols_str = ", ".join(columns)
    placeholders = ", ".join([placeholder] * len(columns))
    sql = f"INSERT INTO {table} ({cols_str}) VALUES ({placeholders})"
    clause = conflict_clause(columns, conflict_columns, update_columns)
    return f"{sql} {clause}" if clause else sql


def conflict_clause(
    columns: Sequence[str],
    conflict_columns: Sequence[str] = (),
    update_columns: Optional[Sequence[str]] = None,
) -> str:
    """Build the ON CONFLICT clause of an upsert, or "" for a plain insert.

    Same conventions as ``upsert_sql``.  The clause is valid for both SQLite
    and PostgreSQL.
    """
    if not conflict_columns:
        return ""
    if update_columns is None:
        update_columns = [c for c in columns if c not in conflict_columns]
    conflict_str = ", ".join(conflict_columns)
    if not update_columns:
        return f"ON CONFLICT({conflict_str}) DO NOTHING"
    update_set = ", ".join(f"{c} = excluded.{c}" for c in update_columns)
    return f"ON CONFLICT({conflict_str}) DO UPDATE SET {update_set}"


def batch_upsert(
    conn: sqlite3.Connection,
    table: str,
    columns: List[str],
    rows: List[tuple],
    conflict_columns: List[str],
    update_columns: Optional[List[str]] = None,
    batch_size: int = 1000,
    commit: bool = True,
) -> int:
    """Execute batch upsert operations.

    Uses INSERT ... ON CONFLICT(...) DO UPDATE SET ... semantics so that
    re-running the pipeline updates existing rows instead of failing on a
    duplicate key.

    Args:
        conn: SQLite connection.
        table: Target table name.
        columns: List of column names to insert.
        rows: List of value tuples matching ``columns``.
        conflict_columns: Columns forming the unique constraint to conflict on.
        update_columns: Columns to overwrite on conflict (default: all others).
        batch_size: Number of rows per batch (default: 1000).
        commit: Commit after each batch.

    Returns:
        Total number of rows upserted.
    """
    if not rows:
        return 0
    sql = upsert_sql(table, columns, conflict_columns, update_columns)
    return batch_insert(conn, sql, rows, batch_size=batch_size, commit=commit)


def get_table_count(conn: sqlite3.Connection, table: str) -> int:
    """Get row count for a table.

    Args:
        conn: SQLite connection
        table: Table name

    Returns:
        Number of rows in table
    """
    result = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
    return result[0] if result else 0


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    """Check if a table exists in the database.

    Args:
        conn: SQLite connection
        table: Table name

    Returns:
        True if table exists, False otherwise
    """
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table,)
    )
    return cursor.fetchone() is not None


def query_to_dicts(conn: sqlite3.Connection, query: str,
                   params: tuple = ()) -> List[Dict[str, Any]]:
    """Execute query and return results as list of dicts.

    Args:
        conn: SQLite connection
        query: SQL query string
        params: Query parameters tuple

    Returns:
        List of row dicts
    """
    cursor = conn.execute(query, params)
    names = [d[0] for d in cursor.description]
    return [dict(zip(names, row)) for row in cursor.fetchall()]
