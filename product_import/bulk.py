"""
Bulk statement helpers.

Rows are written with multi-row INSERT statements. Each statement is kept
below a byte budget (the driver's packet limit) by RowBatcher, which only
deals with row sizes and knows nothing about SQL. The write helpers pick
the dialect specific upsert / insert-ignore construct of the bound engine.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from sqlalchemy import Table, delete
from sqlalchemy.orm import Session

from .exceptions import ProductImportError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# Per-value overhead in a VALUES list: quotes, separator and parentheses
VALUE_OVERHEAD = 4

DEFAULT_MAX_BYTES = 1000000
DEFAULT_MAX_ROWS = 1000


def estimate_row_size(row: Row) -> int:
    """Approximate number of bytes a row adds to a VALUES list."""
    size = 0
    for value in row.values():
        if value is None:
            size += 4
        else:
            size += len(str(value).encode('utf-8'))
        size += VALUE_OVERHEAD
    return size


class RowBatcher:
    """Splits rows into chunks that each stay within a byte budget and a row limit.

    A single row larger than the budget is yielded as a chunk of its own.
    """

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES, max_rows: int = DEFAULT_MAX_ROWS):
        if max_bytes < 1 or max_rows < 1:
            raise ValueError("max_bytes and max_rows must be positive")
        self.max_bytes = max_bytes
        self.max_rows = max_rows

    def chunks(self, rows: Iterable[Row]) -> Iterator[List[Row]]:
        chunk: List[Row] = []
        chunk_size = 0
        for row in rows:
            row_size = estimate_row_size(row)
            if chunk and (chunk_size + row_size > self.max_bytes or len(chunk) >= self.max_rows):
                yield chunk
                chunk = []
                chunk_size = 0
            chunk.append(row)
            chunk_size += row_size
        if chunk:
            yield chunk


def dialect_insert(session: Session, table: Table):
    """Return the dialect specific insert() construct for the session's engine."""
    dialect = session.get_bind().dialect.name
    if dialect == 'sqlite':
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == 'postgresql':
        from sqlalchemy.dialects.postgresql import insert
    elif dialect in ('mysql', 'mariadb'):
        from sqlalchemy.dialects.mysql import insert
    else:
        raise ProductImportError(f"Unsupported database dialect: {dialect}")
    return insert(table)


def _is_mysql(session: Session) -> bool:
    return session.get_bind().dialect.name in ('mysql', 'mariadb')


def insert_rows(session: Session, table: Table, rows: Sequence[Row],
                batcher: Optional[RowBatcher] = None) -> int:
    """Plain multi-row insert; duplicates raise."""
    batcher = batcher or RowBatcher()
    count = 0
    for chunk in batcher.chunks(rows):
        session.execute(dialect_insert(session, table).values(chunk))
        count += len(chunk)
    return count


def upsert_rows(session: Session, table: Table, rows: Sequence[Row], index_elements: Sequence[str],
                update_columns: Sequence[str], batcher: Optional[RowBatcher] = None) -> int:
    """Multi-row insert that overwrites update_columns when index_elements already exist."""
    batcher = batcher or RowBatcher()
    count = 0
    for chunk in batcher.chunks(rows):
        stmt = dialect_insert(session, table).values(chunk)
        if _is_mysql(session):
            stmt = stmt.on_duplicate_key_update({column: stmt.inserted[column] for column in update_columns})
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=list(index_elements),
                set_={column: stmt.excluded[column] for column in update_columns}
            )
        session.execute(stmt)
        count += len(chunk)
    return count


def insert_ignore_rows(session: Session, table: Table, rows: Sequence[Row],
                       batcher: Optional[RowBatcher] = None) -> int:
    """Multi-row insert that skips rows violating a unique key."""
    batcher = batcher or RowBatcher()
    count = 0
    for chunk in batcher.chunks(rows):
        stmt = dialect_insert(session, table).values(chunk)
        if _is_mysql(session):
            stmt = stmt.prefix_with('IGNORE')
        else:
            stmt = stmt.on_conflict_do_nothing()
        session.execute(stmt)
        count += len(chunk)
    return count


def delete_in(session: Session, table: Table, column: str, values: Iterable[Any],
              chunk_size: int = DEFAULT_MAX_ROWS) -> int:
    """Delete the rows whose column value is in values."""
    values = list(dict.fromkeys(values))
    deleted = 0
    for start in range(0, len(values), chunk_size):
        part = values[start:start + chunk_size]
        result = session.execute(delete(table).where(table.c[column].in_(part)))
        deleted += result.rowcount or 0
    return deleted
