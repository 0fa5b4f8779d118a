"""
Pipeline Run Store Module.

This module stores one observability row per pipeline invocation in
SQLite. Rows are write-once and keyed by ``pipeline_id``; they are read
back only for reporting, never by extraction.

Features:
    - Automatic schema creation
    - One connection per operation
    - Paged listing, lookup by id and counting
"""

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from invoice_engine.config import get_config
from invoice_engine.utils.exceptions import DatabaseError
from invoice_engine.utils.helpers import ensure_directory, utc_now_iso
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


# Column name -> SQLite type, in insert order
RUN_COLUMNS = (
    ('pipeline_id', 'TEXT UNIQUE NOT NULL'),
    ('user_id', 'TEXT'),
    ('filename', 'TEXT'),
    ('mime_type', 'TEXT'),
    ('file_size', 'INTEGER'),
    # Quality metrics
    ('blur_score', 'REAL'),
    ('glare_score', 'REAL'),
    ('skew_score', 'REAL'),
    ('brightness', 'REAL'),
    ('contrast', 'REAL'),
    ('resolution_width', 'INTEGER'),
    ('resolution_height', 'INTEGER'),
    ('doc_detected', 'INTEGER'),
    # Recognition
    ('recognition_confidence', 'REAL'),
    ('attempts_count', 'INTEGER'),
    ('best_variant', 'TEXT'),
    ('best_engine', 'TEXT'),
    # Extraction
    ('vendor_extracted', 'TEXT'),
    ('date_extracted', 'TEXT'),
    ('total_extracted_cents', 'INTEGER'),
    ('line_items_count', 'INTEGER'),
    ('total_source', 'TEXT'),
    # Confidence
    ('overall_score', 'REAL'),
    ('vendor_confidence', 'REAL'),
    ('date_confidence', 'REAL'),
    ('total_confidence', 'REAL'),
    ('line_items_confidence', 'REAL'),
    # Status
    ('ok', 'INTEGER'),
    ('failure_reasons', 'TEXT'),
    ('error_message', 'TEXT'),
    ('processing_time_ms', 'INTEGER'),
    ('created_at', 'TEXT'),
)
COLUMN_NAMES = tuple(name for name, _ in RUN_COLUMNS)


class PipelineRunStore:
    """
    SQLite store for pipeline run records.

    Attributes:
        db_path: Path to the SQLite database file
        table_name: Name of the runs table

    Example:
        >>> store = PipelineRunStore("outputs/runs.db")
        >>> store.insert(result.to_run_record(user_id="u1"))
        >>> latest = store.get_runs(limit=10)
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None) -> None:
        """
        Initialize the run store.

        Args:
            db_path: Path to database file. If None, uses configuration.

        Raises:
            DatabaseError: If the schema cannot be created.
        """
        if db_path:
            self.db_path = Path(db_path)
        else:
            output_dir = Path(get_config("paths.output_dir", "outputs"))
            self.db_path = output_dir / get_config("output.database.name", "invoice_pipeline_runs.db")

        self.table_name = get_config("output.database.table_name", "invoice_pipeline_runs")

        ensure_directory(self.db_path.parent)
        self._create_tables()

        logger.debug(f"PipelineRunStore initialized (db: {self.db_path})")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_tables(self) -> None:
        """Create the runs table and its indexes."""
        columns_sql = ',\n            '.join(f"{name} {sql_type}" for name, sql_type in RUN_COLUMNS)
        create_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.table_name} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            {columns_sql}
        )
        """

        try:
            with closing(self._connect()) as conn:
                conn.execute(create_sql)
                conn.execute(f"""
                    CREATE INDEX IF NOT EXISTS idx_{self.table_name}_created_at
                    ON {self.table_name} (created_at)
                """)
                conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError("create tables", str(e))

    def insert(self, record: Dict[str, Any]) -> None:
        """
        Insert one run record.

        Unknown keys are ignored and missing columns are stored as NULL.
        ``created_at`` defaults to the current UTC time.

        Raises:
            DatabaseError: If the pipeline id was already recorded or the
                insert fails.
        """
        values = dict(record)
        values.setdefault('created_at', utc_now_iso())
        row = tuple(values.get(name) for name in COLUMN_NAMES)

        placeholders = ', '.join('?' for _ in COLUMN_NAMES)
        insert_sql = (
            f"INSERT INTO {self.table_name} ({', '.join(COLUMN_NAMES)}) "
            f"VALUES ({placeholders})"
        )

        try:
            with closing(self._connect()) as conn:
                conn.execute(insert_sql, row)
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise DatabaseError("insert", f"run {values.get('pipeline_id')} already recorded: {e}")
        except sqlite3.Error as e:
            raise DatabaseError("insert", str(e))

        logger.debug(f"Recorded run {values.get('pipeline_id')}")

    def get_runs(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """
        List runs, newest first.

        Args:
            limit: Maximum number of rows.
            offset: Rows to skip.

        Returns:
            List of row dictionaries.
        """
        query = (
            f"SELECT * FROM {self.table_name} "
            f"ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        )
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(query, (limit, offset)).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError("select", str(e))
        return [dict(row) for row in rows]

    def get_run(self, pipeline_id: str) -> Optional[Dict[str, Any]]:
        """Look up a run by pipeline id, or None."""
        query = f"SELECT * FROM {self.table_name} WHERE pipeline_id = ?"
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(query, (pipeline_id,)).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError("select", str(e))
        return dict(row) if row else None

    def count(self) -> int:
        try:
            with closing(self._connect()) as conn:
                return conn.execute(f"SELECT COUNT(*) FROM {self.table_name}").fetchone()[0]
        except sqlite3.Error as e:
            raise DatabaseError("count", str(e))
