"""Database operations for reverse-engineering run logging."""

import sqlite3
import logging
import json
from pathlib import Path
from typing import Optional, List, Dict, Any
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# SQL schema for run logging
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT UNIQUE NOT NULL,
    timestamp DATETIME NOT NULL,
    command TEXT NOT NULL,
    target TEXT,
    schema_filter TEXT,  -- JSON array of selected schemas
    arguments TEXT,  -- JSON of all arguments, secrets redacted
    status TEXT DEFAULT 'started',  -- 'started', 'success', 'error'
    duration_ms INTEGER,

    -- Collection results
    schemas_count INTEGER,
    tables_count INTEGER,
    views_count INTEGER,
    documents_count INTEGER,
    warnings_count INTEGER,

    -- Error information
    error_message TEXT,
    error_type TEXT,
    error_code TEXT,
    error_traceback TEXT,

    -- Environment info
    python_version TEXT,
    package_version TEXT,
    working_directory TEXT
);

CREATE INDEX IF NOT EXISTS idx_runs_timestamp ON runs(timestamp);
CREATE INDEX IF NOT EXISTS idx_runs_status ON runs(status);
CREATE INDEX IF NOT EXISTS idx_runs_target ON runs(target);
"""


def get_default_runs_db_path() -> str:
    """Get the default database path (~/.warehouse-re/runs.db)."""
    app_dir = Path.home() / ".warehouse-re"
    app_dir.mkdir(exist_ok=True)
    return str(app_dir / "runs.db")


def _utc_timestamp(delta: timedelta = timedelta(0)) -> str:
    return (datetime.now(timezone.utc) - delta).strftime(TIMESTAMP_FORMAT)


class RunDatabase:
    """SQLite database for run logging."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses default.
        """
        self.db_path = db_path or get_default_runs_db_path()
        self._connection: Optional[sqlite3.Connection] = None
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                isolation_level=None,  # Auto-commit mode
            )
            self._connection.row_factory = sqlite3.Row
        return self._connection

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        try:
            conn = self._get_connection()
            conn.executescript(SCHEMA_SQL)
            self._initialized = True
            logger.debug("Run logging database initialized at %s", self.db_path)
        except Exception as e:
            logger.error("Failed to initialize run logging database: %s", e)
            raise

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            self._initialized = False

    def insert_run(
        self,
        run_id: str,
        command: str,
        target: Optional[str] = None,
        schema_filter: Optional[List[str]] = None,
        arguments: Optional[Dict[str, Any]] = None,
        python_version: Optional[str] = None,
        package_version: Optional[str] = None,
        working_directory: Optional[str] = None,
    ) -> int:
        """Insert a new run entry.

        Args:
            run_id: Unique identifier for this run
            command: CLI command (e.g., 'data')
            target: Warehouse ('bigquery', 'snowflake')
            schema_filter: Selected schemas, if any
            arguments: Dictionary of command arguments
            python_version: Python version
            package_version: warehouse-re version
            working_directory: Current working directory

        Returns:
            The row ID of the inserted entry
        """
        self.initialize()
        conn = self._get_connection()

        cursor = conn.execute(
            """
            INSERT INTO runs (
                run_id, timestamp, command, target, schema_filter, arguments, status,
                python_version, package_version, working_directory
            )
            VALUES (?, ?, ?, ?, ?, ?, 'started', ?, ?, ?)
            """,
            (
                run_id, _utc_timestamp(), command, target,
                json.dumps(schema_filter) if schema_filter else None,
                json.dumps(arguments, default=str) if arguments else None,
                python_version, package_version, working_directory,
            ),
        )
        return cursor.lastrowid

    def update_collection_results(
        self,
        run_id: str,
        schemas_count: int,
        tables_count: int,
        views_count: int,
        documents_count: int,
        warnings_count: int,
    ) -> None:
        """Update run with collection results.

        Args:
            run_id: Run identifier
            schemas_count: Number of schemas processed
            tables_count: Number of table packages built
            views_count: Number of views fetched
            documents_count: Number of sampled documents
            warnings_count: Number of skipped entities
        """
        conn = self._get_connection()
        conn.execute(
            """
            UPDATE runs
            SET schemas_count = ?, tables_count = ?, views_count = ?,
                documents_count = ?, warnings_count = ?
            WHERE run_id = ?
            """,
            (schemas_count, tables_count, views_count, documents_count, warnings_count, run_id),
        )

    def update_success(self, run_id: str, duration_ms: int) -> None:
        """Mark run as successful."""
        conn = self._get_connection()
        conn.execute(
            "UPDATE runs SET status = 'success', duration_ms = ? WHERE run_id = ?",
            (duration_ms, run_id),
        )

    def update_error(
        self,
        run_id: str,
        error_message: str,
        error_type: Optional[str] = None,
        error_code: Optional[str] = None,
        error_traceback: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        """Mark run as failed with error details.

        Args:
            run_id: Run identifier
            error_message: Error message
            error_type: Exception type
            error_code: Typed error code (e.g. CONNECTION_ERROR)
            error_traceback: Full traceback
            duration_ms: Duration until error
        """
        conn = self._get_connection()
        conn.execute(
            """
            UPDATE runs
            SET status = 'error', error_message = ?, error_type = ?, error_code = ?,
                error_traceback = ?, duration_ms = ?
            WHERE run_id = ?
            """,
            (error_message, error_type, error_code, error_traceback, duration_ms, run_id),
        )

    def query_runs(
        self,
        command: Optional[str] = None,
        status: Optional[str] = None,
        target: Optional[str] = None,
        since_hours: int = 24,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Query run entries with optional filters.

        Returns:
            List of run entries as dictionaries, newest first
        """
        self.initialize()
        conn = self._get_connection()

        conditions = ["timestamp >= ?"]
        params: List[Any] = [_utc_timestamp(timedelta(hours=since_hours))]

        if command:
            conditions.append("command = ?")
            params.append(command)

        if status:
            conditions.append("status = ?")
            params.append(status)

        if target:
            conditions.append("target = ?")
            params.append(target)

        params.extend([limit, offset])

        query = f"""
            SELECT * FROM runs
            WHERE {" AND ".join(conditions)}
            ORDER BY timestamp DESC, id DESC
            LIMIT ? OFFSET ?
        """

        cursor = conn.execute(query, params)
        return [dict(row) for row in cursor.fetchall()]

    def get_run_by_id(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Get a specific run by ID."""
        self.initialize()
        conn = self._get_connection()

        cursor = conn.execute("SELECT * FROM runs WHERE run_id = ?", (run_id,))
        row = cursor.fetchone()

        return dict(row) if row else None

    def get_stats(self, since_hours: int = 24) -> Dict[str, Any]:
        """Get statistics about runs.

        Args:
            since_hours: Look back N hours

        Returns:
            Dict with statistics
        """
        self.initialize()
        conn = self._get_connection()

        since_time = _utc_timestamp(timedelta(hours=since_hours))

        cursor = conn.execute(
            """
            SELECT
                COUNT(*) as total,
                SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END) as success_count,
                SUM(CASE WHEN status = 'error' THEN 1 ELSE 0 END) as error_count,
                AVG(duration_ms) as avg_duration_ms,
                SUM(tables_count) as total_tables,
                SUM(documents_count) as total_documents,
                SUM(warnings_count) as total_warnings
            FROM runs
            WHERE timestamp >= ?
            """,
            (since_time,),
        )
        row = cursor.fetchone()

        cursor = conn.execute(
            """
            SELECT target, COUNT(*) as count,
                   SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END) as success,
                   SUM(CASE WHEN status = 'error' THEN 1 ELSE 0 END) as errors
            FROM runs
            WHERE timestamp >= ? AND target IS NOT NULL
            GROUP BY target
            ORDER BY count DESC
            """,
            (since_time,),
        )
        target_stats = [dict(r) for r in cursor.fetchall()]

        cursor = conn.execute(
            """
            SELECT run_id, timestamp, command, error_code, error_message
            FROM runs
            WHERE timestamp >= ? AND status = 'error'
            ORDER BY timestamp DESC
            LIMIT 5
            """,
            (since_time,),
        )
        recent_errors = [dict(r) for r in cursor.fetchall()]

        return {
            "total_runs": row["total"] or 0,
            "success_count": row["success_count"] or 0,
            "error_count": row["error_count"] or 0,
            "avg_duration_ms": round(row["avg_duration_ms"] or 0, 2),
            "total_tables_processed": row["total_tables"] or 0,
            "total_documents_sampled": row["total_documents"] or 0,
            "total_warnings": row["total_warnings"] or 0,
            "since_hours": since_hours,
            "by_target": target_stats,
            "recent_errors": recent_errors,
        }

    def cleanup_old_runs(self, retention_days: int = 30) -> int:
        """Delete runs older than retention period.

        Returns:
            Number of deleted rows
        """
        self.initialize()
        conn = self._get_connection()

        cursor = conn.execute(
            "DELETE FROM runs WHERE timestamp < ?",
            (_utc_timestamp(timedelta(days=retention_days)),),
        )

        deleted = cursor.rowcount
        if deleted > 0:
            logger.info("Cleaned up %d old run entries", deleted)

        return deleted

    def __enter__(self):
        """Context manager entry."""
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
