"""Run logging service for warehouse-re.

Provides a high-level interface for recording reverse-engineering runs,
including automatic context capture and error handling.
"""

import logging
import os
import sys
import time
import traceback
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from warehouse_re.errors import error_code
from warehouse_re.logging.run_db import RunDatabase

logger = logging.getLogger(__name__)

# Global logger instance
_run_logger: Optional["RunLogger"] = None


def get_run_logger() -> "RunLogger":
    """Get or create the global run logger instance."""
    global _run_logger
    if _run_logger is None:
        from warehouse_re.config import settings

        _run_logger = RunLogger(
            db_path=settings.run_logging_db_path,
            enabled=settings.run_logging_enabled,
            retention_days=settings.run_logging_retention_days,
        )
    return _run_logger


@dataclass
class RunContext:
    """Context for a run; results are filled in while the run progresses."""

    run_id: str
    command: str
    target: Optional[str] = None
    schema_filter: Optional[List[str]] = None
    arguments: Dict[str, Any] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)

    schemas_count: int = 0
    tables_count: int = 0
    views_count: int = 0
    documents_count: int = 0
    warnings_count: int = 0


class RunLogger:
    """High-level logger for reverse-engineering runs.

    Example usage:
        run_logger = get_run_logger()

        with run_logger.log_run(command="data", target="snowflake") as ctx:
            result = ...
            ctx.tables_count = 17
            ctx.warnings_count = len(result.warnings)

            # If an error occurs, it's recorded and re-raised
    """

    def __init__(self, db_path: Optional[str] = None, enabled: bool = True, retention_days: int = 30):
        """Initialize the run logger.

        Args:
            db_path: Path to the SQLite database. If None, uses default.
            enabled: Whether logging is enabled.
            retention_days: Runs older than this are deleted on startup.
        """
        self.enabled = enabled
        self._db: Optional[RunDatabase] = None

        if self.enabled:
            try:
                self._db = RunDatabase(db_path)
                self._db.initialize()
                self._db.cleanup_old_runs(retention_days)
            except Exception as e:
                logger.warning("Failed to initialize run logging: %s", e)
                self._db = None
                self.enabled = False

    @property
    def db(self) -> Optional[RunDatabase]:
        """Get the database instance."""
        return self._db

    def _get_environment_info(self) -> Dict[str, str]:
        return {
            "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
            "package_version": self._get_package_version(),
            "working_directory": os.getcwd(),
        }

    def _get_package_version(self) -> str:
        try:
            from importlib.metadata import version
            return version("warehouse-re")
        except Exception:
            return "unknown"

    @contextmanager
    def log_run(
        self,
        command: str,
        target: Optional[str] = None,
        schema_filter: Optional[List[str]] = None,
        arguments: Optional[Dict[str, Any]] = None,
    ):
        """Context manager for logging a run.

        Args:
            command: CLI command (e.g., 'data')
            target: Warehouse name
            schema_filter: Selected schemas
            arguments: Command arguments, secrets already redacted

        Yields:
            RunContext that can be updated during the run
        """
        ctx = RunContext(
            run_id=str(uuid.uuid4())[:8],
            command=command,
            target=target,
            schema_filter=schema_filter,
            arguments=arguments or {},
        )

        if not self.enabled or self._db is None:
            yield ctx
            return

        try:
            self._db.insert_run(
                run_id=ctx.run_id,
                command=command,
                target=target,
                schema_filter=schema_filter,
                arguments=arguments,
                **self._get_environment_info(),
            )
        except Exception as e:
            logger.warning("Failed to log run start: %s", e)

        try:
            yield ctx
        except Exception as e:
            duration_ms = int((time.time() - ctx.start_time) * 1000)
            try:
                self._db.update_error(
                    run_id=ctx.run_id,
                    error_message=str(e),
                    error_type=type(e).__name__,
                    error_code=error_code(e),
                    error_traceback=traceback.format_exc(),
                    duration_ms=duration_ms,
                )
            except Exception as log_err:
                logger.warning("Failed to log run error: %s", log_err)

            logger.debug("Run %s failed after %dms: %s", ctx.run_id, duration_ms, e)
            raise

        duration_ms = int((time.time() - ctx.start_time) * 1000)
        try:
            self._db.update_collection_results(
                run_id=ctx.run_id,
                schemas_count=ctx.schemas_count,
                tables_count=ctx.tables_count,
                views_count=ctx.views_count,
                documents_count=ctx.documents_count,
                warnings_count=ctx.warnings_count,
            )
            self._db.update_success(ctx.run_id, duration_ms)
        except Exception as e:
            logger.warning("Failed to update run results: %s", e)

        logger.debug("Run %s completed successfully in %dms", ctx.run_id, duration_ms)

    def query_runs(
        self,
        command: Optional[str] = None,
        status: Optional[str] = None,
        target: Optional[str] = None,
        since_hours: int = 24,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Query runs with optional filters."""
        if not self.enabled or not self._db:
            return []

        return self._db.query_runs(
            command=command,
            status=status,
            target=target,
            since_hours=since_hours,
            limit=limit,
        )

    def get_stats(self, since_hours: int = 24) -> Dict[str, Any]:
        """Get statistics about runs."""
        if not self.enabled or not self._db:
            return {"error": "Logging not enabled"}

        return self._db.get_stats(since_hours=since_hours)

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        """Get a specific run by ID."""
        if not self.enabled or not self._db:
            return None

        return self._db.get_run_by_id(run_id)


def log_run(
    command: str,
    target: Optional[str] = None,
    schema_filter: Optional[List[str]] = None,
    arguments: Optional[Dict[str, Any]] = None,
):
    """Convenience function to get a logging context manager.

    Example:
        with log_run("data", "bigquery", ["sales"]) as ctx:
            # Do work
            ctx.tables_count = 17
    """
    return get_run_logger().log_run(
        command=command,
        target=target,
        schema_filter=schema_filter,
        arguments=arguments,
    )
