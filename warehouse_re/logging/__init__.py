"""Run logging module for warehouse-re.

Records reverse-engineering runs in a local SQLite database to help with
debugging and auditing.
"""

from warehouse_re.logging.run_db import RunDatabase, get_default_runs_db_path
from warehouse_re.logging.run_service import (
    RunContext,
    RunLogger,
    get_run_logger,
    log_run,
)

__all__ = [
    "RunDatabase",
    "get_default_runs_db_path",
    "RunContext",
    "RunLogger",
    "get_run_logger",
    "log_run",
]
