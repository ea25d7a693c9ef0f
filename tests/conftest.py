"""Shared pytest fixtures for warehouse-re tests."""

import pytest

from warehouse_re.api import Orchestrator
from warehouse_re.logging import RunLogger
from warehouse_re.logging import run_service
from warehouse_re.sampling import SamplingMode, SamplingSettings
from warehouse_re.warehouses import ColumnInfo

from .fixtures import DoneRecorder, FakeMetadataHelper, FakeWarehouse, RecordingHostLogger


def _rows(count, **extra):
    return [{"id": i, "name": f"row-{i}", **extra} for i in range(count)]


@pytest.fixture
def warehouse():
    """Two schemas, each with one five-row table."""
    fake = FakeWarehouse()
    fake.add_table("sales", "orders", _rows(5), columns=[
        ColumnInfo(name="id", data_type="INT64", mode="REQUIRED", is_nullable=False),
        ColumnInfo(name="name", data_type="STRING"),
    ])
    fake.add_table("marketing", "campaigns", _rows(5))
    return fake


@pytest.fixture
def orchestrator(warehouse):
    """Orchestrator whose helper factory opens the fake warehouse."""
    return Orchestrator(helper_factory=lambda info: FakeMetadataHelper(warehouse), fail_fast=False)


@pytest.fixture
def host_logger():
    return RecordingHostLogger()


@pytest.fixture
def done():
    return DoneRecorder()


@pytest.fixture
def full_sampling():
    """Sample every row."""
    return SamplingSettings(mode=SamplingMode.RELATIVE, relative=100)


@pytest.fixture
def run_logger(tmp_path, monkeypatch):
    """Global run logger backed by a temporary database."""
    logger = RunLogger(db_path=str(tmp_path / "runs.db"))
    monkeypatch.setattr(run_service, "_run_logger", logger)
    yield logger
    if logger.db:
        logger.db.close()
