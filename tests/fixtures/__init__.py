"""Test fixtures package."""

from .fake_warehouse import DoneRecorder, FakeMetadataHelper, FakeWarehouse, RecordingHostLogger

__all__ = [
    "DoneRecorder",
    "FakeMetadataHelper",
    "FakeWarehouse",
    "RecordingHostLogger",
]
