"""Test helper utilities for the invigilation duty notifier tests."""

from .store import load_store_fixture, read_assignment, seed_store
from .transport import RecordingTransport, make_app_config

__all__ = [
    "RecordingTransport",
    "load_store_fixture",
    "make_app_config",
    "read_assignment",
    "seed_store",
]
