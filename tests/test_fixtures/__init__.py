"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .executor_factory import build_executor
from .query_factory import FakeQuery, SamplePost, sample_rows
from .store_factory import FakeClock, StoreTestFactory

__all__ = ["FakeClock", "FakeQuery", "SamplePost", "StoreTestFactory", "build_executor", "sample_rows"]
