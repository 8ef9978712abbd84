"""Test fixtures module."""

from tests.fixtures.fake_engine import FakeEngineManager

__all__ = ["FakeEngineManager"]
