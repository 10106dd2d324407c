"""
Test Fixtures

Record factories and canned directory responses.
"""

from .factories import ChannelRecordFactory, ConfigFactory

__all__ = [
    "ChannelRecordFactory",
    "ConfigFactory",
]
