"""Persistence sinks for harvested channels."""

from channelharvest.storage.sink import ChannelSink, MemorySink, UpsertResult


def __getattr__(name):
    """Lazy import so dry runs do not load SQLAlchemy."""
    if name == "DatabaseSink":
        from channelharvest.storage.database import DatabaseSink
        return DatabaseSink
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["ChannelSink", "DatabaseSink", "MemorySink", "UpsertResult"]
