"""Shared helpers: logging setup, platform URL detection, text sanitizing."""

from channelharvest.utils.logging_setup import setup_logging

__all__ = ["setup_logging"]
