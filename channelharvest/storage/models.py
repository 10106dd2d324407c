"""
Channel table model.

One row per canonical stream URL; the sink upserts on ``stream_key``.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from channelharvest.models import ChannelRecord
from channelharvest.utils.text import (
    LABEL_MAX,
    NAME_MAX,
    PLACE_MAX,
    SHORT_MAX,
    URL_MAX,
    WEB_URL_MAX,
    sanitize,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class ChannelRow(Base, TimestampMixin):
    """Harvested radio station or TV channel."""

    __tablename__ = "harvested_channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_key: Mapped[str] = mapped_column(String(URL_MAX), unique=True, index=True, nullable=False)

    name: Mapped[str] = mapped_column(String(NAME_MAX), nullable=False)
    stream_url: Mapped[str] = mapped_column(String(URL_MAX), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default="tv")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(LABEL_MAX), default="Mixed")
    country: Mapped[str] = mapped_column(String(PLACE_MAX), default="Unknown")
    language: Mapped[str] = mapped_column(String(PLACE_MAX), default="Unknown")

    # Inline SVG fallbacks can exceed a URL column
    logo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quality: Mapped[Optional[str]] = mapped_column(String(SHORT_MAX), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    source: Mapped[str] = mapped_column(String(SHORT_MAX), nullable=False)
    playlist_source: Mapped[Optional[str]] = mapped_column(String(LABEL_MAX), nullable=True)
    website_url: Mapped[Optional[str]] = mapped_column(String(WEB_URL_MAX), nullable=True)
    epg_url: Mapped[Optional[str]] = mapped_column(String(URL_MAX), nullable=True)
    extra: Mapped[Optional[dict[str, Any]]] = mapped_column("metadata", JSON, nullable=True)

    def apply(self, record: ChannelRecord) -> None:
        """Copy record fields onto the row."""
        self.stream_key = record.stream_key
        self.name = sanitize(record.name, NAME_MAX, default="Unknown")
        self.stream_url = record.stream_url
        self.kind = record.kind.value
        self.description = record.description or None
        self.category = sanitize(record.category, LABEL_MAX, default="Mixed")
        self.country = sanitize(record.country, PLACE_MAX, default="Unknown")
        self.language = sanitize(record.language, PLACE_MAX, default="Unknown")
        self.logo_url = record.logo_url or None
        self.quality = sanitize(record.quality, SHORT_MAX) or None
        self.is_active = record.is_active
        self.source = record.source.value
        self.playlist_source = sanitize(record.playlist_source, LABEL_MAX) or None
        self.website_url = sanitize(record.website_url, WEB_URL_MAX) or None
        self.epg_url = sanitize(record.epg_url, URL_MAX) or None
        self.extra = _json_safe(record.metadata)

    def __repr__(self) -> str:
        return f"<ChannelRow(id={self.id}, name='{self.name}', source='{self.source}')>"


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
