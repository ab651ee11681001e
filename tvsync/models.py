"""
SQLAlchemy ORM Models for the channel catalog

This module defines the database models for channels and programs.
"""
from datetime import datetime, timezone
from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


class ChannelRecord(Base):
    """Catalog row for a channel owned by one input source"""
    __tablename__ = "channels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    input_id: Mapped[str] = mapped_column(String, nullable=False)
    original_network_id: Mapped[int] = mapped_column(Integer, nullable=False)
    transport_stream_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    service_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    display_number: Mapped[str] = mapped_column(String, nullable=False)
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    video_format: Mapped[str | None] = mapped_column(String, nullable=True)
    package_name: Mapped[str] = mapped_column(String, nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    internal_provider_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("input_id", "original_network_id", name="uq_channel_input_network"),
        Index("idx_channels_input", "input_id"),
        # Row IDs are never reused, logo slots are keyed on them
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<ChannelRecord(id={self.id}, input_id={self.input_id}, "
            f"original_network_id={self.original_network_id}, display_number={self.display_number})>"
        )


class ProgramRecord(Base):
    """Guide entry stored for a channel"""
    __tablename__ = "programs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    poster_art_url: Mapped[str | None] = mapped_column(String, nullable=True)
    content_rating: Mapped[str | None] = mapped_column(String, nullable=True)
    internal_provider_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("idx_programs_channel_time", "channel_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<ProgramRecord(id={self.id}, title={self.title}, channel={self.channel_id})>"
