"""
Catalog store operations

This module contains all database CRUD operations for channels and programs.
Every SQLAlchemy error, and any value the driver cannot bind, is surfaced as QueryFailure so callers can decide
whether a failure is fatal (write path) or degradable (read path).
"""
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, cast

from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tvsync.errors import QueryFailure
from tvsync.models import ChannelRecord, ProgramRecord
from tvsync.services.codec import encode_ratings, encode_video_info
from tvsync.services.sync_types import Program


logger = logging.getLogger(__name__)


class CatalogStore(Protocol):
    """Keyed store reached by the index builder, reconciler and lookups."""

    async def query_channels(
        self,
        input_id: str | None = None,
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]: ...

    async def insert_channel(self, fields: dict[str, Any]) -> int: ...

    async def update_channel(self, row_id: int, fields: dict[str, Any]) -> int: ...

    async def delete_channel(self, row_id: int) -> int: ...

    async def query_programs(self, channel_id: int) -> list[dict[str, Any]]: ...


def _as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _rowcount(result) -> int:
    rowcount = cast(CursorResult, result).rowcount
    return rowcount if rowcount and rowcount > 0 else 0


class SqlCatalogStore:
    """CatalogStore backed by an async SQLAlchemy session.

    The session's transaction is owned by the caller (see session_scope).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def query_channels(
        self,
        input_id: str | None = None,
        columns: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Read channel rows, optionally scoped to one input and projected.

        Args:
            input_id: Partition to read; None reads every input
            columns: Column names to return; None returns all columns

        Returns:
            List of column-name -> value mappings ordered by row id

        Raises:
            QueryFailure: If the projection is invalid or the query fails
        """
        table = ChannelRecord.__table__
        names = list(columns) if columns else [column.name for column in table.columns]
        unknown = [name for name in names if name not in table.c]
        if unknown:
            raise QueryFailure(f"Unknown channel columns in projection: {unknown}")

        stmt = select(*(table.c[name] for name in names)).order_by(table.c.id)
        if input_id is not None:
            stmt = stmt.where(table.c.input_id == input_id)

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise QueryFailure(f"Channel query failed for input {input_id!r}: {exc}") from exc

        return [dict(row) for row in result.mappings().all()]

    async def insert_channel(self, fields: dict[str, Any]) -> int:
        """Insert a channel row and return its store-assigned identifier."""
        try:
            result = await self.session.execute(ChannelRecord.__table__.insert().values(**fields))
        except (SQLAlchemyError, OverflowError) as exc:
            raise QueryFailure(f"Channel insert failed: {exc}") from exc
        row_id = result.inserted_primary_key[0]
        logger.debug("Inserted channel row %s (%s)", row_id, fields.get("display_name"))
        return row_id

    async def update_channel(self, row_id: int, fields: dict[str, Any]) -> int:
        """Update a channel row in place; returns the affected row count."""
        stmt = update(ChannelRecord).where(ChannelRecord.id == row_id).values(**fields)
        try:
            result = await self.session.execute(stmt)
        except (SQLAlchemyError, OverflowError) as exc:
            raise QueryFailure(f"Channel update failed for row {row_id}: {exc}") from exc
        return _rowcount(result)

    async def delete_channel(self, row_id: int) -> int:
        """Delete a channel row (programs cascade); returns the affected row count."""
        stmt = delete(ChannelRecord).where(ChannelRecord.id == row_id)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise QueryFailure(f"Channel delete failed for row {row_id}: {exc}") from exc
        return _rowcount(result)

    async def query_programs(self, channel_id: int) -> list[dict[str, Any]]:
        """Read a channel's programs in chronological order."""
        table = ProgramRecord.__table__
        stmt = (
            select(table)
            .where(table.c.channel_id == channel_id)
            .order_by(table.c.start_time)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise QueryFailure(f"Program query failed for channel {channel_id}: {exc}") from exc

        rows = []
        for row in result.mappings().all():
            values = dict(row)
            values["start_time"] = _as_utc(values["start_time"])
            values["end_time"] = _as_utc(values["end_time"])
            rows.append(values)
        return rows

    async def replace_programs(self, channel_id: int, programs: Sequence[Program]) -> int:
        """
        Replace the stored guide data of a channel.

        Args:
            channel_id: Catalog row identifier of the channel
            programs: Programs to store; ratings and video info are flattened

        Returns:
            Number of programs inserted
        """
        payload = []
        now = datetime.now(timezone.utc)
        for program in programs:
            video_info = None
            if program.video_source_type is not None and program.video_url:
                video_info = encode_video_info(program.video_source_type, program.video_url)
            payload.append(
                {
                    "channel_id": channel_id,
                    "title": program.title,
                    "description": program.description,
                    "start_time": _as_utc(program.start_time),
                    "end_time": _as_utc(program.end_time),
                    "poster_art_url": program.poster_art_url,
                    "content_rating": encode_ratings(program.content_ratings),
                    "internal_provider_data": video_info,
                    "created_at": now,
                }
            )

        try:
            await self.session.execute(
                delete(ProgramRecord).where(ProgramRecord.channel_id == channel_id)
            )
            if payload:
                await self.session.execute(ProgramRecord.__table__.insert(), payload)
        except SQLAlchemyError as exc:
            raise QueryFailure(f"Program replace failed for channel {channel_id}: {exc}") from exc

        logger.debug("Stored %s programs for channel %s", len(payload), channel_id)
        return len(payload)


class LogoStore:
    """Blob slots for channel logos, one file per catalog row."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, row_id: int) -> Path:
        return self.directory / f"channel_{row_id}.logo"

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def remove(self, row_id: int) -> bool:
        """Drop the logo of a deleted channel, if one was stored."""
        path = self.path_for(row_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Failed to delete logo %s: %s", path, exc)
            return False
        return True
