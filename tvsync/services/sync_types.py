"""
Shared dataclasses used across the channel sync pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Literal

from tvsync.errors import UnknownKeyError


INVALID_CHANNEL_ID = -1
TYPE_OTHER = "TYPE_OTHER"
DEFAULT_RATING_DOMAIN = "com.android.tv"

# Broadcast stream identifiers are 32-bit signed integers
INT32_MIN = -2**31
INT32_MAX = 2**31 - 1

# Columns written by the reconciler; ``id`` is owned by the store
CHANNEL_FIELDS = (
    "input_id",
    "original_network_id",
    "transport_stream_id",
    "service_id",
    "display_number",
    "display_name",
    "description",
    "type",
    "video_format",
    "package_name",
    "logo_url",
    "internal_provider_data",
)


class VideoSourceType(IntEnum):
    """Playback protocol of a program's video source."""
    MPEG_DASH = 0
    HLS = 2
    HTTP_PROGRESSIVE = 3


@dataclass(slots=True, frozen=True)
class Rating:
    """Content rating such as ``com.android.tv/US_TV/US_TV_PG/US_TV_D``."""
    domain: str
    rating_system: str
    rating: str
    sub_ratings: tuple[str, ...] = ()

    def flatten(self) -> str:
        return "/".join((self.domain, self.rating_system, self.rating, *self.sub_ratings))

    @classmethod
    def unflatten(cls, value: str) -> "Rating":
        parts = value.split("/")
        if len(parts) < 3 or not all(parts[:3]):
            raise UnknownKeyError(f"Invalid rating descriptor: {value!r}")
        return cls(
            domain=parts[0],
            rating_system=parts[1],
            rating=parts[2],
            sub_ratings=tuple(parts[3:]),
        )


@dataclass(slots=True)
class Channel:
    """Desired state of a channel as supplied by a lineup feed."""
    display_number: str
    display_name: str
    original_network_id: int
    id: int = INVALID_CHANNEL_ID
    input_id: str | None = None
    package_name: str | None = None
    type: str | None = None
    logo_url: str | None = None
    description: str | None = None
    transport_stream_id: int | None = None
    service_id: int | None = None
    video_format: str | None = None
    internal_provider_data: str | None = None

    def to_fields(self) -> dict[str, Any]:
        """Column values for a catalog write, without the row identifier."""
        return {name: getattr(self, name) for name in CHANNEL_FIELDS}

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Channel":
        return cls(
            id=row.get("id", INVALID_CHANNEL_ID),
            display_number=row["display_number"],
            display_name=row["display_name"],
            original_network_id=row["original_network_id"],
            input_id=row.get("input_id"),
            package_name=row.get("package_name"),
            type=row.get("type"),
            logo_url=row.get("logo_url"),
            description=row.get("description"),
            transport_stream_id=row.get("transport_stream_id"),
            service_id=row.get("service_id"),
            video_format=row.get("video_format"),
            internal_provider_data=row.get("internal_provider_data"),
        )


@dataclass(slots=True)
class Program:
    """Guide entry for a single channel; ``[start_time, end_time)``."""
    title: str
    start_time: datetime
    end_time: datetime
    channel_id: int | None = None
    id: int | None = None
    description: str | None = None
    poster_art_url: str | None = None
    content_ratings: list[Rating] = field(default_factory=list)
    video_source_type: VideoSourceType | None = None
    video_url: str | None = None
    # Feed channel reference, only set while parsing
    feed_channel_id: str | None = None

    def is_airing(self, now: datetime) -> bool:
        return self.start_time <= now < self.end_time


MutationKind = Literal["insert", "update", "delete"]


@dataclass(slots=True, frozen=True)
class Mutation:
    """One catalog write issued by a reconciliation pass."""
    kind: MutationKind
    row_id: int
    original_network_id: int | None = None


@dataclass(slots=True)
class ReconcileResult:
    """Outcome of one reconciliation pass."""
    input_id: str
    mutations: list[Mutation] = field(default_factory=list)
    logo_queue: list[tuple[int, str]] = field(default_factory=list)
    # original_network_id -> row id after the pass
    row_ids: dict[int, int] = field(default_factory=dict)

    def _count(self, kind: MutationKind) -> int:
        return sum(1 for mutation in self.mutations if mutation.kind == kind)

    @property
    def inserted(self) -> int:
        return self._count("insert")

    @property
    def updated(self) -> int:
        return self._count("update")

    @property
    def deleted(self) -> int:
        return self._count("delete")

    def to_dict(self) -> dict:
        return {
            "input_id": self.input_id,
            "inserted": self.inserted,
            "updated": self.updated,
            "deleted": self.deleted,
            "logos_queued": len(self.logo_queue),
        }


__all__ = [
    "CHANNEL_FIELDS",
    "DEFAULT_RATING_DOMAIN",
    "INT32_MAX",
    "INT32_MIN",
    "INVALID_CHANNEL_ID",
    "TYPE_OTHER",
    "Channel",
    "Mutation",
    "MutationKind",
    "Program",
    "Rating",
    "ReconcileResult",
    "VideoSourceType",
]
