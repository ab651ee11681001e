from pydantic import BaseModel, Field, field_validator

from tvsync.services.sync_types import INT32_MAX, INT32_MIN, INVALID_CHANNEL_ID, Channel, Program


class ChannelIn(BaseModel):
    """Desired channel supplied by a client"""
    display_number: str = Field(..., min_length=1, description="Number shown to viewers (e.g. '7-1')")
    display_name: str = Field(..., min_length=1, description="Display name of the channel")
    original_network_id: int = Field(..., ge=INT32_MIN, le=INT32_MAX, description="Originating network ID, unique within the input")
    id: int = Field(INVALID_CHANNEL_ID, description="Catalog row ID if already known, -1 otherwise")
    package_name: str | None = Field(None, description="Owner package, defaults to the service package")
    type: str | None = Field(None, description="Channel type, defaults to TYPE_OTHER")
    logo_url: str | None = Field(None, description="URL of the channel logo")
    description: str | None = None
    transport_stream_id: int | None = Field(None, ge=INT32_MIN, le=INT32_MAX)
    service_id: int | None = Field(None, ge=INT32_MIN, le=INT32_MAX)
    video_format: str | None = None
    internal_provider_data: str | None = None

    @field_validator("logo_url")
    @classmethod
    def validate_logo_url(cls, v: str | None) -> str | None:
        """Logo URLs are fetched over HTTP(S)"""
        if v and not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"Logo URL must be HTTP/HTTPS: {v}")
        return v or None

    def to_channel(self) -> Channel:
        return Channel(**self.model_dump())


class ChannelListRequest(BaseModel):
    """Full desired channel list of an input source"""
    channels: list[ChannelIn] = Field(..., description="Desired channels; an empty list removes every channel")

    @field_validator("channels")
    @classmethod
    def validate_unique_network_ids(cls, v: list[ChannelIn]) -> list[ChannelIn]:
        """Original network IDs identify channels and must not repeat"""
        seen: set[int] = set()
        for channel in v:
            if channel.original_network_id in seen:
                raise ValueError(f"Duplicate original_network_id: {channel.original_network_id}")
            seen.add(channel.original_network_id)
        return v


class ChannelResponse(BaseModel):
    """Catalog channel"""
    id: int
    input_id: str | None
    original_network_id: int
    display_number: str
    display_name: str
    package_name: str | None
    type: str | None
    logo_url: str | None
    description: str | None = None
    video_format: str | None = None

    @classmethod
    def from_channel(cls, channel: Channel) -> "ChannelResponse":
        return cls(
            id=channel.id,
            input_id=channel.input_id,
            original_network_id=channel.original_network_id,
            display_number=channel.display_number,
            display_name=channel.display_name,
            package_name=channel.package_name,
            type=channel.type,
            logo_url=channel.logo_url,
            description=channel.description,
            video_format=channel.video_format,
        )


class ProgramResponse(BaseModel):
    """Single program data"""
    id: int | None
    channel_id: int | None
    title: str
    description: str | None
    start_time: str = Field(..., description="ISO8601 UTC start time (inclusive)")
    end_time: str = Field(..., description="ISO8601 UTC end time (exclusive)")
    poster_art_url: str | None = None
    content_ratings: list[str] = Field(default_factory=list, description="Flattened rating descriptors")
    video_source_type: str | None = None
    video_url: str | None = None

    @classmethod
    def from_program(cls, program: Program) -> "ProgramResponse":
        return cls(
            id=program.id,
            channel_id=program.channel_id,
            title=program.title,
            description=program.description,
            start_time=program.start_time.isoformat(),
            end_time=program.end_time.isoformat(),
            poster_art_url=program.poster_art_url,
            content_ratings=[rating.flatten() for rating in program.content_ratings],
            video_source_type=program.video_source_type.name if program.video_source_type is not None else None,
            video_url=program.video_url,
        )


class MutationResponse(BaseModel):
    kind: str
    row_id: int
    original_network_id: int | None


class ReconcileResponse(BaseModel):
    """Outcome of a reconciliation pass"""
    input_id: str
    inserted: int
    updated: int
    deleted: int
    logos_queued: int
    mutations: list[MutationResponse]


class ChannelMapEntry(BaseModel):
    row_id: int
    channel: ChannelIn


class ChannelMapResponse(BaseModel):
    """Catalog row IDs resolved to the posted channels; null when the input has no rows"""
    input_id: str
    entries: list[ChannelMapEntry] | None
