"""Test helpers shared across modules."""
from datetime import datetime, timedelta, timezone

from tvsync.errors import QueryFailure
from tvsync.services.sync_types import Channel


INPUT_ID = "com.example.tuner/.TunerInput"


def utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 1, 1, hour, minute, tzinfo=timezone.utc)


def make_channel(network_id: int, number: str | None = None, name: str | None = None, **kwargs) -> Channel:
    return Channel(
        display_number=number or str(network_id),
        display_name=name or f"Channel {network_id}",
        original_network_id=network_id,
        **kwargs,
    )


class BrokenStore:
    """Catalog store whose every call fails; records attempted writes."""

    def __init__(self):
        self.writes: list[str] = []

    async def query_channels(self, input_id=None, columns=None):
        raise QueryFailure("catalog unavailable")

    async def query_programs(self, channel_id):
        raise QueryFailure("catalog unavailable")

    async def insert_channel(self, fields):
        self.writes.append("insert")
        raise QueryFailure("catalog unavailable")

    async def update_channel(self, row_id, fields):
        self.writes.append("update")
        raise QueryFailure("catalog unavailable")

    async def delete_channel(self, row_id):
        self.writes.append("delete")
        raise QueryFailure("catalog unavailable")


def lineup_feed(channels: list[tuple[str, int, str]], start: datetime) -> bytes:
    """XMLTV lineup with one two-hour program per (feed id, network id, name) channel."""
    begin = start.strftime("%Y%m%d%H%M%S +0000")
    end = (start + timedelta(hours=2)).strftime("%Y%m%d%H%M%S +0000")
    parts = ["<tv>"]
    for position, (feed_id, network_id, name) in enumerate(channels, start=1):
        parts.append(
            f'<channel id="{feed_id}" original-network-id="{network_id}">'
            f"<display-name>{name}</display-name>"
            f"<display-number>{position}</display-number>"
            f'<icon src="http://logos.test/{feed_id}.png"/>'
            "</channel>"
        )
    for feed_id, _, name in channels:
        parts.append(
            f'<programme channel="{feed_id}" start="{begin}" stop="{end}">'
            f"<title>{name} Live</title>"
            "</programme>"
        )
    parts.append("</tv>")
    return "".join(parts).encode("utf-8")
