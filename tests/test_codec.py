import pytest

from tvsync.errors import FormatError, UnknownKeyError
from tvsync.services.codec import (
    VIDEO_FORMAT_1080P,
    decode_ratings,
    decode_video_info,
    encode_ratings,
    encode_video_info,
    video_format_for_height,
)
from tvsync.services.sync_types import Rating, VideoSourceType


def test_encode_video_info_joins_tag_and_url():
    assert encode_video_info(VideoSourceType.HLS, "http://cdn.test/a.m3u8") == "2,http://cdn.test/a.m3u8"
    assert encode_video_info(VideoSourceType.MPEG_DASH, "http://cdn.test/a.mpd") == "0,http://cdn.test/a.mpd"


@pytest.mark.parametrize("source_type", list(VideoSourceType))
def test_video_info_round_trip(source_type):
    url = "http://cdn.test/video.mp4?a=1,2,3"

    assert decode_video_info(encode_video_info(source_type, url)) == (source_type, url)


def test_decode_video_info_splits_on_first_comma_only():
    source_type, url = decode_video_info("3,http://cdn.test/x,y,z")

    assert source_type is VideoSourceType.HTTP_PROGRESSIVE
    assert url == "http://cdn.test/x,y,z"


def test_decode_video_info_keeps_empty_url():
    assert decode_video_info("2,") == (VideoSourceType.HLS, "")


@pytest.mark.parametrize("value", ["", "2", "http://cdn.test/no-tag", "abc,http://cdn.test", "7,http://cdn.test"])
def test_decode_video_info_rejects_malformed_values(value):
    with pytest.raises(FormatError):
        decode_video_info(value)


def test_format_error_is_a_value_error():
    with pytest.raises(ValueError):
        decode_video_info("no delimiter")


def test_encode_ratings_preserves_order():
    ratings = [
        Rating("com.android.tv", "US_TV", "US_TV_PG", ("US_TV_D", "US_TV_L")),
        Rating("com.android.tv", "US_MV", "US_MV_R"),
    ]

    assert encode_ratings(ratings) == (
        "com.android.tv/US_TV/US_TV_PG/US_TV_D/US_TV_L,com.android.tv/US_MV/US_MV_R"
    )


@pytest.mark.parametrize("ratings", [None, []])
def test_encode_ratings_returns_none_when_empty(ratings):
    assert encode_ratings(ratings) is None


@pytest.mark.parametrize("value", [None, ""])
def test_decode_ratings_returns_none_when_empty(value):
    assert decode_ratings(value) is None


def test_ratings_round_trip():
    ratings = [
        Rating("com.android.tv", "DVB", "DVB_12"),
        Rating("com.android.tv", "US_TV", "US_TV_14", ("US_TV_V",)),
    ]

    assert decode_ratings(encode_ratings(ratings)) == ratings


def test_decode_ratings_tolerates_whitespace_around_commas():
    decoded = decode_ratings("com.android.tv/US_TV/US_TV_G , com.android.tv/US_MV/US_MV_PG")

    assert [rating.rating for rating in decoded] == ["US_TV_G", "US_MV_PG"]


def test_decode_ratings_propagates_descriptor_errors():
    with pytest.raises(UnknownKeyError):
        decode_ratings("com.android.tv/US_TV/US_TV_G,broken")


def test_video_format_for_height():
    assert video_format_for_height(1080) == VIDEO_FORMAT_1080P
    assert video_format_for_height(1000) is None
    assert video_format_for_height(None) is None
