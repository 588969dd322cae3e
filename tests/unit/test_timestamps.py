from __future__ import annotations

import pytest

from logsync.core.timestamps import TimestampCodec, decode, encode, is_valid_offset, parse_offset
from logsync.errors import TimestampFormatError, TimestampParseError

# 2024-05-01T00:30:05.123456789Z
SAMPLE_NS = 1_714_523_405_123_456_789
SAMPLE_TOKYO = "2024-05-01T09:30:05.123456789+09:00"


def test_encode_renders_nine_fraction_digits_and_offset() -> None:
    assert encode(SAMPLE_NS, "+09:00") == SAMPLE_TOKYO
    assert encode(SAMPLE_NS, "+00:00") == "2024-05-01T00:30:05.123456789+00:00"
    assert encode(SAMPLE_NS, "-05:30") == "2024-04-30T19:00:05.123456789-05:30"


def test_encode_epoch_and_pre_epoch() -> None:
    assert encode(0, "+00:00") == "1970-01-01T00:00:00.000000000+00:00"
    assert encode(-1, "+00:00") == "1969-12-31T23:59:59.999999999+00:00"


def test_decode_uses_embedded_offset() -> None:
    assert decode(SAMPLE_TOKYO) == SAMPLE_NS
    assert decode("2024-05-01T00:30:05.123456789+00:00", "+09:00") == SAMPLE_NS
    assert decode("2024-04-30T19:00:05.123456789-05:30") == SAMPLE_NS


def test_decode_without_offset_uses_fallback() -> None:
    assert decode("2024-05-01T09:30:05.123456789", "+09:00") == SAMPLE_NS


def test_decode_preserves_sub_millisecond_digits() -> None:
    a = decode("2024-05-01T00:30:05.123456789+00:00")
    b = decode("2024-05-01T00:30:05.123456788+00:00")
    assert a - b == 1


@pytest.mark.parametrize(
    "value",
    [0, -1, 1, SAMPLE_NS, 1_700_000_000_999_999_999, -86_400_000_000_001],
)
@pytest.mark.parametrize("offset", ["+00:00", "+09:00", "-05:30", "+14:00"])
def test_decode_inverts_encode(value: int, offset: str) -> None:
    assert decode(encode(value, offset), offset) == value


@pytest.mark.parametrize(
    "text",
    [
        "not a timestamp",
        "2024-05-01T09:30:05.123+09:00",
        "2024-05-01 09:30:05.123456789+09:00",
        "2024-02-30T00:00:00.000000000+00:00",
        "2024-05-01T09:30:05.123456789+9:00",
        "2024-05-01T09:30:05.123456789Z",
        "",
    ],
)
def test_decode_rejects_malformed_strings(text: str) -> None:
    with pytest.raises(TimestampParseError):
        decode(text)


def test_decode_rejects_non_strings() -> None:
    with pytest.raises(TimestampParseError):
        decode(None)
    with pytest.raises(TimestampParseError):
        decode(SAMPLE_NS)


def test_timestamp_errors_are_value_errors() -> None:
    with pytest.raises(ValueError):
        decode("garbage")


def test_encode_rejects_bad_inputs() -> None:
    with pytest.raises(TimestampFormatError):
        encode(1.5, "+00:00")  # type: ignore[arg-type]
    with pytest.raises(TimestampFormatError):
        encode(True, "+00:00")  # type: ignore[arg-type]
    with pytest.raises(TimestampFormatError):
        encode(0, "UTC")
    with pytest.raises(TimestampFormatError):
        encode(10**30, "+00:00")


def test_parse_offset() -> None:
    assert parse_offset("+00:00") == 0
    assert parse_offset("+09:00") == 9 * 3600 * 10**9
    assert parse_offset("-05:30") == -(5 * 3600 + 30 * 60) * 10**9
    assert is_valid_offset("+09:00")
    assert not is_valid_offset("09:00")
    with pytest.raises(TimestampParseError):
        parse_offset("+0900")


class TestTimestampCodec:
    """Codec bound to a destination offset."""

    def test_round_trip(self) -> None:
        codec = TimestampCodec("+09:00")
        assert codec.encode(SAMPLE_NS) == SAMPLE_TOKYO
        assert codec.decode(SAMPLE_TOKYO) == SAMPLE_NS

    def test_rejects_invalid_offset(self) -> None:
        with pytest.raises(TimestampParseError):
            TimestampCodec("JST")

    def test_try_decode(self, caplog: pytest.LogCaptureFixture) -> None:
        codec = TimestampCodec("+09:00")
        assert codec.try_decode(SAMPLE_TOKYO) == SAMPLE_NS
        assert codec.try_decode("") is None
        assert codec.try_decode(None) is None
        assert codec.try_decode("yesterday") is None
        assert "Skipping unparsable stored timestamp" in caplog.text
