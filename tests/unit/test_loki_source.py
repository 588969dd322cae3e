from __future__ import annotations

import json
from typing import Callable, List

import httpx
import pytest

from conftest import TIMESTAMP_COLUMN
from logsync.config import Settings
from logsync.domain.models import NumberValue, StringValue, TimeRange
from logsync.errors import ConfigError, RecordParseError, SourceFetchError
from logsync.source.loki import LokiSource, extract_entries, parse_entries, parse_entry

WINDOW = TimeRange(start_seconds=1_714_523_000, end_seconds=1_714_530_000)


def _success(*streams: List[List[str]]) -> dict:
    return {
        "status": "success",
        "data": {
            "resultType": "streams",
            "result": [{"stream": {"job": "app"}, "values": values} for values in streams],
        },
    }


def _source(settings: Settings, handler: Callable[[httpx.Request], httpx.Response]) -> LokiSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return LokiSource(settings, client=client)


class TestLokiSource:
    """HTTP behaviour of the Loki source."""

    def test_query_range_request(self, settings: Settings) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_success([["1", "{}"]]))

        entries = _source(settings, handler).fetch_entries(WINDOW)

        assert entries == [["1", "{}"]]
        request = seen[0]
        assert request.method == "GET"
        assert request.url.host == "loki.test"
        assert request.url.path == "/loki/api/v1/query_range"
        assert request.url.params["query"] == '{job="app"}'
        assert request.url.params["start"] == str(WINDOW.start_ns)
        assert request.url.params["limit"] == "1000"
        assert request.url.params["direction"] == "forward"
        assert "end" not in request.url.params
        assert "authorization" not in request.headers

    def test_endpoint_with_api_prefix_is_normalized(self, settings: Settings) -> None:
        settings = settings.model_copy(update={"loki_endpoint": "http://loki.test/loki/api/v1/"})
        source = LokiSource(settings, client=httpx.Client())
        assert source.url == "http://loki.test/loki/api/v1/query_range"

    def test_basic_auth_wins_over_api_key(self, settings: Settings) -> None:
        settings = settings.model_copy(
            update={"loki_username": "reader", "loki_password": "secret", "loki_api_key": "tok"}
        )
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_success())

        _source(settings, handler).fetch_entries(WINDOW)

        assert seen[0].headers["authorization"].startswith("Basic ")

    def test_bearer_token(self, settings: Settings) -> None:
        settings = settings.model_copy(update={"loki_api_key": "tok"})
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_success())

        _source(settings, handler).fetch_entries(WINDOW)

        assert seen[0].headers["authorization"] == "Bearer tok"

    def test_http_error_status(self, settings: Settings) -> None:
        source = _source(settings, lambda request: httpx.Response(502, text="bad gateway"))

        with pytest.raises(SourceFetchError) as excinfo:
            source.fetch_entries(WINDOW)
        assert excinfo.value.details["status_code"] == 502

    def test_non_success_body(self, settings: Settings) -> None:
        body = {"status": "error", "error": "parse error at line 1"}
        source = _source(settings, lambda request: httpx.Response(200, json=body))

        with pytest.raises(SourceFetchError, match="parse error"):
            source.fetch_entries(WINDOW)

    def test_non_json_body(self, settings: Settings) -> None:
        source = _source(settings, lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(SourceFetchError):
            source.fetch_entries(WINDOW)

    def test_transport_failure(self, settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SourceFetchError, match="connection refused"):
            _source(settings, handler).fetch_entries(WINDOW)

    def test_requires_endpoint_and_query(self, settings: Settings) -> None:
        with pytest.raises(ConfigError):
            LokiSource(settings.model_copy(update={"base_query": None}))

    def test_close_leaves_injected_client_open(self, settings: Settings) -> None:
        client = httpx.Client()
        LokiSource(settings, client=client).close()
        assert not client.is_closed
        client.close()


def test_extract_entries_flattens_streams() -> None:
    body = _success([["1", "a"], ["3", "c"]], [["2", "b"]])
    assert extract_entries(body) == [["1", "a"], ["3", "c"], ["2", "b"]]


def test_extract_entries_requires_result_list() -> None:
    with pytest.raises(SourceFetchError):
        extract_entries({"status": "success", "data": {}})


class TestParse:
    """Turning `[ns, line]` pairs into records."""

    def test_parse_entry_injects_timestamp(self) -> None:
        line = json.dumps({"metric_name": "cpu", "value": 1, "_timestamp": "spoofed"})
        record = parse_entry(["1714523405000000001", line], TIMESTAMP_COLUMN)

        assert record.timestamp_ns == 1_714_523_405_000_000_001
        assert record.payload["metric_name"] == StringValue(value="cpu")
        assert record.payload["value"] == NumberValue(value=1)
        assert TIMESTAMP_COLUMN not in record.payload

    @pytest.mark.parametrize(
        "entry",
        [
            ["1", "not json"],
            ["1", "[1, 2]"],
            ["soon", "{}"],
            ["1"],
            "1 {}",
        ],
    )
    def test_parse_entry_rejects(self, entry) -> None:
        with pytest.raises(RecordParseError):
            parse_entry(entry, TIMESTAMP_COLUMN)

    def test_parse_entries_drops_bad_lines_and_orders(self, caplog: pytest.LogCaptureFixture) -> None:
        entries = [
            ["3", json.dumps({"metric_name": "cpu", "n": 1})],
            ["2", "oops"],
            ["1", json.dumps({"metric_name": "mem"})],
            ["3", json.dumps({"metric_name": "cpu", "n": 2})],
        ]

        records = parse_entries(entries, TIMESTAMP_COLUMN)

        assert [r.timestamp_ns for r in records] == [1, 3, 3]
        assert [r.payload["n"].value for r in records[1:]] == [1, 2]
        assert "Skipping log entry" in caplog.text
