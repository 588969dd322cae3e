"""
Grafana Loki log source.

Queries `/loki/api/v1/query_range` forward in time from the window start, with
no end bound, and turns each `[epoch_ns, line]` pair into a LogRecord. Lines
are expected to be JSON objects; the pair's timestamp is injected into the
record as the reserved timestamp column.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from logsync.config import Settings
from logsync.domain.models import LogRecord, TimeRange
from logsync.errors import ConfigError, RecordParseError, SourceFetchError
from logsync.utils.logging import get_logger

log = get_logger(__name__)

QUERY_RANGE_PATH = "/loki/api/v1/query_range"

Entry = Tuple[str, str]


def parse_entry(entry: Sequence[Any], timestamp_column: str) -> LogRecord:
    """
    Build a record from one `[epoch_ns_string, line]` pair.

    Raises
    ------
    RecordParseError
        If the pair is malformed, the timestamp is not an integer or the line
        is not a JSON object.
    """
    if not isinstance(entry, (list, tuple)) or len(entry) < 2:
        raise RecordParseError(f"Malformed stream value: {entry!r}")
    raw_ts, line = entry[0], entry[1]
    try:
        timestamp_ns = int(raw_ts)
    except (TypeError, ValueError) as exc:
        raise RecordParseError(f"Invalid entry timestamp {raw_ts!r}") from exc
    try:
        payload = json.loads(line)
    except (TypeError, ValueError) as exc:
        raise RecordParseError(f"Log line is not JSON: {exc}", details={"line": line}) from exc
    if not isinstance(payload, dict):
        raise RecordParseError("Log line is not a JSON object", details={"line": line})
    return LogRecord.from_payload(payload, timestamp_ns, timestamp_column)


def parse_entries(entries: Sequence[Sequence[Any]], timestamp_column: str) -> List[LogRecord]:
    """Parse entries, dropping the ones that fail, ordered by timestamp."""
    records: List[LogRecord] = []
    for entry in entries:
        try:
            records.append(parse_entry(entry, timestamp_column))
        except RecordParseError as exc:
            log.warning(f"Skipping log entry: {exc.message}", extra=exc.details)
    # streams are each ordered; merge them into one timeline (stable)
    records.sort(key=lambda r: r.timestamp_ns)
    return records


def extract_entries(body: Dict[str, Any]) -> List[Entry]:
    """Flatten the streams of a successful query_range response."""
    if body.get("status") != "success":
        raise SourceFetchError(
            f"Loki returned status {body.get('status')!r}: {body.get('error') or body.get('message')}",
            details={"status": body.get("status")},
        )
    data = body.get("data") or {}
    streams = data.get("result")
    if not isinstance(streams, list):
        raise SourceFetchError("Loki response has no data.result list")
    entries: List[Entry] = []
    for stream in streams:
        if isinstance(stream, dict):
            entries.extend(stream.get("values") or [])
    return entries


class LokiSource:
    """
    Fetches log entries from Loki over HTTP.

    Parameters
    ----------
    settings : Settings
        Endpoint, credentials, base query, result cap and timeout.
    client : httpx.Client | None
        Client to use; one is created (and owned) when omitted.
    """

    name: str = "loki"

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None) -> None:
        if not settings.loki_endpoint or not settings.base_query:
            raise ConfigError("LOKI_API_ENDPOINT and LOKI_BASE_QUERY are required")
        endpoint = settings.loki_endpoint.rstrip("/")
        if endpoint.endswith("/loki/api/v1"):
            endpoint = endpoint[: -len("/loki/api/v1")]
        self.url = endpoint + QUERY_RANGE_PATH
        self.base_query = settings.base_query
        self.limit = settings.query_limit
        self.timestamp_column = settings.timestamp_column
        self._auth: Optional[httpx.Auth] = None
        self._headers: Dict[str, str] = {}
        if settings.loki_username and settings.loki_password:
            self._auth = httpx.BasicAuth(settings.loki_username, settings.loki_password)
        elif settings.loki_api_key:
            self._headers["Authorization"] = f"Bearer {settings.loki_api_key}"
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=settings.request_timeout_seconds)

    def query_params(self, window: TimeRange) -> Dict[str, Any]:
        return {
            "query": self.base_query,
            "start": str(window.start_ns),
            "limit": self.limit,
            "direction": "forward",
        }

    def fetch_entries(self, window: TimeRange) -> List[Entry]:
        """
        Run the range query and return the raw `[epoch_ns, line]` pairs.

        Raises
        ------
        SourceFetchError
            On transport failure, a non-200 response or a non-success body.
        """
        params = self.query_params(window)
        log.info(
            f"Querying Loki from {window.start_seconds} (limit={self.limit})",
            extra={"url": self.url, "start_ns": params["start"]},
        )
        try:
            response = self._client.get(
                self.url, params=params, headers=self._headers, auth=self._auth
            )
        except httpx.HTTPError as exc:
            raise SourceFetchError(f"Loki request failed: {exc}") from exc

        if response.status_code != 200:
            raise SourceFetchError(
                f"Loki request failed with HTTP {response.status_code}: {response.text[:500]}",
                details={"status_code": response.status_code},
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise SourceFetchError(f"Loki response is not JSON: {exc}") from exc
        if not isinstance(body, dict):
            raise SourceFetchError("Loki response is not a JSON object")
        return extract_entries(body)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


__all__ = [
    "LokiSource",
    "QUERY_RANGE_PATH",
    "extract_entries",
    "parse_entries",
    "parse_entry",
]
