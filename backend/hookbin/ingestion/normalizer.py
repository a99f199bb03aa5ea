"""
Turns one buffered inbound HTTP request into an immutable EventRecord.

Decoding of the body is best-effort: JSON, URL-encoded and multipart
decoders each either produce a value or leave their field absent, they
never reject the request.
"""
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl

from starlette.requests import Request

from hookbin.ingestion.forms import decode_form, decode_json
from hookbin.schemas import EventRecord, MultiValue, NameValue


class MonotonicClock:
    """UTC clock that never steps backwards, even if the wall clock does."""

    def __init__(self, now: Optional[Callable[[], datetime]] = None):
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            current = self._now()
            if self._last is not None and current < self._last:
                current = self._last
            self._last = current
            return current


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2026-01-02T03:04:05.678Z"""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


default_clock = MonotonicClock()


@dataclass
class CapturedRequest:
    """Raw request metadata as received, before any interpretation."""
    method: str
    target: str  # path plus query string, as sent
    scheme: str
    query_string: str
    raw_headers: List[Tuple[str, str]]
    body: bytes
    client_host: str = ""

    @classmethod
    def from_request(cls, request: Request, body: bytes) -> "CapturedRequest":
        scope = request.scope
        raw_path = (scope.get("raw_path") or scope["path"].encode("utf-8")).split(b"?", 1)[0]
        query_string = scope.get("query_string", b"").decode("latin-1")
        target = raw_path.decode("latin-1")
        if query_string:
            target = f"{target}?{query_string}"
        return cls(
            method=request.method,
            target=target,
            scheme=scope.get("scheme", "http"),
            query_string=query_string,
            raw_headers=[(k.decode("latin-1"), v.decode("latin-1")) for k, v in scope["headers"]],
            body=body,
            client_host=request.client.host if request.client else "",
        )


def parse_query(query_string: str) -> Tuple[Dict[str, MultiValue], List[NameValue]]:
    """
    Build both views of a query string: a map in which repeated keys
    become lists, and the ordered list of pairs.
    """
    pairs = parse_qsl(query_string, keep_blank_values=True)
    mapping: Dict[str, MultiValue] = {}
    for name, value in pairs:
        if name not in mapping:
            mapping[name] = value
        elif isinstance(mapping[name], list):
            mapping[name].append(value)
        else:
            mapping[name] = [mapping[name], value]
    return mapping, [NameValue(name=k, value=v) for k, v in pairs]


def collect_headers(raw_headers: Iterable[Tuple[str, str]]) -> Dict[str, MultiValue]:
    headers: Dict[str, MultiValue] = {}
    for name, value in raw_headers:
        key = name.lower()
        if key not in headers:
            headers[key] = value
        elif isinstance(headers[key], list):
            headers[key].append(value)
        else:
            headers[key] = [headers[key], value]
    return headers


def _first(value: Optional[MultiValue]) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return value[0] if value else ""
    return value


def _client_address(captured: CapturedRequest, headers: Dict[str, MultiValue], trust_proxy: bool) -> str:
    if trust_proxy:
        forwarded = _first(headers.get("x-forwarded-for")).split(",")[0].strip()
        if forwarded:
            return forwarded
    return captured.client_host


def _scheme(captured: CapturedRequest, headers: Dict[str, MultiValue], trust_proxy: bool) -> str:
    if trust_proxy:
        proto = _first(headers.get("x-forwarded-proto")).split(",")[0].strip()
        if proto:
            return proto
    return captured.scheme


async def normalize(
    namespace: str,
    captured: CapturedRequest,
    trust_proxy: bool = True,
    clock: Callable[[], datetime] = default_clock,
) -> EventRecord:
    """
    Normalize a fully buffered request into an EventRecord.

    ``id`` and ``timestamp`` are assigned last, after the only suspension
    point (multipart decoding), so that a caller appending the result
    straight away stores events in timestamp order.
    """
    started = time.perf_counter()
    headers = collect_headers(captured.raw_headers)
    query, query_strings = parse_query(captured.query_string)

    body = captured.body
    body_raw = body.decode("utf-8", errors="replace")
    content_type = _first(headers.get("content-type"))

    fields = {}
    json_body = decode_json(body_raw)
    if json_body is not None:
        fields["body_json"] = json_body.value

    form = await decode_form(body, body_raw, content_type)
    if form is not None:
        fields["form_values"] = form.values
        if form.files is not None:
            fields["form_files"] = form.files

    host = _first(headers.get("host"))
    full_url = f"{_scheme(captured, headers, trust_proxy)}://{host}{captured.target}" if host else captured.target
    duration_ms = (time.perf_counter() - started) * 1000.0

    return EventRecord(
        id=str(uuid.uuid4()),
        namespace=namespace,
        timestamp=format_timestamp(clock()),
        method=captured.method,
        path=captured.target,
        full_url=full_url,
        query=query,
        query_strings=query_strings,
        headers=headers,
        body_raw=body_raw,
        remote_address=_client_address(captured, headers, trust_proxy),
        host=host,
        user_agent=_first(headers.get("user-agent")),
        content_length=_first(headers.get("content-length")),
        size_bytes=len(body),
        duration_ms=duration_ms,
        **fields,
    )
