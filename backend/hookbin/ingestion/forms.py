"""
Best-effort structured decoding of captured request bodies.

Each decoder is independent and reports failure as ``None`` instead of
raising: a body that cannot be decoded is still worth recording raw.
"""
import json
import logging
from typing import Any, AsyncGenerator, List, NamedTuple, Optional
from urllib.parse import parse_qsl

from starlette.datastructures import Headers, UploadFile
from starlette.formparsers import MultiPartParser

from hookbin.schemas import FormFile, NameValue

logger = logging.getLogger(__name__)

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART_FORM = "multipart/form-data"

# Media type recorded for file parts that do not declare one
DEFAULT_PART_TYPE = "text/plain"


class JsonBody(NamedTuple):
    value: Any


class FormBody(NamedTuple):
    values: List[NameValue]
    files: Optional[List[FormFile]]


def _reject_constant(name: str):
    raise ValueError(f"Non-standard JSON constant: {name}")


# Deeper documents are left as raw text only: pydantic refuses to dump
# past ~255 levels and its JSON reader stops near 200 on reload
MAX_JSON_DEPTH = 128


def json_depth(value: Any) -> int:
    """Nesting depth of decoded JSON; scalars are depth 0."""
    depth = 0
    level = [value]
    while True:
        containers = [item for item in level if isinstance(item, (dict, list))]
        if not containers:
            return depth
        depth += 1
        level = [
            child
            for item in containers
            for child in (item.values() if isinstance(item, dict) else item)
        ]


def decode_json(body_raw: str) -> Optional[JsonBody]:
    """Parse the body as strict JSON; None when empty, malformed or nested too deeply."""
    if not body_raw:
        return None
    try:
        value = json.loads(body_raw, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None
    if json_depth(value) > MAX_JSON_DEPTH:
        logger.debug("JSON body nested deeper than %d levels, keeping raw text only", MAX_JSON_DEPTH)
        return None
    return JsonBody(value)


def decode_urlencoded(body_raw: str) -> FormBody:
    """Decode ``a=1&b=2&a=3`` into ordered pairs, keeping duplicates."""
    pairs = parse_qsl(body_raw, keep_blank_values=True)
    return FormBody([NameValue(name=k, value=v) for k, v in pairs], None)


class _CompletionTrackingParser(MultiPartParser):
    """Remembers whether the closing boundary was reached."""
    complete = False

    def on_end(self) -> None:
        self.complete = True


async def _single_chunk(body: bytes) -> AsyncGenerator[bytes, None]:
    yield body


async def decode_multipart(body: bytes, content_type: str) -> Optional[FormBody]:
    """
    Decode a multipart/form-data body with the boundary declared in
    ``content_type``.

    Value parts become ordered name/value pairs; parts carrying a filename
    contribute only their metadata, their contents are discarded.
    Returns None if the body cannot be decoded at all.
    """
    parser = _CompletionTrackingParser(Headers({"content-type": content_type}), _single_chunk(body))
    try:
        form = await parser.parse()
    except Exception as e:
        logger.debug("Multipart decode failed: %s", e)
        return None
    if not parser.complete:
        await form.close()
        logger.debug("Multipart body ended before its closing boundary")
        return None

    values: List[NameValue] = []
    files: List[FormFile] = []
    try:
        for name, item in form.multi_items():
            if isinstance(item, UploadFile):
                files.append(FormFile(
                    name=name,
                    filename=item.filename or "",
                    mime_type=item.content_type or DEFAULT_PART_TYPE,
                ))
            else:
                values.append(NameValue(name=name, value=item))
    finally:
        await form.close()
    return FormBody(values, files)


async def decode_form(body: bytes, body_raw: str, content_type: str) -> Optional[FormBody]:
    """Dispatch on the content type; None when it is not a form encoding."""
    lowered = content_type.lower()
    if FORM_URLENCODED in lowered:
        return decode_urlencoded(body_raw)
    if MULTIPART_FORM in lowered:
        return await decode_multipart(body, content_type)
    return None
