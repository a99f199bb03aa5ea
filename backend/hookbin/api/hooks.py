from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
import logging

from hookbin.errors import BodyTooLarge, DurableWriteFailure
from hookbin.ingestion.normalizer import CapturedRequest, normalize

logger = logging.getLogger(__name__)

router = APIRouter(tags=["capture"])


async def read_body(request: Request, limit: int) -> bytes:
    """
    Buffer the whole request body, refusing anything over ``limit`` bytes.
    A declared Content-Length over the limit is refused before reading.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise BodyTooLarge(limit)

    chunks = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise BodyTooLarge(limit)
        chunks.append(chunk)
    return b"".join(chunks)


async def capture(request: Request) -> JSONResponse:
    """
    Record any request sent to /hook/{ns}.

    The response is only sent once the event is in the durable log; the
    broadcast to subscribers happens after the append and cannot undo it.
    """
    state = request.app.state
    namespace = state.store.check(request.path_params["ns"])

    body = await read_body(request, state.settings.MAX_BODY_BYTES)
    captured = CapturedRequest.from_request(request, body)
    event = await normalize(namespace, captured, trust_proxy=state.settings.TRUST_PROXY)

    try:
        state.store.append(event)
    except DurableWriteFailure:
        logger.exception("Dropping capture for %r", namespace)
        raise

    state.hub.broadcast_event(event)
    return JSONResponse({"ok": True, "id": event.id})


# Every method Node's http parser accepts; a Route without a method list
# would only answer GET and HEAD
CAPTURE_METHODS = [
    "ACL", "BIND", "CHECKOUT", "CONNECT", "COPY", "DELETE", "GET", "HEAD",
    "LINK", "LOCK", "M-SEARCH", "MERGE", "MKACTIVITY", "MKCALENDAR", "MKCOL",
    "MOVE", "NOTIFY", "OPTIONS", "PATCH", "POST", "PROPFIND", "PROPPATCH",
    "PURGE", "PUT", "QUERY", "REBIND", "REPORT", "SEARCH", "SOURCE",
    "SUBSCRIBE", "TRACE", "UNBIND", "UNLINK", "UNLOCK", "UNSUBSCRIBE",
]

router.add_route("/hook/{ns}", capture, methods=CAPTURE_METHODS, include_in_schema=False)
router.add_route("/hook/{ns}/{rest:path}", capture, methods=CAPTURE_METHODS, include_in_schema=False)
