from fastapi import APIRouter, Depends

from hookbin.api.realtime import SubscriberHub
from hookbin.deps import get_hub, get_registry, get_store
from hookbin.namespaces import NamespaceRegistry
from hookbin.storage import NamespaceStore
import hookbin.schemas as schemas

router = APIRouter(prefix="/api", tags=["events"])


@router.get("/namespaces", response_model=schemas.NamespacesResponse)
async def list_namespaces(registry: NamespaceRegistry = Depends(get_registry)):
    """List configured namespaces"""
    return {"namespaces": registry.list()}


@router.get("/events")
async def list_events(ns: str = "", store: NamespaceStore = Depends(get_store)):
    """All events recorded for a namespace, oldest first"""
    return {"events": [event.to_wire() for event in store.list(ns)]}


@router.delete("/events", response_model=schemas.OkResponse)
async def clear_events(
    ns: str = "",
    store: NamespaceStore = Depends(get_store),
    hub: SubscriberHub = Depends(get_hub),
):
    """Drop every event of a namespace, in memory and on disk"""
    store.clear(ns)
    hub.broadcast_clear(ns)
    return {"ok": True}
