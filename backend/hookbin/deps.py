from fastapi import Request

from hookbin.api.realtime import SubscriberHub
from hookbin.namespaces import NamespaceRegistry
from hookbin.storage import NamespaceStore


# Components live on app.state, built once by create_app()
def get_registry(request: Request) -> NamespaceRegistry:
    return request.app.state.registry


def get_store(request: Request) -> NamespaceStore:
    return request.app.state.store


def get_hub(request: Request) -> SubscriberHub:
    return request.app.state.hub
