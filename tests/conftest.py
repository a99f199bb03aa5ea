import pytest
from fastapi.testclient import TestClient

from hookbin.config import Settings, get_settings
from hookbin.main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        NAMESPACES="alpha,beta",
        DATA_DIR=str(tmp_path / "data"),
        STATIC_DIR="",
        MAX_BODY_BYTES=1024,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # Entering the context runs the lifespan (log loading) and keeps one
    # event loop for HTTP and WebSocket traffic alike
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def fresh_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
