import os
import sys
import tempfile

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Keep the app's own SQLite file out of the repo while tests import main
os.environ.setdefault("DATABASE_PATH", os.path.join(tempfile.gettempdir(), "xat_api_test.db"))
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../backend")))

from database import Base
from models import db_models  # noqa: F401  registers tables on Base
from services.history import ConversationStore
from services.ollama import OllamaClient
from settings import OllamaConfig


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def store(session_factory):
    return ConversationStore(session_factory)


@pytest.fixture
def ollama_config():
    return OllamaConfig(base_url="http://ollama.test", default_model="qwen2.5vl:7b", timeout=5.0)


@pytest.fixture
def api_client(store, ollama_config):
    """
    Returns a factory building an AsyncClient against the app, with the
    store swapped for the in-memory one and Ollama answered by `handler`.
    """
    from main import app
    from database import get_store
    from services.ollama import get_ollama_client

    def _build(handler, config: OllamaConfig = None) -> httpx.AsyncClient:
        ollama = OllamaClient(config or ollama_config, transport=httpx.MockTransport(handler))
        app.dependency_overrides[get_store] = lambda: store
        app.dependency_overrides[get_ollama_client] = lambda: ollama
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    yield _build
    app.dependency_overrides.clear()
