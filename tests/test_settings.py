import os
import sys
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../backend")))
from settings import Settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("CHAT_API_OLLAMA_URL", "CHAT_API_OLLAMA_MODEL", "CHAT_API_OLLAMA_TIMEOUT",
                 "DATABASE_URL", "DATABASE_PATH"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = Settings()
    config = s.get_ollama_config()
    assert config.base_url == "http://localhost:11434"
    assert config.default_model == "qwen2.5vl:7b"
    assert config.model_filter is None
    assert config.timeout == 120.0
    assert s.get_database_url().startswith("sqlite:///")
    assert s.get_database_url().endswith("chat_history.db")


def test_configured_model_is_default_and_filter(clean_env):
    clean_env.setenv("CHAT_API_OLLAMA_MODEL", "llama3")
    clean_env.setenv("CHAT_API_OLLAMA_URL", "http://gpu-box:11434/")
    config = Settings().get_ollama_config()
    assert config.default_model == "llama3"
    assert config.model_filter == "llama3"
    assert config.base_url == "http://gpu-box:11434"


def test_database_url_override(clean_env):
    clean_env.setenv("DATABASE_URL", "postgresql://chat:chat@db/xat")
    assert Settings().get_database_url() == "postgresql://chat:chat@db/xat"


def test_config_snapshot_is_frozen(clean_env):
    config = Settings().get_ollama_config()
    clean_env.setenv("CHAT_API_OLLAMA_URL", "http://other:11434")
    assert config.base_url == "http://localhost:11434"
    assert Settings().get_ollama_config().base_url == "http://other:11434"
