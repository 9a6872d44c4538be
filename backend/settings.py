import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class OllamaConfig:
    base_url: str
    default_model: str
    timeout: float = 120.0
    # When set, GET /api/chat/models only lists this model
    model_filter: Optional[str] = None


class Settings:
    # Default Ollama endpoint on the local machine
    DEFAULT_OLLAMA_URL = "http://localhost:11434"
    DEFAULT_MODEL = "qwen2.5vl:7b"

    def __init__(self):
        self._ollama_url = os.environ.get("CHAT_API_OLLAMA_URL", self.DEFAULT_OLLAMA_URL).rstrip("/")
        configured = os.environ.get("CHAT_API_OLLAMA_MODEL", "").strip()
        self._model_filter = configured or None
        self._default_model = configured or self.DEFAULT_MODEL
        self._timeout = float(os.environ.get("CHAT_API_OLLAMA_TIMEOUT", "120"))
        self._log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    def get_ollama_url(self) -> str:
        """Returns the base URL of the Ollama server (e.g. 'http://localhost:11434')."""
        return self._ollama_url

    def get_default_model(self) -> str:
        return self._default_model

    def get_log_level(self) -> str:
        return self._log_level

    def get_database_url(self) -> str:
        if os.environ.get("DATABASE_URL"):
            return os.environ["DATABASE_URL"]
        db_path = os.environ.get(
            "DATABASE_PATH",
            os.path.abspath(os.path.join(os.path.dirname(__file__), "../data/chat_history.db")),
        )
        return f"sqlite:///{db_path}"

    def get_ollama_config(self) -> OllamaConfig:
        """Snapshot of the upstream settings handed to the Ollama client and relays."""
        return OllamaConfig(
            base_url=self._ollama_url,
            default_model=self._default_model,
            timeout=self._timeout,
            model_filter=self._model_filter,
        )


settings = Settings()
