import logging
from typing import AsyncIterator, List, Optional

import httpx

from errors import UpstreamError
from settings import OllamaConfig, settings

logger = logging.getLogger(__name__)


class OllamaClient:
    """Thin async wrapper over the Ollama HTTP API (/api/generate, /api/tags)."""

    def __init__(self, config: OllamaConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout, connect=10.0),
            transport=self._transport,
        )

    async def generate(self, prompt: str, model: str) -> dict:
        """Non-streaming generation; returns the full JSON body."""
        payload = {"model": model, "prompt": prompt, "stream": False}
        try:
            async with self._client() as client:
                response = await client.post("/api/generate", json=payload)
        except httpx.HTTPError as e:
            raise UpstreamError("Could not reach Ollama", error=f"{type(e).__name__}: {e}") from e
        if response.status_code != 200:
            raise UpstreamError(
                "Ollama returned an error",
                error=f"HTTP {response.status_code}: {response.text[:200]}",
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError("Ollama returned an invalid body", error=str(e)) from e

    async def stream_generate(self, prompt: str, model: str) -> AsyncIterator[bytes]:
        """
        Streaming generation. Yields raw NDJSON bytes exactly as they arrive;
        closing the generator closes the upstream connection.
        """
        payload = {"model": model, "prompt": prompt, "stream": True}
        try:
            async with self._client() as client:
                async with client.stream("POST", "/api/generate", json=payload) as response:
                    if response.status_code != 200:
                        body = await response.aread()
                        raise UpstreamError(
                            "Ollama returned an error",
                            error=f"HTTP {response.status_code}: {body[:200].decode(errors='replace')}",
                        )
                    async for chunk in response.aiter_bytes():
                        if chunk:
                            yield chunk
        except httpx.HTTPError as e:
            raise UpstreamError("Ollama stream failed", error=f"{type(e).__name__}: {e}") from e

    async def list_models(self) -> List[dict]:
        try:
            async with self._client() as client:
                response = await client.get("/api/tags")
        except httpx.HTTPError as e:
            raise UpstreamError("Could not retrieve models", error=f"{type(e).__name__}: {e}") from e
        if response.status_code != 200:
            raise UpstreamError(
                "Could not retrieve models",
                error=f"HTTP {response.status_code}: {response.text[:200]}",
            )
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Could not retrieve models", error=str(e)) from e
        if not isinstance(data, dict):
            raise UpstreamError("Could not retrieve models", error="Unexpected body from /api/tags")
        return data.get("models", []) or []


def get_ollama_client() -> OllamaClient:
    """FastAPI dependency; tests override it to inject a mock transport."""
    return OllamaClient(settings.get_ollama_config())
