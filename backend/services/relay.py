"""
Prompt relays between the API caller and Ollama.

PromptRelay waits for the whole generation and answers with one JSON
envelope. StreamingRelay forwards each NDJSON increment as an SSE event
while accumulating the full text, then writes that text to the prompt
exactly once.

Client disconnects: the upstream pull runs in its own task, so a client
that goes away only stops the SSE writes. The generation is still read to
the end and whatever was accumulated is persisted.
"""
import asyncio
import datetime
import enum
import json
import logging
from contextlib import aclosing
from typing import AsyncIterator, Optional

from starlette.concurrency import run_in_threadpool

from errors import ChatApiError, NotFoundError, UpstreamError
from services.history import ConversationStore
from services.ndjson import iter_ndjson
from services.ollama import OllamaClient

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "Sorry, I could not generate a response. Please try again later."

# Pump tasks must outlive a disconnected client; hold references until done.
_background_tasks: set = set()

_END = object()


class RelayState(str, enum.Enum):
    OPEN = "open"
    DONE = "done"
    PERSISTED = "persisted"
    FAILED = "failed"


async def drain_background_tasks(timeout: float = 30.0) -> int:
    """Wait for in-flight relays to persist before shutdown; returns how many were still pending."""
    pending = [t for t in _background_tasks if not t.done()]
    if not pending:
        return 0
    logger.info("Waiting up to %.0fs for %d relay(s) to finish", timeout, len(pending))
    _, still_running = await asyncio.wait(pending, timeout=timeout)
    if still_running:
        logger.warning("%d relay(s) did not finish before shutdown", len(still_running))
    return len(still_running)


def format_sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class PromptRelay:
    def __init__(self, client: OllamaClient, store: ConversationStore,
                 conversation_id: str, prompt_id: str, prompt: str, model: str):
        self.client = client
        self.store = store
        self.conversation_id = conversation_id
        self.prompt_id = prompt_id
        self.prompt = prompt
        self.model = model

    async def run(self) -> dict:
        text = None
        try:
            body = await self.client.generate(self.prompt, self.model)
            text = body.get("response") if isinstance(body, dict) else None
        except UpstreamError as e:
            logger.warning("Generation failed for prompt %s: %s", self.prompt_id, e.error or e.message)

        if not isinstance(text, str) or not text:
            text = FALLBACK_RESPONSE

        updated = await run_in_threadpool(self.store.update_prompt_response, self.prompt_id, text)
        if not updated:
            raise NotFoundError("Prompt not found")

        return {
            "conversation_id": self.conversation_id,
            "prompt_id": self.prompt_id,
            "prompt": self.prompt,
            "response": text,
            "model": self.model,
            "timestamp": _now(),
        }


class StreamingRelay:
    def __init__(self, client: OllamaClient, store: ConversationStore,
                 conversation_id: str, prompt_id: str, prompt: str, model: str):
        self.client = client
        self.store = store
        self.conversation_id = conversation_id
        self.prompt_id = prompt_id
        self.prompt = prompt
        self.model = model

        self.state = RelayState.OPEN
        self.response_text = ""
        self.error: Optional[str] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    async def _pump(self):
        parts = []
        try:
            upstream = self.client.stream_generate(self.prompt, self.model)
            async with aclosing(upstream), aclosing(iter_ndjson(upstream)) as increments:
                async for increment in increments:
                    text = increment.get("response") or ""
                    if not isinstance(text, str):
                        text = str(text)
                    done = bool(increment.get("done", False))
                    parts.append(text)
                    await self._queue.put({"response": text, "done": done})
                    if done:
                        break
            self.state = RelayState.DONE
        except UpstreamError as e:
            self.state = RelayState.FAILED
            self.error = e.message
            logger.error("Upstream failure for prompt %s: %s", self.prompt_id, e.error or e.message)
        except Exception:
            self.state = RelayState.FAILED
            self.error = "Generation failed"
            logger.exception("Relay for prompt %s crashed", self.prompt_id)

        self.response_text = "".join(parts)
        await self._persist()
        await self._queue.put(_END)

    async def _persist(self):
        text = self.response_text
        if self.state == RelayState.FAILED and not text:
            text = FALLBACK_RESPONSE
        try:
            updated = await run_in_threadpool(self.store.update_prompt_response, self.prompt_id, text)
        except ChatApiError as e:
            self.state = RelayState.FAILED
            self.error = self.error or "Could not save the response"
            logger.error("Could not persist response for prompt %s: %s", self.prompt_id, e.error or e.message)
            return
        if not updated:
            self.state = RelayState.FAILED
            self.error = self.error or "Prompt not found"
            logger.error("Prompt %s vanished before its response was saved", self.prompt_id)
            return
        if self.state == RelayState.DONE:
            self.state = RelayState.PERSISTED
        logger.info("Saved %d characters for prompt %s (%s)", len(text), self.prompt_id, self.state.value)

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self._pump())
            _background_tasks.add(self._task)
            self._task.add_done_callback(_background_tasks.discard)
        return self._task

    async def events(self) -> AsyncIterator[str]:
        """SSE body: one event per increment, then an error event if the relay failed."""
        self.start()
        finished = False
        try:
            while True:
                item = await self._queue.get()
                if item is _END:
                    finished = True
                    break
                yield format_sse(item)
            if self.state == RelayState.FAILED:
                yield format_sse({"error": self.error, "done": True})
        finally:
            if not finished:
                logger.info("Client left the stream for prompt %s; generation continues", self.prompt_id)
