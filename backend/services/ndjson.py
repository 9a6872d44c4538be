"""
Incremental NDJSON decoding for Ollama's streaming generate endpoint.

Network reads do not line up with JSON documents: a chunk may hold several
frames, a fraction of one, or end halfway through a multi-byte character.
The decoder keeps a text buffer and only parses complete lines.
"""
import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator, List, Optional

logger = logging.getLogger(__name__)


class NDJSONDecoder:
    def __init__(self, encoding: str = "utf-8"):
        self._text = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self.skipped = 0

    def feed(self, chunk: bytes) -> List[dict]:
        """Add a chunk and return every frame it completed, in order."""
        self._buffer += self._text.decode(chunk)
        frames = []
        while True:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]
            frame = self._parse(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self) -> List[dict]:
        """Parse whatever is left once the byte stream has ended."""
        self._buffer += self._text.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        frame = self._parse(tail)
        return [frame] if frame is not None else []

    def _parse(self, line: str) -> Optional[dict]:
        line = line.strip()
        if not line:
            return None
        try:
            value = json.loads(line)
        except json.JSONDecodeError as e:
            self.skipped += 1
            logger.warning("Skipping malformed NDJSON line (%s): %.200s", e.msg, line)
            return None
        if not isinstance(value, dict):
            self.skipped += 1
            logger.warning("Skipping NDJSON line that is not an object: %.200s", line)
            return None
        return value


async def iter_ndjson(chunks: AsyncIterable[bytes]) -> AsyncIterator[dict]:
    decoder = NDJSONDecoder()
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
    for frame in decoder.flush():
        yield frame
