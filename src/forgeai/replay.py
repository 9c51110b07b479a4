"""
Record and replay adapter traffic as JSON lines.

``RecordingAdapter`` wraps a live adapter and appends one entry per
successful ``chat`` call. ``ReplayAdapter`` serves those entries back without
touching the network, keyed by a fingerprint of the request.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Union

from .adapters.base import AdapterInfo, BaseAdapter, CapabilityMatrix, ChatAdapter
from .exceptions import ConfigError, ProviderError
from .stream import EventStream, StreamEvent, response_events
from .types import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def request_fingerprint(request: ChatRequest) -> str:
    """SHA-256 of the request's canonical JSON form."""
    canonical = json.dumps(request.to_dict(), sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class ReplayEntry:
    """One recorded exchange."""

    key: str
    request: Dict[str, Any]
    response: Dict[str, Any]

    def to_json(self) -> str:
        return json.dumps(
            {"key": self.key, "request": self.request, "response": self.response},
            default=str,
        )

    @classmethod
    def from_json(cls, line: str) -> "ReplayEntry":
        data = json.loads(line)
        return cls(key=data["key"], request=data["request"], response=data["response"])


def load_entries(path: PathLike) -> List[ReplayEntry]:
    """
    Read every entry of a recording.

    Raises:
        ConfigError: If the file is missing or a line is not a valid entry.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"replay file not found: {path}")
    entries = []
    for number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entries.append(ReplayEntry.from_json(line))
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise ConfigError(f"{path}:{number}: invalid replay entry: {exc}") from exc
    return entries


class RecordingAdapter:
    """
    Pass-through adapter that records successful ``chat`` exchanges.

    Streaming calls are forwarded to the inner adapter unrecorded. File writes
    run in the default executor so the event loop is not blocked.
    """

    def __init__(self, inner: ChatAdapter, path: PathLike):
        self.inner = inner
        self.path = Path(path)

    def info(self) -> AdapterInfo:
        return self.inner.info()

    async def chat(self, request: ChatRequest) -> ChatResponse:
        response = await self.inner.chat(request)
        entry = ReplayEntry(
            key=request_fingerprint(request),
            request=request.to_dict(),
            response=response.to_dict(),
        )
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._append, entry)
        logger.debug("recorded exchange %s to %s", entry.key[:12], self.path)
        return response

    async def chat_stream(self, request: ChatRequest) -> EventStream:
        return await self.inner.chat_stream(request)

    def _append(self, entry: ReplayEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(entry.to_json() + "\n")


class ReplayAdapter(BaseAdapter):
    """
    Serves recorded responses for matching requests.

    Later entries for the same request replace earlier ones. Streaming calls
    render the recorded response as a single-pass event sequence.

    Raises:
        ProviderError: From ``chat``/``chat_stream`` when no recording matches.
    """

    def __init__(self, path: PathLike, *, name: str = "replay"):
        self.name = name
        self.path = Path(path)
        self._responses: Dict[str, Dict[str, Any]] = {
            entry.key: entry.response for entry in load_entries(self.path)
        }

    def __len__(self) -> int:
        return len(self._responses)

    def info(self) -> AdapterInfo:
        return AdapterInfo(
            name=self.name,
            base_url=None,
            capabilities=CapabilityMatrix(streaming=True, tools=True),
        )

    def _lookup(self, request: ChatRequest) -> ChatResponse:
        key = request_fingerprint(request)
        recorded = self._responses.get(key)
        if recorded is None:
            raise ProviderError(f"no recorded response for request {key[:12]}")
        return ChatResponse.from_dict(recorded)

    async def _chat(self, request: ChatRequest) -> ChatResponse:
        return self._lookup(request)

    async def _open_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        events = response_events(self._lookup(request))

        async def _replay() -> AsyncIterator[StreamEvent]:
            for event in events:
                yield event

        return _replay()


__all__ = [
    "RecordingAdapter",
    "ReplayAdapter",
    "ReplayEntry",
    "request_fingerprint",
    "load_entries",
]
