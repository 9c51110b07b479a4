"""
Tests for record/replay adapters.

Tests cover:
- Recording appends one JSON line per successful chat
- Replaying returns the recorded response for an identical request
- Unknown requests raise ProviderError
- Replayed streams produce the recorded text and tool calls
- Fingerprints ignore dict ordering but not content
- Corrupt or missing recordings raise ConfigError
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from forgeai import (
    ChatRequest,
    ChatResponse,
    ConfigError,
    LocalAdapter,
    Message,
    ProviderError,
    RecordingAdapter,
    ReplayAdapter,
    ScriptedAdapter,
    ToolCall,
    UsageStats,
)
from forgeai.replay import request_fingerprint
from forgeai.stream import StreamAccumulator


def _request(text: str = "ping") -> ChatRequest:
    return ChatRequest(model="m", messages=[Message.user(text)], metadata={"a": 1, "b": 2})


class TestRecording:
    @pytest.mark.asyncio
    async def test_records_one_line_per_call(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "session.jsonl"
        recorder = RecordingAdapter(LocalAdapter(), path)

        await recorder.chat(_request("one"))
        await recorder.chat(_request("two"))

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        entry = json.loads(lines[0])
        assert entry["key"] == request_fingerprint(_request("one"))
        assert entry["response"]["output_text"] == "[local adapter: m] one"

    @pytest.mark.asyncio
    async def test_concurrent_calls_each_recorded(self, tmp_path: Path) -> None:
        path = tmp_path / "session.jsonl"
        recorder = RecordingAdapter(LocalAdapter(), path)

        await asyncio.gather(*(recorder.chat(_request(f"q{i}")) for i in range(5)))

        keys = {json.loads(line)["key"] for line in path.read_text(encoding="utf-8").splitlines()}
        assert keys == {request_fingerprint(_request(f"q{i}")) for i in range(5)}

    @pytest.mark.asyncio
    async def test_failed_calls_not_recorded(self, tmp_path: Path) -> None:
        path = tmp_path / "session.jsonl"
        recorder = RecordingAdapter(ScriptedAdapter([ProviderError("boom")]), path)

        with pytest.raises(ProviderError):
            await recorder.chat(_request())
        assert not path.exists()

    def test_info_forwarded(self, tmp_path: Path) -> None:
        recorder = RecordingAdapter(LocalAdapter(name="echo"), tmp_path / "x.jsonl")
        assert recorder.info().name == "echo"


class TestReplay:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "session.jsonl"
        recorded = ChatResponse(
            output_text="Checking",
            tool_calls=[ToolCall(id="c1", name="lookup", arguments={"q": "x"})],
            usage=UsageStats(input_tokens=4, output_tokens=2),
            id="resp-1",
            model="m",
        )
        await RecordingAdapter(ScriptedAdapter([recorded]), path).chat(_request())

        replay = ReplayAdapter(path)
        response = await replay.chat(_request())

        assert len(replay) == 1
        assert response.output_text == "Checking"
        assert response.tool_calls == recorded.tool_calls
        assert response.usage == recorded.usage

    @pytest.mark.asyncio
    async def test_unknown_request(self, tmp_path: Path) -> None:
        path = tmp_path / "session.jsonl"
        await RecordingAdapter(LocalAdapter(), path).chat(_request("known"))

        with pytest.raises(ProviderError, match="no recorded response"):
            await ReplayAdapter(path).chat(_request("unknown"))

    @pytest.mark.asyncio
    async def test_stream_replay(self, tmp_path: Path) -> None:
        path = tmp_path / "session.jsonl"
        recorded = ChatResponse(
            output_text="Checking",
            tool_calls=[ToolCall(id="c1", name="lookup", arguments={"q": "x"})],
        )
        await RecordingAdapter(ScriptedAdapter([recorded]), path).chat(_request())

        stream = await ReplayAdapter(path).chat_stream(_request())
        accumulator = StreamAccumulator()
        async for event in stream:
            accumulator.add(event)

        assert accumulator.text == "Checking"
        assert accumulator.tool_calls() == tuple(recorded.tool_calls)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            ReplayAdapter(tmp_path / "absent.jsonl")

    def test_corrupt_line(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.jsonl"
        path.write_text('{"key": "k", "request": {}, "response": {}}\nnot json\n', encoding="utf-8")
        with pytest.raises(ConfigError, match=":2:"):
            ReplayAdapter(path)


class TestFingerprint:
    def test_stable_across_metadata_order(self) -> None:
        first = ChatRequest(model="m", messages=[Message.user("x")], metadata={"a": 1, "b": 2})
        second = ChatRequest(model="m", messages=[Message.user("x")], metadata={"b": 2, "a": 1})
        assert request_fingerprint(first) == request_fingerprint(second)

    def test_content_changes_fingerprint(self) -> None:
        assert request_fingerprint(_request("x")) != request_fingerprint(_request("y"))
