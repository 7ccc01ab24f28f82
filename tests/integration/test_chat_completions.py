"""
End-to-end tests for POST /v1/chat/completions.

Each request runs the fake Gemini CLI through the complete application:
middleware, routing, prompt translation, subprocess supervision and
response emission.
"""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from bridge.api.v1 import chat
from bridge.main import create_app
from bridge.runner.context import TerminationReason
from bridge.runner.session import CompletionSession

MESSAGES = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": "Hello"},
]


@pytest.fixture
def make_client(make_settings):
    """Factory for a test client whose CLI runs in the given fake mode."""
    clients = []

    def _make(mode: str = "ok", **overrides) -> TestClient:
        client = TestClient(create_app(make_settings(mode, **overrides)))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()


class TestNonStreaming:
    """stream absent or false."""

    def test_completion(self, make_client) -> None:
        response = make_client("ok").post(
            "/v1/chat/completions", json={"model": "gemini/gemini-3-pro-preview", "messages": MESSAGES}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["id"].startswith("chatcmpl-")
        assert body["object"] == "chat.completion"
        assert body["model"] == "gemini/gemini-3-pro-preview"
        assert body["choices"] == [
            {"index": 0, "message": {"role": "assistant", "content": "Hi there"}, "finish_reason": "stop"}
        ]
        assert body["usage"] == {"prompt_tokens": 11, "completion_tokens": 2, "total_tokens": 13}

    def test_default_model(self, make_client) -> None:
        response = make_client("ok").post("/v1/chat/completions", json={"messages": MESSAGES})

        assert response.status_code == 200
        assert response.json()["model"] == "gemini/gemini-3-flash-preview"

    def test_unknown_fields_are_ignored(self, make_client) -> None:
        response = make_client("ok").post(
            "/v1/chat/completions",
            json={"messages": MESSAGES, "temperature": 0.2, "max_tokens": 10, "tools": []},
        )

        assert response.status_code == 200

    def test_prompt_translation(self, make_client) -> None:
        """The CLI receives the flattened conversation."""
        response = make_client("echo").post("/v1/chat/completions", json={"messages": MESSAGES})

        assert response.json()["choices"][0]["message"]["content"] == (
            "[System Instructions]\nBe brief.\n[End System Instructions]\n\n[User]\nHello"
        )

    def test_rate_limited_cli(self, make_client) -> None:
        response = make_client("fail-capacity").post("/v1/chat/completions", json={"messages": MESSAGES})

        assert response.status_code == 429
        assert response.json()["error"]["type"] == "rate_limit"
        assert response.json()["error"]["code"] == 429

    def test_auth_failure(self, make_client) -> None:
        response = make_client("fail-auth").post("/v1/chat/completions", json={"messages": MESSAGES})

        assert response.status_code == 401
        assert response.json()["error"]["type"] == "auth_error"

    def test_binary_not_found(self, make_client, tmp_path) -> None:
        binary = str(tmp_path / "gemini-missing")
        response = make_client("ok", gemini_bin=binary).post(
            "/v1/chat/completions", json={"messages": MESSAGES}
        )

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["type"] == "binary_not_found"
        assert binary in error["message"]

    def test_timeout(self, make_client) -> None:
        response = make_client("hang", bridge_timeout_ms=300).post(
            "/v1/chat/completions", json={"messages": MESSAGES}
        )

        assert response.status_code == 504
        assert response.json()["error"] == {"message": "Request timed out", "type": "timeout", "code": 504}

    def test_unparseable_output(self, make_client) -> None:
        response = make_client("garbage").post("/v1/chat/completions", json={"messages": MESSAGES})

        assert response.status_code == 500
        assert response.json()["error"]["type"] == "parse_error"


class TestStreaming:
    """stream: true."""

    def test_stream(self, make_client, parse_sse) -> None:
        response = make_client("ok").post(
            "/v1/chat/completions", json={"model": "gemini-3-pro-preview", "messages": MESSAGES, "stream": True}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert "X-First-Byte-Time" in response.headers

        events = parse_sse(response.text)
        assert events[-1] == "[DONE]"
        chunks = events[:-1]
        assert [c["choices"][0]["delta"].get("content") for c in chunks] == ["", "Hi", " there", None]
        assert chunks[0]["choices"][0]["delta"]["role"] == "assistant"
        assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
        assert chunks[-1]["usage"] == {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5}
        assert len({c["id"] for c in chunks}) == 1
        assert {c["model"] for c in chunks} == {"gemini/gemini-3-pro-preview"}

    def test_stream_error_before_content(self, make_client, parse_sse) -> None:
        """Failures after the headers went out become a visible error chunk."""
        response = make_client("fail-capacity").post(
            "/v1/chat/completions", json={"messages": MESSAGES, "stream": True}
        )

        assert response.status_code == 200
        events = parse_sse(response.text)
        assert events[-1] == "[DONE]"
        error = events[-2]["choices"][0]
        assert error["delta"]["content"].startswith("\n\n[Error: ")
        assert error["finish_reason"] == "stop"

    def test_stream_binary_not_found(self, make_client, parse_sse, tmp_path) -> None:
        response = make_client("ok", gemini_bin=str(tmp_path / "nope")).post(
            "/v1/chat/completions", json={"messages": MESSAGES, "stream": True}
        )

        events = parse_sse(response.text)
        assert events[-1] == "[DONE]"
        assert "Gemini CLI binary not found" in events[-2]["choices"][0]["delta"]["content"]

    def test_stream_timeout(self, make_client, parse_sse) -> None:
        response = make_client("hang", bridge_timeout_ms=300).post(
            "/v1/chat/completions", json={"messages": MESSAGES, "stream": True}
        )

        events = parse_sse(response.text)
        assert events[-1] == "[DONE]"
        assert events[-2]["choices"][0]["delta"]["content"] == "\n\n[Error: Request timed out]"

    def test_large_prompt_streams_via_stdin(self, make_client, parse_sse) -> None:
        text = "lorem ipsum " * 50
        response = make_client("echo", bridge_max_arg_len=100).post(
            "/v1/chat/completions",
            json={"messages": [{"role": "system", "content": "S"}, {"role": "user", "content": text}], "stream": True},
        )

        events = parse_sse(response.text)
        content = "".join(c["choices"][0]["delta"].get("content") or "" for c in events[:-1])
        assert content.endswith(f"[User]\n{text}")


class TestClientDisconnect:
    """A client that goes away stops its Gemini CLI run."""

    @pytest.mark.asyncio
    async def test_disconnect_terminates_non_streaming_run(self, make_settings, monkeypatch) -> None:
        """The CLI is terminated on disconnect, long before the deadline."""
        sessions: list[CompletionSession] = []

        class RecordingSession(CompletionSession):
            def __init__(self, *args, **kwargs) -> None:
                super().__init__(*args, **kwargs)
                sessions.append(self)

        monkeypatch.setattr(chat, "CompletionSession", RecordingSession)
        app = create_app(
            make_settings("hang", bridge_timeout_ms=60_000, bridge_kill_grace_ms=200)
        )

        body = json.dumps({"messages": MESSAGES}).encode()
        pending = [{"type": "http.request", "body": body, "more_body": False}]
        disconnected = asyncio.Event()

        async def receive() -> dict:
            if pending:
                return pending.pop(0)
            await disconnected.wait()
            return {"type": "http.disconnect"}

        async def send(message: dict) -> None:
            pass

        async def disconnect_once_spawned() -> None:
            while not sessions or sessions[0].context.process is None:
                await asyncio.sleep(0.02)
            disconnected.set()

        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "POST",
            "scheme": "http",
            "path": "/v1/chat/completions",
            "raw_path": b"/v1/chat/completions",
            "root_path": "",
            "query_string": b"",
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode()),
            ],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }

        trigger = asyncio.create_task(disconnect_once_spawned())
        await asyncio.wait_for(app(scope, receive, send), timeout=10)
        await asyncio.wait_for(trigger, timeout=5)

        (session,) = sessions
        process = session.context.process
        assert session.context.termination_reason is TerminationReason.CANCELLED
        assert await asyncio.wait_for(process.wait(), timeout=5) != 0
