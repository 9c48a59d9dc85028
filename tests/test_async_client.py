"""Tests for the asyncio guardrails client."""

import asyncio
import base64
import json

import httpx
import pytest

from xiangxinai import (
    AsyncXiangxinAI,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ValidationError,
    XiangxinAIError,
)

from .conftest import VERDICT


class Recorder:
    """Serves queued responses and records every request it sees."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def json(self, index=0):
        return json.loads(self.requests[index].content)


def _ok(body=None):
    return httpx.Response(200, json=body if body is not None else VERDICT)


def _client(recorder, **kwargs):
    kwargs.setdefault("max_retries", 3)
    return AsyncXiangxinAI(api_key="test-key", transport=httpx.MockTransport(recorder), **kwargs)


@pytest.fixture
def async_sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr("xiangxinai.client.asyncio.sleep", fake_sleep)
    return recorded


@pytest.mark.asyncio
async def test_empty_prompt_short_circuits():
    recorder = Recorder()
    async with _client(recorder) as client:
        result = await client.check_prompt("   ")
    assert recorder.requests == []
    assert result.is_safe


@pytest.mark.asyncio
async def test_check_prompt_sends_request():
    recorder = Recorder(_ok())
    async with _client(recorder) as client:
        result = await client.check_prompt(" 你好 ", user_id="u-1")

    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.xiangxinai.cn/v1/guardrails/input"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert recorder.json() == {"input": "你好", "xxai_app_user_id": "u-1"}
    assert result.id == "guardrails-abc123"


@pytest.mark.asyncio
async def test_conversation_validation_before_io():
    recorder = Recorder()
    async with _client(recorder) as client:
        with pytest.raises(ValidationError):
            await client.check_conversation([{"role": "robot", "content": "hi"}])
        result = await client.check_conversation([{"role": "user", "content": ""}])
    assert recorder.requests == []
    assert result.is_safe


@pytest.mark.asyncio
async def test_response_ctx_one_side_empty():
    recorder = Recorder(_ok())
    async with _client(recorder) as client:
        await client.check_response_ctx("", "回答")
    assert recorder.json() == {"input": "", "output": "回答"}


@pytest.mark.asyncio
async def test_images_from_file_and_url(image_file):
    recorder = Recorder(httpx.Response(200, content=b"remote-bytes"), _ok())
    async with _client(recorder) as client:
        await client.check_prompt_images("看看", [str(image_file), "https://img.example.com/a.jpg"])

    download, check = recorder.requests
    assert str(download.url) == "https://img.example.com/a.jpg"
    assert "Authorization" not in download.headers
    content = recorder.json(1)["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "看看"}
    decoded = [base64.b64decode(part["image_url"]["url"].split(",", 1)[1]) for part in content[1:]]
    assert decoded == [image_file.read_bytes(), b"remote-bytes"]
    assert recorder.json(1)["model"] == "Xiangxin-Guardrails-VL"


@pytest.mark.asyncio
async def test_image_validation():
    recorder = Recorder()
    async with _client(recorder) as client:
        with pytest.raises(ValidationError):
            await client.check_prompt_image("text", None)
        with pytest.raises(ValidationError):
            await client.check_prompt_images("text", [])
        with pytest.raises(ValidationError, match="no-such.jpg"):
            await client.check_prompt_image("text", "/definitely/no-such.jpg")
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_image_download_failure_is_generic_error():
    recorder = Recorder(httpx.Response(404, text="not found"))
    async with _client(recorder) as client:
        with pytest.raises(XiangxinAIError) as excinfo:
            await client.check_prompt_image("", "http://img.example.com/missing.jpg")
    assert not isinstance(excinfo.value, ValidationError)
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_rate_limit_backoff(async_sleeps):
    recorder = Recorder(httpx.Response(429), httpx.Response(429), _ok())
    async with _client(recorder) as client:
        result = await client.check_prompt("hello")
    assert async_sleeps == [2.0, 3.0]
    assert result.id == "guardrails-abc123"


@pytest.mark.asyncio
async def test_rate_limit_exhausted(async_sleeps):
    recorder = Recorder(httpx.Response(429), httpx.Response(429))
    async with _client(recorder, max_retries=1) as client:
        with pytest.raises(RateLimitError):
            await client.check_prompt("hello")
    assert async_sleeps == [2.0]


@pytest.mark.asyncio
async def test_unauthorized_not_retried(async_sleeps):
    recorder = Recorder(httpx.Response(401))
    async with _client(recorder) as client:
        with pytest.raises(AuthenticationError):
            await client.check_prompt("hello")
    assert async_sleeps == []
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_timeout_and_network_errors(async_sleeps):
    recorder = Recorder(
        httpx.ReadTimeout("slow"),
        httpx.ConnectError("refused"),
        httpx.ConnectError("refused"),
    )
    async with _client(recorder, max_retries=2) as client:
        with pytest.raises(NetworkError):
            await client.check_prompt("hello")
    assert async_sleeps == [1.0, 1.0]


@pytest.mark.asyncio
async def test_timeout_exhausted(async_sleeps):
    recorder = Recorder(httpx.ReadTimeout("slow"))
    async with _client(recorder, max_retries=0) as client:
        with pytest.raises(XiangxinAIError, match="Request timeout"):
            await client.check_prompt("hello")
    assert async_sleeps == []


@pytest.mark.asyncio
async def test_concurrent_calls_are_independent():
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(200, json=dict(VERDICT, id=f"id-{body['input']}"))

    async with AsyncXiangxinAI(api_key="k", transport=httpx.MockTransport(handler)) as client:
        results = await asyncio.gather(*(client.check_prompt(f"msg{i}") for i in range(5)))
    assert [r.id for r in results] == [f"id-msg{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_health_check_raw():
    recorder = Recorder(_ok({"status": "healthy", "version": "2.0"}))
    async with _client(recorder) as client:
        assert await client.health_check() == {"status": "healthy", "version": "2.0"}
    assert recorder.requests[0].method == "GET"
    assert str(recorder.requests[0].url).endswith("/guardrails/health")


@pytest.mark.asyncio
async def test_plain_string_image_list_rejected(image_file):
    recorder = Recorder()
    async with _client(recorder) as client:
        with pytest.raises(ValidationError, match="must be a list"):
            await client.check_prompt_images("t", str(image_file))
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_incomplete_verdict_raises(async_sleeps):
    recorder = Recorder(httpx.Response(200, json={"detail": "upstream hiccup"}))
    async with _client(recorder) as client:
        with pytest.raises(XiangxinAIError, match="Invalid guardrail response"):
            await client.check_prompt("bad stuff")
    assert async_sleeps == []
