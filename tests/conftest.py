import json

import pytest

from xiangxinai import XiangxinAI

VERDICT = {
    "id": "guardrails-abc123",
    "result": {
        "compliance": {"risk_level": "高风险", "categories": ["暴力犯罪"]},
        "security": {"risk_level": "无风险", "categories": []},
    },
    "overall_risk_level": "高风险",
    "suggest_action": "代答",
    "suggest_answer": "抱歉，我无法回答这个问题。",
}


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body if body is not None else VERDICT, ensure_ascii=False)
        self.text = text


@pytest.fixture
def client():
    c = XiangxinAI(api_key="test-key", max_retries=3)
    yield c
    c.close()


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr("xiangxinai.client.time.sleep", recorded.append)
    return recorded


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "image.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg-bytes\x00\x01")
    return path
