# tests/conftest.py
import os
import logging
from typing import Any, Dict, List, Optional

import pytest

# Ensure test-friendly env
os.environ.setdefault("EASYBEAM_TOKEN", "test-token")
os.environ.setdefault("EASYBEAM_BASE_URL", "https://api.easybeam.ai/v1")
os.environ.setdefault("EASYBEAM_API_GENERATION", "current")

# IMPORTANT: import the package after envs are set
from easybeam.client import Easybeam
from easybeam.schemas.chat import ChatMessage, ChatRole

BASE = "https://api.easybeam.ai/v1"
TOKEN = "test-token"


class FakeSubscription:
    """Stands in for a live push connection; tests fire events through it."""

    def __init__(self, url, method, payload, token, on_data, on_error, on_closed):
        self.url = url
        self.method = method
        self.payload = payload
        self.token = token
        self.on_data = on_data
        self.on_error = on_error
        self.on_closed = on_closed
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1

    async def wait_closed(self) -> None:
        return None


class FakeTransport:
    def __init__(self) -> None:
        self.subscriptions: List[FakeSubscription] = []
        self.requests: List[Dict[str, Any]] = []
        self.response: Any = None

    @property
    def last(self) -> FakeSubscription:
        return self.subscriptions[-1]

    async def send_request(self, url: str, method: str, payload: Optional[Dict[str, Any]], token: str) -> Any:
        self.requests.append({"url": url, "method": method, "payload": payload, "token": token})
        return self.response

    def open_push_subscription(self, url, method, payload, token, *, on_data, on_error, on_closed):
        sub = FakeSubscription(url, method, payload, token, on_data, on_error, on_closed)
        self.subscriptions.append(sub)
        return sub


class Recorder:
    """Collects callback invocations in one ordered list."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def on_response(self, resp) -> None:
        self.calls.append(("response", resp))

    def on_close(self) -> None:
        self.calls.append(("close",))

    def on_error(self, err) -> None:
        self.calls.append(("error", err))

    def of(self, name: str) -> list:
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def client(fake_transport):
    return Easybeam(TOKEN, base_url=BASE, transport=fake_transport)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def user_message():
    return ChatMessage(content="Hello", role=ChatRole.USER, created_at="2024-05-01T10:00:00+00:00", id="message-id-1")


@pytest.fixture
def caplog_info(caplog):
    caplog.set_level(logging.INFO)
    return caplog
