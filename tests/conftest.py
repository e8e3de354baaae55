import base64
from types import SimpleNamespace

import pytest

from session_store import InMemoryKeyValueStore, SessionStore

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-bytes"
PNG_B64 = base64.b64encode(PNG_BYTES).decode("utf-8")


@pytest.fixture
def anyio_backend():
    return "asyncio"


def image_response(data: str = PNG_B64):
    return SimpleNamespace(
        status="completed",
        output=[SimpleNamespace(type="image_generation_call", result=data)],
    )


def text_response(text: str, status: str = "completed"):
    return SimpleNamespace(
        status=status,
        output=[
            SimpleNamespace(
                type="message",
                content=[SimpleNamespace(type="output_text", text=text)],
            )
        ],
    )


class FakeResponsesAPI:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeClient:
    def __init__(self, *replies):
        self.responses = FakeResponsesAPI(replies)


@pytest.fixture
def fake_client():
    return FakeClient


@pytest.fixture
def responses_factory():
    return SimpleNamespace(image=image_response, text=text_response)


@pytest.fixture
def storage():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(storage):
    return SessionStore.load(storage)


@pytest.fixture
def png_b64():
    return PNG_B64
