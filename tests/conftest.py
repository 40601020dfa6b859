"""Shared fixtures and fakes for Banana Studio tests."""

import base64

import pytest

from banana_studio.generators import GenerationTransport
from banana_studio.models import BinaryImage, RawBinary


PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-body"
JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-body"

CREDENTIAL_ENV = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "POLLINATIONS_API_KEY",
    "POLLINATIONS_ENDPOINT",
    "BANANA_BACKEND",
)


class FakeTransport(GenerationTransport):
    """Replays scripted outcomes: each entry is returned, or raised if it is an exception.

    The last entry repeats once the script runs out.
    """

    def __init__(self, outcomes, downloads=None):
        self.outcomes = list(outcomes)
        self.downloads = dict(downloads or {})
        self.calls = []
        self.download_calls = []

    def name(self) -> str:
        return "fake"

    async def send(self, request, api_key):
        self.calls.append((request, api_key))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def download(self, url, api_key):
        self.download_calls.append(url)
        outcome = self.downloads[url]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep real credentials in the developer's shell out of tests."""
    for name in CREDENTIAL_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def png_image():
    return BinaryImage(data=PNG_BYTES, mime_type="image/png")


@pytest.fixture
def jpeg_data_url():
    return "data:image/jpeg;base64," + base64.b64encode(JPEG_BYTES).decode()


@pytest.fixture
def raw_png():
    return RawBinary(data=PNG_BYTES, mime_type="image/png")


@pytest.fixture
def sleep():
    return RecordingSleep()
