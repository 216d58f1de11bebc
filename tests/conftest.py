"""
Shared test fixtures for cubeclient tests.
Patches config module to avoid loading a real .env or state file, and
provides an in-process transport so no test touches the network.
"""

import inspect
import json
import os
import sys

import pytest

# Add project root to path so imports work
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cubeclient import config  # noqa: E402
from cubeclient.client import ApiClient  # noqa: E402
from cubeclient.models import ApiResponse  # noqa: E402
from cubeclient.storage import MemoryStore  # noqa: E402

SECRETS = ("secret-current", "secret-previous")
FIXED_NOW = 1_700_000_000


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch, tmp_path):
    """Ensure every test starts with a clean config state.
    Prevents tests from reading the real .env or writing the real state file."""
    monkeypatch.setattr(config, "env", {})
    monkeypatch.setattr(config, "ENV_PATH", str(tmp_path / ".env"))
    monkeypatch.setattr(config, "BUILD_MODE", config.BUILD_MODE_DEBUG)
    monkeypatch.setattr(config, "SECRETS", ",".join(SECRETS))
    monkeypatch.setattr(config, "DEBUG_BASE_URL", config.DEFAULT_DEBUG_BASE_URL)
    monkeypatch.setattr(config, "STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setattr(config, "HTTP_LOG_ENABLED", False)
    monkeypatch.setattr(config, "HTTP_LOG_SAMPLE_RATE", 1.0)
    monkeypatch.setattr(config, "APP_NAME", None)
    monkeypatch.setattr(config, "APP_VERSION", None)
    monkeypatch.setattr(config, "BUILD_NUMBER", None)
    monkeypatch.setattr(config, "GIT_SHA", None)


def envelope_payload(player_id="player-1", token="token-abc", **player_fields):
    """JSON-ready CurrentPlayerEnvelope as the server would send it."""
    player = {
        "id": player_id,
        "accessToken": token,
        "displayName": "Blob",
        "deviceId": "device-1",
        "timeZone": "America/New_York",
        "sendDailyChallengeReminder": True,
        "sendDailyChallengeSummary": True,
        "createdAt": 1_600_000_000,
    }
    player.update(player_fields)
    return {"accessToken": token, "player": player}


def json_response(data, status=200):
    return ApiResponse(status=status, body=json.dumps(data).encode("utf-8"))


class FakeTransport:
    """Records requests; answers from a queue or a handler."""

    def __init__(self, handler=None):
        self.requests = []
        self.responses = []
        self.handler = handler

    def queue(self, *responses):
        self.responses.extend(responses)
        return self

    async def __call__(self, request):
        self.requests.append(request)
        if self.handler is not None:
            result = self.handler(request)
            if inspect.isawaitable(result):
                result = await result
        elif self.responses:
            result = self.responses.pop(0)
        else:
            result = ApiResponse(status=200, body=b"{}")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def make_client(transport, store):
    """Factory for ApiClient wired to the fake transport and memory store."""

    def _make(**kwargs):
        kwargs.setdefault("secrets", SECRETS)
        kwargs.setdefault("store", store)
        kwargs.setdefault("transport", transport)
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        return ApiClient(**kwargs)

    return _make
