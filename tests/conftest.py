"""Pytest configuration - loads .env and provides a fake HTTP transport."""

import io
import json
import urllib.error
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from teamcity_cli.sdk import TeamCityClient

# Load .env from project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

HOST = "ci.example.com"
USERNAME = "bot"
PASSWORD = "s3cret"


class FakeResponse(io.BytesIO):
    """A file-like response body usable as a context manager."""

    status = 200


class FakeTransport:
    """
    Records requests and replays queued responses.

    Each queued item is bytes/str/dict/list (a 200 body), or an exception
    instance that open() raises.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.requests: list[Any] = []
        self.timeouts: list[float] = []

    def queue(self, response: Any) -> None:
        self.responses.append(response)

    def open(self, request, data=None, timeout=None):
        self.requests.append(request)
        self.timeouts.append(timeout)
        response = self.responses.pop(0) if self.responses else b""
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, (dict, list)):
            response = json.dumps(response)
        if isinstance(response, str):
            response = response.encode("utf-8")
        return FakeResponse(response)

    @property
    def last_request(self):
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last_request.data.decode("utf-8"))


def http_error(url: str, code: int, body: str = "") -> urllib.error.HTTPError:
    """Build an HTTPError with a readable body."""
    return urllib.error.HTTPError(url, code, "error", {}, io.BytesIO(body.encode("utf-8")))


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(transport: FakeTransport) -> TeamCityClient:
    return TeamCityClient(HOST, USERNAME, PASSWORD, transport=transport)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove TeamCity settings that a developer .env may have loaded."""
    for name in ("TEAMCITY_HOST", "TEAMCITY_USERNAME", "TEAMCITY_PASSWORD", "TEAMCITY_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
