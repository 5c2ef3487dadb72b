"""
Core HTTP client for the TeamCity REST API.

Handles authentication, request serialization, response decoding and
error handling. Every call is one synchronous round trip; nothing is
retried.
"""

import base64
import http.client
import json
import logging
import os
import urllib.error
import urllib.request
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

logger = logging.getLogger(__name__)

# Configuration
DEFAULT_TIMEOUT = 60
BODY_PREVIEW_LIMIT = 1000

T = TypeVar("T")


class TeamCityError(Exception):
    """Base error class for TeamCity client errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result


class TransportError(TeamCityError):
    """The request never completed: connection failure, timeout, broken read."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class SerializeError(TeamCityError):
    """The request body could not be encoded as JSON."""


class DecodeError(TeamCityError):
    """The response body could not be decoded into the expected shape."""


class NotFoundError(TeamCityError):
    """The server returned no value where a single entity was expected."""


class APIError(TeamCityError):
    """The server answered with a non-2xx HTTP status."""

    def __init__(self, message: str, status: int = 0, details: dict | None = None):
        super().__init__(message, details)
        self.status = status

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = super().to_dict()
        if self.status:
            result["status"] = self.status
        return result


class ValidationError(TeamCityError):
    """Validation error for local input/configuration issues (not API errors)."""


class Transport(Protocol):
    """Anything that can open a urllib Request, e.g. an OpenerDirector."""

    def open(self, fullurl: urllib.request.Request, data: bytes | None = None, timeout: float = ...) -> Any: ...


def truncate(text: str, limit: int = BODY_PREVIEW_LIMIT) -> str:
    """Return at most ``limit`` leading characters of ``text``."""
    return text[:limit]


def _env_timeout() -> float:
    value = os.environ.get("TEAMCITY_TIMEOUT")
    if not value:
        return DEFAULT_TIMEOUT
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"TEAMCITY_TIMEOUT must be a number of seconds, got {value!r}") from None


def normalize_host(host: str) -> str:
    """Strip any scheme and trailing slash; requests always go over https."""
    host = host.strip()
    for scheme in ("https://", "http://"):
        if host.lower().startswith(scheme):
            host = host[len(scheme) :]
            break
    return host.rstrip("/")


class APIClient:
    """
    Low-level HTTP client for the TeamCity REST API.

    Handles:
    - Basic authentication with username/password
    - JSON request bodies and JSON response decoding
    - Mapping transport, encoding and decoding failures to typed errors

    The transport is injected and defaults to a fresh urllib opener.
    """

    def __init__(
        self,
        host: str | None = None,
        username: str | None = None,
        password: str | None = None,
        transport: Transport | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the API client.

        Args:
            host: Server host, optionally with port (or TEAMCITY_HOST env var)
            username: User name (or TEAMCITY_USERNAME env var)
            password: Password or access token (or TEAMCITY_PASSWORD env var)
            transport: Object with an ``open(request, timeout=...)`` method
            timeout: Transport timeout in seconds (or TEAMCITY_TIMEOUT env var)

        """
        self._host = normalize_host(host if host is not None else os.environ.get("TEAMCITY_HOST", ""))
        self._username = username if username is not None else os.environ.get("TEAMCITY_USERNAME")
        self._password = password if password is not None else os.environ.get("TEAMCITY_PASSWORD")
        self._transport = transport if transport is not None else urllib.request.build_opener()
        self._timeout = timeout if timeout is not None else _env_timeout()

    @property
    def host(self) -> str:
        return self._host

    @property
    def username(self) -> str | None:
        return self._username

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def timeout(self) -> float:
        return self._timeout

    def _ensure_configured(self) -> None:
        """Ensure host and credentials are configured."""
        if not self._host:
            raise ValidationError("TEAMCITY_HOST environment variable not set")
        if not self._username or self._password is None:
            raise ValidationError("TEAMCITY_USERNAME and TEAMCITY_PASSWORD environment variables not set")

    def build_url(self, path: str) -> str:
        """Build the full https URL for a server-relative path. Carries no credentials."""
        return f"https://{self._host}{path}"

    def _auth_header(self) -> str:
        token = base64.b64encode(f"{self._username}:{self._password}".encode()).decode("ascii")
        return f"Basic {token}"

    def _build_request(self, method: str, path: str, data: Any = None) -> urllib.request.Request:
        """Build an authenticated request, serializing ``data`` when given."""
        self._ensure_configured()

        headers = {
            "Accept": "application/json",
            "Authorization": self._auth_header(),
        }

        body = None
        if data is not None:
            try:
                body = json.dumps(data).encode("utf-8")
            except (TypeError, ValueError) as e:
                raise SerializeError(f"marshaling data: {e}") from e
            headers["Content-Type"] = "application/json"

        return urllib.request.Request(self.build_url(path), data=body, headers=headers, method=method)

    def execute(self, method: str, path: str, data: Any = None) -> bytes:
        """
        Send one request and return the raw response body.

        Args:
            method: HTTP method (GET, POST)
            path: Server-relative path, including any query string
            data: JSON-serializable request body, or None for no body

        Returns:
            Raw response bytes

        Raises:
            SerializeError: If ``data`` cannot be encoded
            TransportError: On connection errors and timeouts
            APIError: On a non-2xx HTTP status

        """
        req = self._build_request(method, path, data)
        logger.info("Sending %s request to %s", method, req.full_url)

        try:
            with self._transport.open(req, timeout=self._timeout) as response:
                return response.read()

        except urllib.error.HTTPError as e:
            try:
                error_body = e.read().decode("utf-8", errors="replace")
            except (OSError, http.client.HTTPException):
                error_body = ""
            preview = truncate(error_body)
            raise APIError(
                f"HTTP {e.code} from {req.full_url}: {preview or e.reason}",
                status=e.code,
                details={"body": preview} if preview else None,
            ) from e

        except urllib.error.URLError as e:
            raise TransportError(f"Connection error: {e.reason}", cause=e) from e

        except TimeoutError as e:
            raise TransportError(f"Request timed out after {self._timeout} seconds", cause=e) from e

        except (OSError, http.client.HTTPException) as e:
            raise TransportError(f"Transport error: {e}", cause=e) from e

    def execute_into(
        self,
        method: str,
        path: str,
        data: Any = None,
        parser: Callable[[Any], T] | None = None,
    ) -> T | None:
        """
        Send one request and decode the response with ``parser``.

        The parser receives the decoded JSON value and returns the typed
        result. Without a parser the body is read and discarded. An empty
        body or a JSON ``null`` decodes to None without calling the parser.

        Raises:
            DecodeError: If the body is not JSON or the parser rejects its shape

        """
        raw = self.execute(method, path, data)
        if parser is None:
            return None

        text = raw.decode("utf-8", errors="replace")
        if not text.strip():
            return None

        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"json unmarshal: {e} ({truncate(text)!r})", details={"body": truncate(text)}) from e

        if decoded is None:
            return None

        try:
            return parser(decoded)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DecodeError(
                f"json unmarshal: {type(e).__name__}: {e} ({truncate(text)!r})",
                details={"body": truncate(text)},
            ) from e

    # =========================================================================
    # HTTP Methods
    # =========================================================================

    def get(self, path: str, parser: Callable[[Any], T] | None = None) -> T | None:
        """Make a GET request."""
        return self.execute_into("GET", path, parser=parser)

    def post(self, path: str, data: Any = None, parser: Callable[[Any], T] | None = None) -> T | None:
        """Make a POST request."""
        return self.execute_into("POST", path, data, parser=parser)
