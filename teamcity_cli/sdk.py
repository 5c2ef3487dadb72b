"""
TeamCity SDK - High-level client for build operations.

This layer provides a clean, typed interface for queueing, finding and
cancelling builds. Built on top of the core APIClient.
"""

import logging
from typing import Any

from teamcity_cli.core.client import APIClient, DecodeError, NotFoundError, Transport
from teamcity_cli.core.types import (
    Build,
    Change,
    normalize_build,
    properties_to_dict,
    properties_to_list,
)

logger = logging.getLogger(__name__)

REST_ROOT = "/httpAuth/app/rest"
SEARCH_FIELDS = "count,build(*,tags(tag),triggered(*),properties(property))"


def _parse_build(data: Any) -> Build:
    return normalize_build(Build.from_dict(data))


def _non_empty_build(data: Any) -> Build | None:
    if data == {}:
        return None
    return _parse_build(data)


def _parse_build_list(data: Any) -> list[Build]:
    if not isinstance(data, dict):
        raise TypeError(f"build list: expected object, got {type(data).__name__}")
    return [_parse_build(item) for item in data.get("build") or []]


def _parse_property_list(data: Any) -> dict[str, str]:
    if not isinstance(data, dict):
        raise TypeError(f"property list: expected object, got {type(data).__name__}")
    return properties_to_dict(data.get("property") or [])


def _parse_changes(data: Any) -> list[Change] | None:
    if not isinstance(data, dict):
        raise TypeError(f"change list: expected object, got {type(data).__name__}")
    changes = data.get("change")
    if changes is None:
        return None
    return [Change.from_dict(item) for item in changes]


class TeamCityClient:
    """
    High-level TeamCity client with typed methods.

    Example:
        client = TeamCityClient("ci.example.com", "bot", "secret")

        build = client.queue_build("Project_Build", branch_name="main")
        build = client.get_build(str(build.id))
        props = client.get_build_properties(str(build.id))
        client.cancel_build(build.id, "superseded")

    The client keeps no mutable state; concurrent calls are as safe as
    the transport they share.
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
        Initialize the TeamCity client.

        Args:
            host: Server host (or TEAMCITY_HOST env var)
            username: User name (or TEAMCITY_USERNAME env var)
            password: Password (or TEAMCITY_PASSWORD env var)
            transport: Object with ``open(request, timeout=...)``, e.g. a urllib opener
            timeout: Transport timeout in seconds

        """
        self._client = APIClient(
            host=host,
            username=username,
            password=password,
            transport=transport,
            timeout=timeout,
        )

    @property
    def host(self) -> str:
        """Get the configured server host."""
        return self._client.host

    # =========================================================================
    # Build Queue
    # =========================================================================

    def queue_build(
        self,
        build_type_id: str,
        branch_name: str = "",
        properties: dict[str, str] | None = None,
    ) -> Build:
        """
        Add a build of ``build_type_id`` to the queue.

        Args:
            build_type_id: Build configuration ID, passed through unchecked
            branch_name: Short branch name; sent as refs/heads/<branch_name>
            properties: Build parameters to set on the queued build

        Returns:
            The queued Build, normalized

        """
        payload: dict[str, Any] = {"properties": {}}
        if build_type_id:
            payload["buildTypeId"] = build_type_id
        props = [p.to_dict() for p in properties_to_list(properties)]
        if props:
            payload["properties"]["property"] = props
        if branch_name:
            payload["branchName"] = f"refs/heads/{branch_name}"

        build = self._client.post(f"{REST_ROOT}/buildQueue", payload, parser=_parse_build)
        if build is None:
            raise DecodeError(
                "queue build: response body decoded to no build",
                details={"build_type_id": build_type_id},
            )
        logger.debug("Queued build %s of %s", build.id, build_type_id)
        return build

    # =========================================================================
    # Builds
    # =========================================================================

    def search_build(self, locator: str) -> list[Build]:
        """
        Find builds matching a locator.

        Args:
            locator: Server build locator, e.g. "buildType:Foo,branch:main"

        Returns:
            Matching builds with tags, trigger info and properties (possibly empty)

        """
        path = f"{REST_ROOT}/builds/?locator={locator}&fields={SEARCH_FIELDS}"
        builds = self._client.get(path, parser=_parse_build_list)
        return builds or []

    def get_build(self, build_id: str) -> Build:
        """
        Get a build by ID.

        Raises:
            NotFoundError: If the server returned no build

        """
        build = self._client.get(f"{REST_ROOT}/builds/id:{build_id}", parser=_non_empty_build)
        if build is None:
            raise NotFoundError("build not found", details={"build_id": build_id})
        return build

    def get_build_properties(self, build_id: str) -> dict[str, str]:
        """Get the resulting (fully resolved) properties of a build."""
        path = f"{REST_ROOT}/builds/id:{build_id}/resulting-properties"
        props = self._client.get(path, parser=_parse_property_list)
        return props or {}

    def cancel_build(self, build_id: int, comment: str, read_into_queue: bool = True) -> None:
        """
        Cancel a build.

        Args:
            build_id: Numeric build ID
            comment: Cancellation comment shown in the build history
            read_into_queue: Put the build back into the queue after cancelling

        """
        body = {
            "buildCancelRequest": {
                "comment": comment,
                "readIntoQueue": read_into_queue,
            }
        }
        self._client.post(f"{REST_ROOT}/id:{int(build_id)}", body)

    # =========================================================================
    # Changes
    # =========================================================================

    def get_changes(self, path: str) -> list[Change]:
        """
        Fetch the change list at ``path``, e.g. a build's ``changes.href``.

        Raises:
            NotFoundError: If the response carries no change list

        """
        changes = self._client.get(path, parser=_parse_changes)
        if changes is None:
            raise NotFoundError("changes not found", details={"path": path})
        return changes
