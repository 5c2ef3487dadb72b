"""
Core types for the TeamCity REST API.

These dataclasses mirror the JSON representations the server returns.
Builds arrive with loosely-typed fields (ids as strings, booleans as
"true"/"false", timestamps in TeamCity's compact format) and are passed
through normalize_build() before they reach a caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

TEAMCITY_DATE_FORMAT = "%Y%m%dT%H%M%S%z"

# =============================================================================
# Field coercions
# =============================================================================


def to_int(value: Any) -> int:
    """Coerce an int or numeric string to int."""
    if isinstance(value, bool):
        raise TypeError(f"expected integer, got bool {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f"expected integer, got {type(value).__name__}")


def to_bool(value: Any) -> bool:
    """Coerce a bool or "true"/"false" string to bool. Absent means False."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        raise ValueError(f"invalid boolean {value!r}")
    raise TypeError(f"expected boolean, got {type(value).__name__}")


def to_datetime(value: Any) -> datetime | None:
    """Parse a TeamCity timestamp such as 20240115T103000+0000."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.strptime(value, TEAMCITY_DATE_FORMAT)
    raise TypeError(f"expected timestamp, got {type(value).__name__}")


def _format_datetime(value: datetime | None) -> str | None:
    return value.strftime(TEAMCITY_DATE_FORMAT) if value else None


# =============================================================================
# Property Types
# =============================================================================


@dataclass
class Property:
    """A build parameter (name/value pair)."""

    name: str
    value: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Property":
        """Create from API response dict."""
        value = data.get("value")
        return cls(name=str(data["name"]), value="" if value is None else str(value))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for API request."""
        return {"name": self.name, "value": self.value}


def properties_to_list(properties: dict[str, str] | None) -> list[Property]:
    """Flatten a mapping into Property pairs, in the mapping's iteration order."""
    return [Property(name, value) for name, value in (properties or {}).items()]


def _is_property_envelope(raw: dict[str, Any]) -> bool:
    # A folded mapping only holds string values, so a list/null "property"
    # or an integer "count" marks the wire envelope.
    if "property" in raw:
        return raw["property"] is None or isinstance(raw["property"], list)
    count = raw.get("count")
    return isinstance(count, int) and not isinstance(count, bool)


def properties_to_dict(raw: Any) -> dict[str, str]:
    """
    Fold a wire property collection into a mapping.

    Accepts the server's {"count": n, "property": [...]} envelope, a bare
    list of {"name", "value"} entries or an already folded mapping.
    Duplicate names keep the value of the last occurrence.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict) and not _is_property_envelope(raw):
        return {str(k): str(v) for k, v in raw.items()}
    entries = raw.get("property") if isinstance(raw, dict) else raw
    result: dict[str, str] = {}
    for entry in entries or []:
        prop = entry if isinstance(entry, Property) else Property.from_dict(entry)
        result[prop.name] = prop.value
    return result


# =============================================================================
# Build Types
# =============================================================================


@dataclass
class Triggered:
    """Who or what triggered a build."""

    type: str | None = None
    date: datetime | str | None = None
    username: str | None = None
    details: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Triggered":
        """Create from API response dict."""
        if not isinstance(data, dict):
            raise TypeError(f"triggered: expected object, got {type(data).__name__}")
        known = {"type", "date", "user", "details"}
        user = data.get("user") or {}
        return cls(
            type=data.get("type"),
            date=data.get("date"),
            username=user.get("username") if isinstance(user, dict) else None,
            details=data.get("details"),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        date = self.date if isinstance(self.date, str) else _format_datetime(self.date)
        return {
            "type": self.type,
            "date": date,
            "username": self.username,
            "details": self.details,
        }


_BUILD_FIELDS = {
    "id": "id",
    "buildTypeId": "build_type_id",
    "number": "number",
    "status": "status",
    "state": "state",
    "statusText": "status_text",
    "branchName": "branch_name",
    "defaultBranch": "default_branch",
    "personal": "personal",
    "running": "running",
    "composite": "composite",
    "percentageComplete": "percentage_complete",
    "href": "href",
    "webUrl": "web_url",
    "queuedDate": "queued_date",
    "startDate": "start_date",
    "finishDate": "finish_date",
    "properties": "properties",
    "tags": "tags",
    "triggered": "triggered",
}


@dataclass
class Build:
    """
    One build instance on the server.

    Right after from_dict() the fields hold whatever the server sent;
    normalize_build() turns them into their canonical types. Keys the
    server sends that are not modeled here are kept in ``extra``.
    """

    id: Any = None
    build_type_id: str | None = None
    number: Any = None
    status: str | None = None
    state: str | None = None
    status_text: str | None = None
    branch_name: str | None = None
    default_branch: Any = None
    personal: Any = None
    running: Any = None
    composite: Any = None
    percentage_complete: Any = None
    href: str | None = None
    web_url: str | None = None
    queued_date: Any = None
    start_date: Any = None
    finish_date: Any = None
    properties: Any = field(default_factory=dict)
    tags: Any = field(default_factory=list)
    triggered: Any = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_finished(self) -> bool:
        """Check if the build has finished running."""
        return self.state == "finished"

    @property
    def is_successful(self) -> bool:
        """Check if the build finished with SUCCESS status."""
        return self.is_finished and self.status == "SUCCESS"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Build":
        """Create from API response dict, without normalizing."""
        if not isinstance(data, dict):
            raise TypeError(f"build: expected object, got {type(data).__name__}")
        kwargs = {attr: data[key] for key, attr in _BUILD_FIELDS.items() if key in data}
        kwargs["extra"] = {k: v for k, v in data.items() if k not in _BUILD_FIELDS}
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert a normalized build to a JSON-friendly dict."""
        return {
            "id": self.id,
            "build_type_id": self.build_type_id,
            "number": self.number,
            "status": self.status,
            "state": self.state,
            "status_text": self.status_text,
            "branch_name": self.branch_name,
            "personal": self.personal,
            "running": self.running,
            "percentage_complete": self.percentage_complete,
            "web_url": self.web_url,
            "queued_date": _format_datetime(self.queued_date),
            "start_date": _format_datetime(self.start_date),
            "finish_date": _format_datetime(self.finish_date),
            "properties": dict(self.properties),
            "tags": list(self.tags),
            "triggered": self.triggered.to_dict() if self.triggered else None,
        }


def _tag_names(raw: Any) -> list[str]:
    if raw is None:
        return []
    entries = raw.get("tag") if isinstance(raw, dict) else raw
    names = []
    for entry in entries or []:
        names.append(entry["name"] if isinstance(entry, dict) else str(entry))
    return names


def normalize_build(build: Build) -> Build:
    """
    Convert loosely-typed wire fields on ``build`` to canonical types in place.

    Safe to apply more than once: values already in canonical form are
    left unchanged. Returns the same Build for chaining.
    """
    if build.id is not None:
        build.id = to_int(build.id)
    if build.number is not None:
        build.number = str(build.number)
    if build.percentage_complete is not None:
        build.percentage_complete = to_int(build.percentage_complete)
    if build.default_branch is not None:
        build.default_branch = to_bool(build.default_branch)
    build.personal = to_bool(build.personal)
    build.running = to_bool(build.running)
    build.composite = to_bool(build.composite)

    build.queued_date = to_datetime(build.queued_date)
    build.start_date = to_datetime(build.start_date)
    build.finish_date = to_datetime(build.finish_date)

    build.properties = properties_to_dict(build.properties)
    build.tags = _tag_names(build.tags)

    if isinstance(build.triggered, dict):
        build.triggered = Triggered.from_dict(build.triggered)
    if build.triggered is not None:
        build.triggered.date = to_datetime(build.triggered.date)
    return build


# =============================================================================
# Change Types
# =============================================================================


@dataclass
class Change:
    """A VCS change associated with a build."""

    id: int | str | None = None
    version: str | None = None
    username: str | None = None
    date: str | None = None
    comment: str | None = None
    href: str | None = None
    web_url: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Change":
        """Create from API response dict."""
        if not isinstance(data, dict):
            raise TypeError(f"change: expected object, got {type(data).__name__}")
        known = {"id", "version", "username", "date", "comment", "href", "webUrl"}
        return cls(
            id=data.get("id"),
            version=data.get("version"),
            username=data.get("username"),
            date=data.get("date"),
            comment=data.get("comment"),
            href=data.get("href"),
            web_url=data.get("webUrl"),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        return {
            "id": self.id,
            "version": self.version,
            "username": self.username,
            "date": self.date,
            "comment": self.comment,
            "web_url": self.web_url,
        }
