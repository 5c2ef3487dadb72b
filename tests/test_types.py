"""Tests for the wire types and the build normalizer."""

import copy
from datetime import datetime, timedelta, timezone

import pytest

from teamcity_cli.core.types import (
    Build,
    Change,
    Property,
    Triggered,
    normalize_build,
    properties_to_dict,
    properties_to_list,
    to_bool,
)

RAW_BUILD = {
    "id": "4711",
    "buildTypeId": "Project_Build",
    "number": 123,
    "status": "SUCCESS",
    "state": "finished",
    "branchName": "main",
    "defaultBranch": "true",
    "personal": "false",
    "running": "false",
    "percentageComplete": "100",
    "href": "/app/rest/builds/id:4711",
    "webUrl": "https://ci.example.com/viewLog.html?buildId=4711",
    "queuedDate": "20240115T102500+0000",
    "startDate": "20240115T103000+0000",
    "finishDate": "20240115T104500+0100",
    "properties": {
        "count": 3,
        "property": [
            {"name": "env.A", "value": "1"},
            {"name": "env.B", "value": "2"},
            {"name": "env.A", "value": "3"},
        ],
    },
    "tags": {"count": 2, "tag": [{"name": "release"}, {"name": "nightly"}]},
    "triggered": {"type": "user", "date": "20240115T102500+0000", "user": {"username": "alice"}},
    "agent": {"id": 3, "name": "agent-3"},
}


def decoded_build() -> Build:
    return Build.from_dict(copy.deepcopy(RAW_BUILD))


class TestBuildFromDict:
    def test_keeps_wire_values_until_normalized(self):
        build = decoded_build()
        assert build.id == "4711"
        assert build.personal == "false"

    def test_unknown_fields_are_kept(self):
        assert decoded_build().extra == {"agent": {"id": 3, "name": "agent-3"}}

    def test_rejects_non_object(self):
        with pytest.raises(TypeError):
            Build.from_dict(["not", "a", "build"])


class TestNormalizeBuild:
    def test_coerces_fields(self):
        build = normalize_build(decoded_build())
        assert build.id == 4711
        assert build.number == "123"
        assert build.percentage_complete == 100
        assert build.default_branch is True
        assert build.personal is False
        assert build.running is False
        assert build.composite is False

    def test_parses_dates(self):
        build = normalize_build(decoded_build())
        assert build.start_date == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert build.finish_date.utcoffset() == timedelta(hours=1)

    def test_folds_properties_last_wins(self):
        build = normalize_build(decoded_build())
        assert build.properties == {"env.A": "3", "env.B": "2"}

    def test_tags_become_names(self):
        assert normalize_build(decoded_build()).tags == ["release", "nightly"]

    def test_triggered(self):
        triggered = normalize_build(decoded_build()).triggered
        assert isinstance(triggered, Triggered)
        assert triggered.username == "alice"
        assert triggered.date == datetime(2024, 1, 15, 10, 25, tzinfo=timezone.utc)

    def test_mutates_in_place(self):
        build = decoded_build()
        assert normalize_build(build) is build

    def test_idempotent(self):
        once = normalize_build(decoded_build())
        twice = normalize_build(normalize_build(decoded_build()))
        assert twice == once

    @pytest.mark.parametrize("name", ["count", "property"])
    def test_idempotent_with_envelope_like_property_names(self, name):
        raw = {
            "id": 1,
            "properties": {
                "count": 2,
                "property": [{"name": name, "value": "5"}, {"name": "x", "value": "1"}],
            },
        }
        once = normalize_build(Build.from_dict(raw))
        assert once.properties == {name: "5", "x": "1"}
        assert normalize_build(once).properties == {name: "5", "x": "1"}

    def test_minimal_build(self):
        build = normalize_build(Build.from_dict({"id": 1}))
        assert build.properties == {}
        assert build.tags == []
        assert build.triggered is None
        assert build.start_date is None
        assert build.running is False

    @pytest.mark.parametrize(
        "field,value",
        [("id", "abc"), ("running", "maybe"), ("startDate", "yesterday")],
    )
    def test_bad_values_raise(self, field, value):
        build = Build.from_dict({"id": 1, field: value})
        with pytest.raises((ValueError, TypeError)):
            normalize_build(build)

    def test_to_dict_is_json_friendly(self):
        data = normalize_build(decoded_build()).to_dict()
        assert data["start_date"] == "20240115T103000+0000"
        assert data["triggered"]["username"] == "alice"
        assert data["tags"] == ["release", "nightly"]

    def test_status_helpers(self):
        build = normalize_build(decoded_build())
        assert build.is_finished
        assert build.is_successful


class TestProperties:
    def test_list_preserves_mapping_order(self):
        props = properties_to_list({"b": "2", "a": "1"})
        assert [p.to_dict() for p in props] == [{"name": "b", "value": "2"}, {"name": "a", "value": "1"}]

    def test_none_is_empty(self):
        assert properties_to_list(None) == []
        assert properties_to_dict(None) == {}

    def test_bare_list(self):
        assert properties_to_dict([{"name": "x", "value": "1"}, Property("y", "2")]) == {"x": "1", "y": "2"}

    def test_empty_envelope(self):
        assert properties_to_dict({"count": 0}) == {}

    def test_folded_mapping_passes_through(self):
        assert properties_to_dict({"x": "1"}) == {"x": "1"}

    def test_folded_mapping_with_count_key(self):
        assert properties_to_dict({"count": "5", "property": "p"}) == {"count": "5", "property": "p"}

    def test_values_become_strings(self):
        assert properties_to_dict([{"name": "n", "value": 1}, {"name": "m"}]) == {"n": "1", "m": ""}


class TestCoercions:
    @pytest.mark.parametrize("value,expected", [(True, True), ("TRUE", True), ("false", False), (None, False)])
    def test_to_bool(self, value, expected):
        assert to_bool(value) is expected


class TestChange:
    def test_from_dict(self):
        change = Change.from_dict(
            {"id": 9, "version": "abc123", "username": "bob", "webUrl": "https://x/9", "files": {"count": 1}}
        )
        assert change.id == 9
        assert change.web_url == "https://x/9"
        assert change.extra == {"files": {"count": 1}}
