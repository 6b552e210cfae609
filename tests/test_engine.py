from __future__ import annotations

import logging

import pytest

from builders import WORKSPACE_ID, booklet_xml, roster_xml, stored

from testcenter_audit import (
    FileKind,
    InMemoryWorkspaceSource,
    Person,
    SchemaResult,
    UnitReferenceCache,
    ValidationSettings,
    WorkspaceValidationError,
    WorkspaceValidator,
)


def test_complete_workspace_is_reported_complete(complete_workspace, make_source) -> None:
    report = WorkspaceValidator(make_source(complete_workspace)).validate(WORKSPACE_ID)

    payload = report.to_payload()

    assert report.complete
    assert payload["testTakersFound"] is True
    assert "unusedTestFiles" not in payload
    assert "filteredTestTakers" not in payload
    (row,) = payload["validationResults"]
    assert row["testTaker"] == "TESTTAKERS.XML"
    assert row["player"]["files"] == [
        {
            "filename": "IQB-PLAYER-ASPECT-2.6",
            "exists": True,
            "resolvedAs": "IQB-PLAYER-ASPECT-2.6.3.HTML",
        }
    ]


def test_validation_is_idempotent(complete_workspace, make_source) -> None:
    validator = WorkspaceValidator(make_source(complete_workspace))

    first = validator.validate(WORKSPACE_ID).to_payload()
    second = validator.validate(WORKSPACE_ID).to_payload()

    assert first == second


def test_unreached_files_are_listed_as_unused(complete_workspace, make_source) -> None:
    files = complete_workspace + [
        stored("S2.VOCS", FileKind.SCHEME, "{}", filename="S2.vocs", row_id=8),
        stored(
            "OTHER-PLAYER-1.0.0.HTML",
            FileKind.PLAYER,
            "<html></html>",
            filename="other-player-1.0.0.html",
            row_id=9,
        ),
    ]

    report = WorkspaceValidator(make_source(files)).validate(WORKSPACE_ID)

    # Unused files do not make the reference graph incomplete.
    assert report.complete
    assert report.to_payload()["unusedTestFiles"] == [
        {"id": 8, "fileId": "S2.VOCS", "filename": "S2.vocs", "fileType": "Scheme"},
        {
            "id": 9,
            "fileId": "OTHER-PLAYER-1.0.0.HTML",
            "filename": "other-player-1.0.0.html",
            "fileType": "Player",
        },
    ]


def test_missing_booklet_scenario(make_source) -> None:
    files = [
        stored(
            "TESTTAKERS.XML",
            FileKind.TESTTAKERS,
            roster_xml({"g": [("alice", "run-hot-return", ["B1"])]}),
            row_id=1,
        ),
        stored("S1.VOCS", FileKind.SCHEME, "{}", row_id=2),
    ]

    report = WorkspaceValidator(make_source(files)).validate(WORKSPACE_ID)
    payload = report.to_payload()

    assert not report.complete
    (row,) = payload["validationResults"]
    assert row["booklets"]["missing"] == ["B1"]
    assert row["units"]["complete"] is False
    assert row["schemes"]["complete"] is False
    assert [entry["fileId"] for entry in payload["unusedTestFiles"]] == ["S1.VOCS"]


def test_workspace_without_rosters_returns_placeholder(make_source) -> None:
    files = [stored("B1", FileKind.BOOKLET, booklet_xml("B1", ["U1"]), row_id=1)]

    report = WorkspaceValidator(make_source(files)).validate(WORKSPACE_ID)
    payload = report.to_payload()

    assert payload["testTakersFound"] is False
    assert not report.complete
    assert "unusedTestFiles" not in payload
    assert payload["validationResults"][0]["testTaker"] == ""


def test_roster_paging_covers_every_roster(complete_workspace, make_source) -> None:
    extra = [
        stored(
            f"ROSTER-{index}.XML",
            FileKind.TESTTAKERS,
            roster_xml({"g": [(f"user-{index}", "run-hot-return", ["B1"])]}),
            row_id=100 + index,
        )
        for index in range(5)
    ]
    settings = ValidationSettings(
        testtaker_batch_size=2, booklet_batch_size=1, unit_batch_size=1, resource_batch_size=3
    )

    report = WorkspaceValidator(
        make_source(complete_workspace + extra), settings=settings
    ).validate(WORKSPACE_ID)

    assert [row.test_taker for row in report.validation_results] == [
        "TESTTAKERS.XML",
        "ROSTER-0.XML",
        "ROSTER-1.XML",
        "ROSTER-2.XML",
        "ROSTER-3.XML",
        "ROSTER-4.XML",
    ]
    assert report.complete
    assert report.unused_test_files is None


def test_filtered_logins_skip_persons_not_considered(make_source) -> None:
    roster = roster_xml(
        {
            "g": [
                ("alice", "run-hot-return", ["B1"]),
                ("carol", "run-review", ["B1"]),
                ("dave", "run-demo", ["B1"]),
                ("erin", "run-trial", ["B1"]),
            ]
        }
    )
    second = roster_xml({"h": [("dave", "run-demo", ["B1"])]})
    files = [
        stored("A.XML", FileKind.TESTTAKERS, roster, row_id=1),
        stored("B.XML", FileKind.TESTTAKERS, second, row_id=2),
        stored("B1", FileKind.BOOKLET, booklet_xml("B1", []), row_id=3),
    ]
    persons = [
        Person(group="g", login="carol", consider=False),
        Person(group="g", login="dave", consider=True),
    ]

    report = WorkspaceValidator(make_source(files, persons=persons)).validate(WORKSPACE_ID)
    payload = report.to_payload()

    assert payload["filteredTestTakers"] == [
        {"testTaker": "A.XML", "mode": "run-demo", "login": "dave"},
        {"testTaker": "B.XML", "mode": "run-demo", "login": "dave"},
    ]
    assert payload["duplicateTestTakers"] == [
        {
            "login": "dave",
            "occurrences": [
                {"testTaker": "A.XML", "mode": "run-demo"},
                {"testTaker": "B.XML", "mode": "run-demo"},
            ],
        }
    ]


def test_schema_results_are_attached_and_summarised(
    complete_workspace, make_source, caplog: pytest.LogCaptureFixture
) -> None:
    schema_results = {
        "Unit:U1": SchemaResult(False, ("e1", "e2", "e3", "e4", "e5", "e6")),
        "Booklet:B1": SchemaResult(False, ("b",)),
        "Booklet:B2": SchemaResult(False, ("b",)),
        "Booklet:B3": SchemaResult(False, ("b",)),
        "Scheme:U1.VOCS": SchemaResult(True),
    }
    settings = ValidationSettings(schema_preview_limit=2)

    with caplog.at_level(logging.INFO, logger="testcenter_audit.engine"):
        report = WorkspaceValidator(
            make_source(complete_workspace, schema_results=schema_results),
            settings=settings,
        ).validate(WORKSPACE_ID)

    row = report.to_payload()["validationResults"][0]
    assert row["units"]["files"][0]["schemaErrors"] == ["e1", "e2", "e3", "e4", "e5", "e6"]
    assert row["schemes"]["files"][0]["schemaValid"] is True
    assert "Booklet schema validation: 1 more failed file(s) not logged" in caplog.text
    assert "Scheme schema validation results for workspace 7: total=1, ok=1, failed=0" in (
        caplog.text
    )
    assert '"errors": ["e1", "e2", "e3", "e4", "e5"]' in caplog.text


def test_unit_cache_is_reused_between_runs(complete_workspace, make_source) -> None:
    cache = UnitReferenceCache()
    validator = WorkspaceValidator(make_source(complete_workspace), cache=cache)

    validator.validate(WORKSPACE_ID)
    validator.validate(WORKSPACE_ID)

    assert cache.misses == 1
    assert cache.hits == 1


def test_malformed_unit_keeps_its_identity(make_source) -> None:
    files = [
        stored(
            "TESTTAKERS.XML",
            FileKind.TESTTAKERS,
            roster_xml({"g": [("alice", "run-hot-return", ["B1"])]}),
            row_id=1,
        ),
        stored("B1", FileKind.BOOKLET, booklet_xml("B1", ["U1"]), row_id=2),
        stored("U1", FileKind.UNIT, "<Unit><Metadata>", row_id=3),
    ]

    report = WorkspaceValidator(make_source(files)).validate(WORKSPACE_ID)
    row = report.validation_results[0]

    assert row.units.complete
    assert row.units.units_without_player == ["U1"]
    assert report.unused_test_files is None


class _FailingSource(InMemoryWorkspaceSource):
    def list_files(self, workspace_id, kinds=None, *, offset=0, limit=None):
        raise RuntimeError("storage unavailable")


def test_source_failures_are_wrapped(caplog: pytest.LogCaptureFixture) -> None:
    validator = WorkspaceValidator(_FailingSource())

    with caplog.at_level(logging.ERROR, logger="testcenter_audit.engine"):
        with pytest.raises(WorkspaceValidationError) as excinfo:
            validator.validate(WORKSPACE_ID)

    assert "workspace 7" in str(excinfo.value)
    assert "storage unavailable" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert "Error during test file validation" in caplog.text


def test_preload_builds_shared_indices(complete_workspace, make_source) -> None:
    workspace = WorkspaceValidator(make_source(complete_workspace)).preload(WORKSPACE_ID)

    assert set(workspace.booklets) == {"B1"}
    assert workspace.units["U1"].player_refs == ("IQB-PLAYER-ASPECT-2.6",)
    assert "u1.vocs" in workspace.resources
    assert workspace.resolver.resolve("IQB-PLAYER-ASPECT-2.6.0").resolved_identifier == (
        "IQB-PLAYER-ASPECT-2.6.0.HTML"
    )


def test_empty_cache_is_consulted_and_filled(complete_workspace, make_source) -> None:
    cache = UnitReferenceCache()
    validator = WorkspaceValidator(make_source(complete_workspace), cache=cache)

    validator.validate(WORKSPACE_ID)

    assert (cache.hits, cache.misses, len(cache)) == (0, 1, 1)

    cache.clear()
    validator.validate(WORKSPACE_ID)

    assert (cache.hits, cache.misses, len(cache)) == (0, 1, 1)
