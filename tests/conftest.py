"""Test configuration for the workspace validation project."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
TESTS = Path(__file__).resolve().parent
if str(TESTS) not in sys.path:
    sys.path.insert(0, str(TESTS))

from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from builders import WORKSPACE_ID, booklet_xml, roster_xml, stored, unit_xml
from testcenter_audit import (
    FileKind,
    InMemoryWorkspaceSource,
    Person,
    SchemaResult,
    StoredFile,
)


@pytest.fixture()
def complete_workspace() -> list[StoredFile]:
    """A roster whose every reference is satisfied, plus one superseded player build."""

    return [
        stored(
            "TESTTAKERS.XML",
            FileKind.TESTTAKERS,
            roster_xml(
                {
                    "class-a": [
                        ("alice", "run-hot-return", ["B1"]),
                        ("bob", "run-hot-return", ["B1"]),
                    ]
                }
            ),
            row_id=1,
        ),
        stored("B1", FileKind.BOOKLET, booklet_xml("B1", ["U1"]), filename="b1.xml", row_id=2),
        stored(
            "U1",
            FileKind.UNIT,
            unit_xml(
                "U1",
                scheme="U1.vocs",
                definition="U1.voud",
                player="IQB-PLAYER-ASPECT@2.6",
            ),
            filename="u1.xml",
            row_id=3,
        ),
        stored("U1.VOCS", FileKind.SCHEME, "{}", filename="U1.vocs", row_id=4),
        stored("U1.VOUD", FileKind.DEFINITION, "{}", filename="U1.voud", row_id=5),
        stored(
            "IQB-PLAYER-ASPECT-2.6.0.HTML",
            FileKind.PLAYER,
            "<html></html>",
            filename="iqb-player-aspect-2.6.0.html",
            row_id=6,
        ),
        stored(
            "IQB-PLAYER-ASPECT-2.6.3.HTML",
            FileKind.PLAYER,
            "<html></html>",
            filename="iqb-player-aspect-2.6.3.html",
            row_id=7,
        ),
    ]


@pytest.fixture()
def make_source() -> Any:
    """Factory fixture wrapping stored files in an in-memory workspace source."""

    def _factory(
        files: Sequence[StoredFile],
        *,
        schema_results: Mapping[str, SchemaResult] | None = None,
        persons: Sequence[Person] = (),
    ) -> InMemoryWorkspaceSource:
        return InMemoryWorkspaceSource(
            {WORKSPACE_ID: list(files)},
            schema_results={WORKSPACE_ID: dict(schema_results or {})},
            persons={WORKSPACE_ID: list(persons)},
        )

    return _factory
