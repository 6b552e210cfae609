"""Report models and the assembly of the final workspace validation report."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import UnusedFile
from .reachability import FileStatus, TierResult, ValidationRecord


class _ReportModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-serialisable camelCase payload, omitting unset sections."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FileStatusResource(_ReportModel):
    """Presence and schema status of one referenced file."""

    filename: str
    exists: bool
    schema_valid: bool | None = None
    schema_errors: list[str] | None = None
    resolved_as: str | None = None


class BookletUnitGapResource(_ReportModel):
    booklet: str
    missing_units: list[str] = Field(default_factory=list)


class TierResultResource(_ReportModel):
    """Completeness of one tier."""

    complete: bool
    missing: list[str] = Field(default_factory=list)
    files: list[FileStatusResource] = Field(default_factory=list)
    missing_units_per_booklet: list[BookletUnitGapResource] | None = None
    units_without_player: list[str] | None = None


class ValidationRecordResource(_ReportModel):
    """Validation outcome for a single TestTakers file."""

    test_taker: str
    booklets: TierResultResource
    units: TierResultResource
    schemes: TierResultResource
    definitions: TierResultResource
    player: TierResultResource


class FilteredTestTakerResource(_ReportModel):
    """A login whose mode will not yield considered responses."""

    test_taker: str
    mode: str
    login: str


class LoginOccurrenceResource(_ReportModel):
    test_taker: str
    mode: str


class DuplicateTestTakerResource(_ReportModel):
    """A login name that appears more than once across rosters."""

    login: str
    occurrences: list[LoginOccurrenceResource]


class UnusedFileResource(_ReportModel):
    """A stored file no TestTaker reaches."""

    id: int | None = None
    file_id: str
    filename: str
    file_type: str


class FileValidationReport(_ReportModel):
    """Hierarchical result of validating every test file of a workspace."""

    test_takers_found: bool
    filtered_test_takers: list[FilteredTestTakerResource] | None = None
    duplicate_test_takers: list[DuplicateTestTakerResource] | None = None
    unused_test_files: list[UnusedFileResource] | None = None
    validation_results: list[ValidationRecordResource]

    @property
    def complete(self) -> bool:
        """Return ``True`` when rosters exist and every tier of every record is complete."""

        return self.test_takers_found and all(
            all(
                tier.complete
                for tier in (
                    record.booklets,
                    record.units,
                    record.schemes,
                    record.definitions,
                    record.player,
                )
            )
            for record in self.validation_results
        )


@dataclass(frozen=True)
class LoginOccurrence:
    """A login seen in a roster, recorded for duplicate and filter reports."""

    login: str
    test_taker: str
    mode: str


def detect_duplicate_logins(
    occurrences: Iterable[LoginOccurrence],
) -> list[DuplicateTestTakerResource]:
    """Return every login name that occurs more than once, in first-seen order."""

    grouped: dict[str, list[LoginOccurrenceResource]] = defaultdict(list)
    for occurrence in occurrences:
        grouped[occurrence.login].append(
            LoginOccurrenceResource(test_taker=occurrence.test_taker, mode=occurrence.mode)
        )
    return [
        DuplicateTestTakerResource(login=login, occurrences=entries)
        for login, entries in grouped.items()
        if len(entries) > 1
    ]


def record_to_resource(record: ValidationRecord) -> ValidationRecordResource:
    return ValidationRecordResource(
        test_taker=record.test_taker,
        booklets=_tier_resource(record.booklets),
        units=_tier_resource(record.units, with_unit_details=True),
        schemes=_tier_resource(record.schemes),
        definitions=_tier_resource(record.definitions),
        player=_tier_resource(record.player),
    )


def assemble_report(
    records: Sequence[ValidationRecord],
    *,
    test_takers_found: bool,
    filtered: Sequence[LoginOccurrence] = (),
    duplicates: Sequence[DuplicateTestTakerResource] = (),
    unused: Sequence[UnusedFile] = (),
) -> FileValidationReport:
    """Fold the per-roster records and workspace findings into one report.

    When there are no records a single incomplete placeholder record is
    returned, so consumers always have a row to render. Empty optional
    sections are left unset.
    """

    rows = list(records) or [ValidationRecord.placeholder()]
    return FileValidationReport(
        test_takers_found=test_takers_found,
        filtered_test_takers=[
            FilteredTestTakerResource(
                test_taker=item.test_taker, mode=item.mode, login=item.login
            )
            for item in filtered
        ]
        or None,
        duplicate_test_takers=list(duplicates) or None,
        unused_test_files=[
            UnusedFileResource(
                id=item.row_id,
                file_id=item.file_id,
                filename=item.filename,
                file_type=item.file_type,
            )
            for item in unused
        ]
        or None,
        validation_results=[record_to_resource(record) for record in rows],
    )


def _tier_resource(tier: TierResult, *, with_unit_details: bool = False) -> TierResultResource:
    return TierResultResource(
        complete=tier.complete,
        missing=list(tier.missing),
        files=[_file_resource(status) for status in tier.files],
        missing_units_per_booklet=[
            BookletUnitGapResource(booklet=gap.booklet, missing_units=list(gap.missing_units))
            for gap in tier.missing_units_per_booklet
        ]
        if with_unit_details
        else None,
        units_without_player=list(tier.units_without_player) if with_unit_details else None,
    )


def _file_resource(status: FileStatus) -> FileStatusResource:
    return FileStatusResource(
        filename=status.filename,
        exists=status.exists,
        schema_valid=status.schema_valid,
        schema_errors=list(status.schema_errors) if status.schema_errors is not None else None,
        resolved_as=status.resolved_as,
    )


__all__ = [
    "DuplicateTestTakerResource",
    "FileStatusResource",
    "FileValidationReport",
    "FilteredTestTakerResource",
    "LoginOccurrence",
    "LoginOccurrenceResource",
    "TierResultResource",
    "UnusedFileResource",
    "ValidationRecordResource",
    "assemble_report",
    "detect_duplicate_logins",
    "record_to_resource",
]
