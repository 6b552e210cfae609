"""Walk TestTaker → Booklet → Unit → {Scheme, Definition, Player} edges."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from .models import (
    BookletReferences,
    FileKind,
    SchemaResult,
    TestTakersReferences,
    UnitReferences,
)
from .normalization import normalise_token, token_variants
from .resource_index import ResourceIndex
from .versioning import VersionResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileStatus:
    """Whether a referenced file is present, plus its schema annotation."""

    filename: str
    exists: bool
    schema_valid: bool | None = None
    schema_errors: tuple[str, ...] | None = None
    resolved_as: str | None = None


@dataclass(frozen=True)
class BookletUnitGap:
    """Units referenced by an existing booklet that are not stored."""

    booklet: str
    missing_units: tuple[str, ...]


@dataclass(frozen=True)
class TierResult:
    """Validation outcome of one tier of a TestTaker's reference graph."""

    complete: bool
    missing: tuple[str, ...] = ()
    files: tuple[FileStatus, ...] = ()
    missing_units_per_booklet: tuple[BookletUnitGap, ...] = ()
    units_without_player: tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidationRecord:
    """Completeness of every tier reachable from one TestTakers file."""

    test_taker: str
    booklets: TierResult
    units: TierResult
    schemes: TierResult
    definitions: TierResult
    player: TierResult

    @property
    def complete(self) -> bool:
        return all(tier.complete for tier in self.tiers())

    def tiers(self) -> tuple[TierResult, ...]:
        return (self.booklets, self.units, self.schemes, self.definitions, self.player)

    @classmethod
    def placeholder(cls) -> "ValidationRecord":
        """Return the incomplete record rendered when a workspace has no rosters."""

        empty = TierResult(complete=False)
        return cls(
            test_taker="",
            booklets=empty,
            units=empty,
            schemes=empty,
            definitions=empty,
            player=empty,
        )


SchemaResults = Mapping[str, SchemaResult]


def schema_key(kind: FileKind | str, identifier: str) -> str:
    """Return the ``"{Kind}:{IDENTIFIER}"`` key used by schema-validation maps."""

    return f"{FileKind.parse(kind).value}:{normalise_token(identifier)}"


def normalise_schema_results(results: Mapping[str, SchemaResult]) -> dict[str, SchemaResult]:
    """Re-key ``results`` so kinds and identifiers compare like :func:`schema_key`.

    Keys without a ``Kind:`` prefix are taken to be coding schemes.
    """

    normalised: dict[str, SchemaResult] = {}
    for key, result in results.items():
        kind, separator, identifier = key.partition(":")
        try:
            normalised_key = (
                schema_key(kind, identifier)
                if separator
                else schema_key(FileKind.SCHEME, key)
            )
        except ValueError:
            normalised_key = schema_key(FileKind.SCHEME, key)
        normalised[normalised_key] = result
    return normalised


def build_validation_record(
    test_taker_id: str,
    references: TestTakersReferences,
    booklet_index: Mapping[str, BookletReferences],
    unit_index: Mapping[str, UnitReferences],
    resource_index: ResourceIndex,
    resolver: VersionResolver,
    schema_results: SchemaResults | None = None,
) -> ValidationRecord | None:
    """Return the validation record of one TestTakers file.

    ``booklet_index`` and ``unit_index`` are keyed by normalised identifier.
    Returns ``None`` when the roster references no booklet at all.
    """

    schema_results = schema_results or {}
    booklet_tokens = _unique(references.booklet_refs())
    if not booklet_tokens:
        return None

    booklet_files: list[FileStatus] = []
    missing_booklets: list[str] = []
    unit_tokens: dict[str, None] = {}
    gaps: list[BookletUnitGap] = []
    for booklet in booklet_tokens:
        booklet_refs = booklet_index.get(booklet)
        booklet_files.append(
            _with_schema(booklet, booklet_refs is not None, FileKind.BOOKLET, schema_results)
        )
        if booklet_refs is None:
            missing_booklets.append(booklet)
            continue
        units = _unique(booklet_refs.unit_refs)
        unit_tokens.update(dict.fromkeys(units))
        absent = tuple(unit for unit in units if unit not in unit_index)
        if absent:
            gaps.append(BookletUnitGap(booklet=booklet, missing_units=absent))

    unit_files: list[FileStatus] = []
    missing_units: list[str] = []
    units_without_player: list[str] = []
    scheme_tokens: dict[str, None] = {}
    definition_tokens: dict[str, None] = {}
    player_tokens: dict[str, None] = {}
    for unit in unit_tokens:
        unit_refs = unit_index.get(unit)
        unit_files.append(
            _with_schema(unit, unit_refs is not None, FileKind.UNIT, schema_results)
        )
        if unit_refs is None:
            missing_units.append(unit)
            continue
        if not unit_refs.has_player:
            units_without_player.append(unit)
        scheme_tokens.update(dict.fromkeys(_unique(unit_refs.coding_scheme_refs)))
        definition_tokens.update(dict.fromkeys(_unique(unit_refs.definition_refs)))
        player_tokens.update(dict.fromkeys(_unique(unit_refs.player_refs)))

    upstream_complete = not missing_booklets and not missing_units

    scheme_files = tuple(
        _with_schema(token, resource_index.exists(token), FileKind.SCHEME, schema_results)
        for token in scheme_tokens
    )
    definition_files = tuple(
        FileStatus(filename=token, exists=resource_index.exists(token))
        for token in definition_tokens
    )
    player_files = tuple(
        _player_status(token, resource_index, resolver) for token in player_tokens
    )

    return ValidationRecord(
        test_taker=test_taker_id,
        booklets=TierResult(
            complete=not missing_booklets,
            missing=tuple(missing_booklets),
            files=tuple(booklet_files),
        ),
        units=TierResult(
            complete=upstream_complete,
            missing=tuple(missing_units),
            files=tuple(unit_files),
            missing_units_per_booklet=tuple(gaps),
            units_without_player=tuple(units_without_player),
        ),
        schemes=_downstream_tier(scheme_files, upstream_complete),
        definitions=_downstream_tier(definition_files, upstream_complete),
        player=_downstream_tier(player_files, upstream_complete),
    )


def _downstream_tier(files: tuple[FileStatus, ...], upstream_complete: bool) -> TierResult:
    missing = tuple(status.filename for status in files if not status.exists)
    return TierResult(
        complete=upstream_complete and not missing,
        missing=missing,
        files=files,
    )


def _player_status(
    token: str, resource_index: ResourceIndex, resolver: VersionResolver
) -> FileStatus:
    hit = resource_index.lookup(token)
    if hit is not None:
        return FileStatus(filename=token, exists=True, resolved_as=hit)
    resolution = resolver.resolve(token)
    if not resolution.exists:
        logger.debug("Player %s is not stored under any compatible version", token)
    return FileStatus(
        filename=token,
        exists=resolution.exists,
        resolved_as=resolution.resolved_identifier,
    )


def _with_schema(
    token: str, exists: bool, kind: FileKind, schema_results: SchemaResults
) -> FileStatus:
    result = _find_schema_result(token, kind, schema_results)
    if result is None:
        return FileStatus(filename=token, exists=exists)
    return FileStatus(
        filename=token,
        exists=exists,
        schema_valid=result.schema_valid,
        schema_errors=None if result.schema_valid else tuple(result.errors),
    )


def _find_schema_result(
    token: str, kind: FileKind, schema_results: SchemaResults
) -> SchemaResult | None:
    if not schema_results:
        return None
    for variant in token_variants(token):
        result = schema_results.get(f"{kind.value}:{variant}")
        if result is not None:
            return result
    return None


def _unique(tokens: Iterable[str]) -> tuple[str, ...]:
    return tuple(
        dict.fromkeys(token for token in (normalise_token(raw) for raw in tokens) if token)
    )


__all__ = [
    "BookletUnitGap",
    "FileStatus",
    "SchemaResults",
    "TierResult",
    "ValidationRecord",
    "build_validation_record",
    "normalise_schema_results",
    "schema_key",
]
