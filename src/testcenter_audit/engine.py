"""Run orchestration: preload indices, walk every roster, reconcile unused files."""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from .cache import UnitReferenceCache
from .config import ValidationSettings
from .extractors import extract_booklet, extract_test_takers, extract_unit
from .models import (
    CONSIDERED_LOGIN_MODES,
    BookletReferences,
    FileKind,
    SchemaResult,
    StoredFile,
    UnitReferences,
)
from .normalization import normalise_token
from .reachability import (
    ValidationRecord,
    build_validation_record,
    normalise_schema_results,
)
from .reconciler import find_unused
from .report import (
    FileValidationReport,
    LoginOccurrence,
    assemble_report,
    detect_duplicate_logins,
)
from .resource_index import ResourceIndex
from .sources import WorkspaceSource, iter_files, iter_pages
from .versioning import VersionResolver

logger = logging.getLogger(__name__)


class WorkspaceValidationError(RuntimeError):
    """Raised when a validation run cannot read the data it depends on."""


@dataclass(frozen=True)
class PreloadedWorkspace:
    """Read-only indices shared by every roster of one run."""

    booklets: Mapping[str, BookletReferences]
    units: Mapping[str, UnitReferences]
    resources: ResourceIndex
    schema_results: Mapping[str, SchemaResult]
    resolver: VersionResolver = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "resolver",
            VersionResolver(self.resources.keys, literal_lookup=self.resources.lookup),
        )


@dataclass(frozen=True)
class _RosterOutcome:
    identifier: str
    record: ValidationRecord | None
    filtered: tuple[LoginOccurrence, ...]


class WorkspaceValidator:
    """Validate the test files of a workspace against each other.

    The validator is stateless between runs; the optional ``cache`` is owned
    by the caller and only memoises parsed units.
    """

    def __init__(
        self,
        source: WorkspaceSource,
        *,
        settings: ValidationSettings | None = None,
        cache: UnitReferenceCache | None = None,
    ) -> None:
        self.source = source
        self.settings = settings or ValidationSettings()
        self.cache = cache

    def validate(self, workspace_id: int) -> FileValidationReport:
        """Return the consistency report of ``workspace_id``.

        Raises:
            WorkspaceValidationError: If the workspace source fails.
        """

        logger.info("Starting test file validation for workspace %s", workspace_id)
        try:
            with ThreadPoolExecutor(
                max_workers=self.settings.max_workers,
                thread_name_prefix="testcenter-audit",
            ) as executor:
                workspace = self._preload(workspace_id, executor)
                return self._validate_rosters(workspace_id, workspace, executor)
        except Exception as exc:
            logger.error(
                "Error during test file validation for workspace %s: %s",
                workspace_id,
                exc,
                exc_info=True,
            )
            if isinstance(exc, WorkspaceValidationError):
                raise
            raise WorkspaceValidationError(
                f"Error during test file validation for workspace {workspace_id}: {exc}"
            ) from exc

    def preload(self, workspace_id: int) -> PreloadedWorkspace:
        """Build the shared indices of ``workspace_id`` without walking any roster."""

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            return self._preload(workspace_id, executor)

    def _preload(self, workspace_id: int, executor: Executor) -> PreloadedWorkspace:
        booklets = executor.submit(self._load_booklets, workspace_id)
        units = executor.submit(self._load_units, workspace_id)
        resources = executor.submit(self._load_resources, workspace_id)
        schema_results = executor.submit(
            self.source.get_schema_validation_results, workspace_id
        )
        workspace = PreloadedWorkspace(
            booklets=booklets.result(),
            units=units.result(),
            resources=resources.result(),
            schema_results=normalise_schema_results(schema_results.result()),
        )
        self._summarise_schema_results(workspace_id, workspace.schema_results)
        return workspace

    def _validate_rosters(
        self, workspace_id: int, workspace: PreloadedWorkspace, executor: Executor
    ) -> FileValidationReport:
        records: List[ValidationRecord] = []
        used_roster_ids: List[str] = []
        filtered: List[LoginOccurrence] = []
        found_rosters = False

        for page in iter_pages(
            self.source,
            workspace_id,
            (FileKind.TESTTAKERS,),
            batch_size=self.settings.testtaker_batch_size,
        ):
            found_rosters = True
            for outcome in executor.map(
                lambda stored: self._process_roster(stored, workspace), page
            ):
                used_roster_ids.append(outcome.identifier)
                filtered.extend(outcome.filtered)
                if outcome.record is not None:
                    records.append(outcome.record)

        if not found_rosters:
            logger.warning("No TestTakers found in workspace with ID %s.", workspace_id)
            return assemble_report([], test_takers_found=False)

        unused = find_unused(
            iter_files(
                self.source,
                workspace_id,
                batch_size=self.settings.resource_batch_size,
            ),
            used_roster_ids,
            records,
            workspace.resources.keys,
        )

        duplicates = detect_duplicate_logins(filtered)
        logger.info("Found %s duplicate test takers across files", len(duplicates))

        filtered = self._drop_persons_not_considered(workspace_id, filtered)

        return assemble_report(
            records,
            test_takers_found=True,
            filtered=filtered,
            duplicates=duplicates,
            unused=unused,
        )

    def _process_roster(
        self, stored: StoredFile, workspace: PreloadedWorkspace
    ) -> _RosterOutcome:
        references = extract_test_takers(stored.data(), source=stored.identifier)
        filtered = tuple(
            LoginOccurrence(login=login.login, test_taker=stored.identifier, mode=login.mode)
            for login in references.logins
            if login.login and login.mode and login.mode not in CONSIDERED_LOGIN_MODES
        )
        record = build_validation_record(
            stored.identifier,
            references,
            workspace.booklets,
            workspace.units,
            workspace.resources,
            workspace.resolver,
            workspace.schema_results,
        )
        return _RosterOutcome(
            identifier=stored.identifier, record=record, filtered=filtered
        )

    def _drop_persons_not_considered(
        self, workspace_id: int, filtered: Sequence[LoginOccurrence]
    ) -> List[LoginOccurrence]:
        if not filtered:
            return []
        logins = [item.login for item in filtered]
        excluded: set[str] = set()
        batch_size = self.settings.person_batch_size
        for start in range(0, len(logins), batch_size):
            excluded.update(
                self.source.get_persons_not_considered(
                    workspace_id, logins[start : start + batch_size]
                )
            )
        if excluded:
            logger.info(
                "Filtering out %s test takers where consider is false", len(excluded)
            )
        return [item for item in filtered if item.login not in excluded]

    def _load_booklets(self, workspace_id: int) -> Dict[str, BookletReferences]:
        booklets: Dict[str, BookletReferences] = {}
        for stored in iter_files(
            self.source,
            workspace_id,
            (FileKind.BOOKLET,),
            batch_size=self.settings.booklet_batch_size,
        ):
            key = normalise_token(stored.identifier)
            booklets[key] = extract_booklet(stored.data(), source=stored.identifier)
        logger.info("Preloaded %s booklet(s) for workspace %s", len(booklets), workspace_id)
        return booklets

    def _load_units(self, workspace_id: int) -> Dict[str, UnitReferences]:
        units: Dict[str, UnitReferences] = {}
        for stored in iter_files(
            self.source,
            workspace_id,
            (FileKind.UNIT,),
            batch_size=self.settings.unit_batch_size,
        ):
            key = normalise_token(stored.identifier)
            payload = stored.data()
            references: UnitReferences | None = None
            if self.cache is not None:
                references = self.cache.get(workspace_id, key, payload)
            if references is None:
                references = extract_unit(payload, source=stored.identifier)
                if self.cache is not None:
                    self.cache.put(workspace_id, key, payload, references)
            units[key] = references
        logger.info("Preloaded %s unit(s) for workspace %s", len(units), workspace_id)
        return units

    def _load_resources(self, workspace_id: int) -> ResourceIndex:
        index = ResourceIndex.build(
            iter_files(
                self.source,
                workspace_id,
                batch_size=self.settings.resource_batch_size,
            )
        )
        logger.info(
            "Preloaded %s unique resource IDs/filenames for workspace %s",
            len(index),
            workspace_id,
        )
        return index

    def _summarise_schema_results(
        self, workspace_id: int, results: Mapping[str, SchemaResult]
    ) -> None:
        by_kind: Dict[str, List[tuple[str, SchemaResult]]] = defaultdict(list)
        for key, result in results.items():
            by_kind[key.partition(":")[0]].append((key, result))

        limit = self.settings.schema_preview_limit
        for kind in sorted(by_kind):
            entries = by_kind[kind]
            failed = [(key, result) for key, result in entries if not result.schema_valid]
            logger.info(
                "%s schema validation results for workspace %s: total=%s, ok=%s, failed=%s",
                kind,
                workspace_id,
                len(entries),
                len(entries) - len(failed),
                len(failed),
            )
            if not failed:
                continue
            preview = [
                {"key": key, "errors": list(result.errors[:5])}
                for key, result in failed[:limit]
            ]
            logger.warning(
                "%s schema validation failed for workspace %s: %s",
                kind,
                workspace_id,
                json.dumps(preview, ensure_ascii=False),
            )
            if len(failed) > limit:
                logger.warning(
                    "%s schema validation: %s more failed file(s) not logged "
                    "(preview limit reached).",
                    kind,
                    len(failed) - limit,
                )


__all__ = ["PreloadedWorkspace", "WorkspaceValidationError", "WorkspaceValidator"]
