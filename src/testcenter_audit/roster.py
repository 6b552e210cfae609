"""Compare TestTaker rosters against the persons recorded for a workspace."""

from __future__ import annotations

import logging
from typing import List

from pydantic import Field

from .config import ValidationSettings
from .extractors import extract_test_takers
from .models import ACTIVE_LOGIN_MODES, FileKind
from .report import _ReportModel
from .sources import WorkspaceSource, iter_files

logger = logging.getLogger(__name__)

MISSING_PERSON_REASON = "Person not found in TestTakers XML"


class MissingPersonResource(_ReportModel):
    """A considered person without a matching active login."""

    group: str
    login: str
    code: str
    reason: str = MISSING_PERSON_REASON


class RosterValidationReport(_ReportModel):
    """Totals of the active rosters and the persons they do not cover."""

    test_takers_found: bool
    total_groups: int = Field(default=0, ge=0)
    total_logins: int = Field(default=0, ge=0)
    total_booklet_codes: int = Field(default=0, ge=0)
    missing_persons: List[MissingPersonResource] = Field(default_factory=list)


def validate_test_takers(
    source: WorkspaceSource,
    workspace_id: int,
    *,
    settings: ValidationSettings | None = None,
) -> RosterValidationReport:
    """Return roster totals and the considered persons missing from every roster.

    Only ``run-hot-return`` and ``run-hot-restart`` logins are counted and
    matched; groups are counted regardless of their logins.
    """

    settings = settings or ValidationSettings()
    found = False
    total_groups = 0
    total_booklet_codes = 0
    active_logins: set[tuple[str, str]] = set()
    login_count = 0

    for stored in iter_files(
        source,
        workspace_id,
        (FileKind.TESTTAKERS,),
        batch_size=settings.testtaker_batch_size,
    ):
        found = True
        references = extract_test_takers(stored.data(), source=stored.identifier)
        if references.group_count == 0:
            logger.warning(
                "No <Group> elements found in TestTakers file %s.", stored.identifier
            )
            continue
        total_groups += references.group_count
        for login in references.logins_in_modes(ACTIVE_LOGIN_MODES):
            login_count += 1
            total_booklet_codes += len(login.booklet_codes)
            active_logins.add((login.group, login.login))

    if not found:
        logger.warning("No TestTakers found in workspace with ID %s.", workspace_id)
        return RosterValidationReport(test_takers_found=False)

    missing = [
        MissingPersonResource(group=person.group, login=person.login, code=person.code)
        for person in source.list_persons(workspace_id)
        if person.consider and (person.group, person.login) not in active_logins
    ]
    if missing:
        logger.info(
            "%s considered person(s) of workspace %s have no active login",
            len(missing),
            workspace_id,
        )

    return RosterValidationReport(
        test_takers_found=True,
        total_groups=total_groups,
        total_logins=login_count,
        total_booklet_codes=total_booklet_codes,
        missing_persons=missing,
    )


__all__ = [
    "MISSING_PERSON_REASON",
    "MissingPersonResource",
    "RosterValidationReport",
    "validate_test_takers",
]
