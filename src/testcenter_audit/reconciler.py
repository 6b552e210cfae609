"""Find stored files that no TestTaker reaches."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from .models import StoredFile, UnusedFile
from .normalization import normalise_token, token_variants
from .reachability import ValidationRecord
from .versioning import VersionResolver

logger = logging.getLogger(__name__)


class UsageGraph:
    """Append-only set of every token spelling reached during one run."""

    def __init__(self, resolver: VersionResolver) -> None:
        self._resolver = resolver
        self._tokens: set[str] = set()

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and normalise_token(token) in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._tokens))

    def add_identifier(self, identifier: str) -> None:
        """Mark a single identifier as used, without spelling variants."""

        normalised = normalise_token(identifier)
        if normalised:
            self._tokens.add(normalised)

    def add_token(self, token: str | None) -> None:
        """Mark ``token`` and every spelling the resource index would accept."""

        self._tokens.update(token_variants(token))

    def add_player(self, token: str, resolved_as: str | None = None) -> None:
        """Mark a player reference, its resolved build and all its patch siblings."""

        for version_token in (token, resolved_as):
            if not version_token:
                continue
            self.add_token(version_token)
            for sibling in self._resolver.patch_siblings(version_token):
                self.add_identifier(sibling)

    def add_record(self, record: ValidationRecord) -> None:
        self.add_token(record.test_taker)
        for tier in (record.booklets, record.units, record.schemes, record.definitions):
            for status in tier.files:
                self.add_token(status.filename)
        for status in record.player.files:
            self.add_player(status.filename, status.resolved_as)

    def is_used(self, stored: StoredFile) -> bool:
        identifier = normalise_token(stored.identifier)
        filename = normalise_token(stored.filename)
        if not identifier and not filename:
            return True
        return identifier in self._tokens or filename in self._tokens


def find_unused(
    all_files: Iterable[StoredFile],
    used_test_taker_ids: Iterable[str],
    records: Iterable[ValidationRecord],
    resource_identifiers: Iterable[str],
) -> list[UnusedFile]:
    """Return the stored files whose identifier and filename were never reached.

    Files without any identifier or filename are never reported.
    """

    graph = UsageGraph(VersionResolver(resource_identifiers))
    for identifier in used_test_taker_ids:
        graph.add_identifier(identifier)
    for record in records:
        graph.add_record(record)

    unused = [
        UnusedFile(
            row_id=stored.row_id,
            file_id=stored.identifier,
            filename=stored.filename,
            file_type=stored.kind.value,
        )
        for stored in all_files
        if not graph.is_used(stored)
    ]
    logger.info(
        "Usage graph holds %s tokens; %s stored file(s) unused", len(graph), len(unused)
    )
    return unused


__all__ = ["UsageGraph", "find_unused"]
