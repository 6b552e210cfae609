"""Best-available-version resolution for ``MODULE-MAJOR.MINOR[.PATCH]`` tokens."""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Iterable

from .normalization import normalise_token

logger = logging.getLogger(__name__)

_VERSION_PATTERN = re.compile(
    r"^(?P<module>\D+?)[@V-]?(?P<major>\d+)\.(?P<minor>\d+)"
    r"(?:\.(?P<patch>\d+))?(?P<label>-\S+?)?(?:\.(?P<extension>\D{3,4}))?$"
)


class ResolutionTier(IntEnum):
    """How a token was resolved; higher members are preferred."""

    LITERAL_MISS = 0
    MINOR_PATCH_FALLBACK = 1
    PATCH_FALLBACK = 2
    EXACT = 3

    @property
    def label(self) -> str:
        return _TIER_LABELS[self]


_TIER_LABELS = {
    ResolutionTier.LITERAL_MISS: "LiteralMiss",
    ResolutionTier.MINOR_PATCH_FALLBACK: "MinorPatchFallback",
    ResolutionTier.PATCH_FALLBACK: "PatchFallback",
    ResolutionTier.EXACT: "Exact",
}


@dataclass(frozen=True)
class ParsedVersion:
    """Components of a version-like identifier."""

    module: str
    major: int
    minor: int
    patch: int | None = None
    label: str | None = None
    extension: str | None = None

    @property
    def effective_patch(self) -> int:
        return 0 if self.patch is None else self.patch


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of resolving one token against the stored identifiers."""

    exists: bool
    resolved_identifier: str | None
    tier: ResolutionTier


def parse_version(token: str) -> ParsedVersion | None:
    """Split ``token`` into its version components.

    Returns ``None`` when the token does not follow the grammar; that is not an
    error, callers fall back to literal matching.
    """

    normalised = normalise_token(token)
    match = _VERSION_PATTERN.match(normalised)
    if match is None:
        return None
    patch = match.group("patch")
    return ParsedVersion(
        module=match.group("module"),
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(patch) if patch is not None else None,
        label=match.group("label"),
        extension=match.group("extension"),
    )


@dataclass(frozen=True)
class _Candidate:
    identifier: str
    version: ParsedVersion

    def rank(self) -> tuple[int, int, int, str]:
        # Ascending sort puts the newest, most specific, alphabetically first entry first.
        explicit = 0 if self.version.patch is not None else 1
        return (-self.version.minor, -self.version.effective_patch, explicit, self.identifier)


class VersionResolver:
    """Resolve partial module identifiers against a fixed set of candidates.

    Candidates are parsed once; each :meth:`resolve` call only inspects the
    candidates that share the token's module and major version.
    """

    def __init__(
        self,
        candidates: Iterable[str],
        *,
        literal_lookup: Callable[[str], str | None] | None = None,
    ) -> None:
        by_line: dict[tuple[str, int], list[_Candidate]] = defaultdict(list)
        literals: set[str] = set()
        for raw in candidates:
            identifier = normalise_token(raw)
            if not identifier:
                continue
            literals.add(identifier)
            version = parse_version(identifier)
            if version is not None:
                by_line[(version.module, version.major)].append(
                    _Candidate(identifier, version)
                )
        self._literals: frozenset[str] = frozenset(literals)
        self._by_major: dict[tuple[str, int], tuple[_Candidate, ...]] = {
            key: tuple(sorted(entries, key=_Candidate.rank))
            for key, entries in by_line.items()
        }
        self._literal_lookup = literal_lookup

    def resolve(self, token: str) -> ResolutionResult:
        """Return the best stored match for ``token``.

        Tiers are tried in order: an exact ``MAJOR.MINOR.PATCH`` match, the
        newest patch of the requested minor line, the newest ``MINOR.PATCH``
        of the requested major version. A token that does not parse is
        matched literally.

        Exact requires the same ``MAJOR.MINOR.PATCH``; a patched token with
        no such build resolves at PatchFallback even when the two-part
        identifier or another patch of its line is stored.
        """

        version = parse_version(token)
        if version is None:
            return self._resolve_literal(token)

        same_major = self._by_major.get((version.module, version.major), ())

        if version.patch is not None:
            exact = [
                candidate
                for candidate in same_major
                if candidate.version.minor == version.minor
                and candidate.version.patch == version.patch
            ]
            if exact:
                return self._found(token, exact[0], ResolutionTier.EXACT)

        same_minor = [
            candidate
            for candidate in same_major
            if candidate.version.minor == version.minor
        ]
        if same_minor:
            return self._found(token, same_minor[0], ResolutionTier.PATCH_FALLBACK)

        if same_major:
            return self._found(
                token, same_major[0], ResolutionTier.MINOR_PATCH_FALLBACK
            )

        logger.debug("No stored version satisfies %s", token)
        return ResolutionResult(False, None, ResolutionTier.LITERAL_MISS)

    def patch_siblings(self, token: str) -> tuple[str, ...]:
        """Return every stored identifier on the same ``MODULE-MAJOR.MINOR`` line."""

        version = parse_version(token)
        if version is None:
            return ()
        return tuple(
            candidate.identifier
            for candidate in self._by_major.get((version.module, version.major), ())
            if candidate.version.minor == version.minor
        )

    def _resolve_literal(self, token: str) -> ResolutionResult:
        if self._literal_lookup is not None:
            hit = self._literal_lookup(token)
        else:
            normalised = normalise_token(token)
            hit = normalised if normalised in self._literals else None
        if hit is None:
            return ResolutionResult(False, None, ResolutionTier.LITERAL_MISS)
        return ResolutionResult(True, hit, ResolutionTier.EXACT)

    @staticmethod
    def _found(
        token: str, candidate: _Candidate, tier: ResolutionTier
    ) -> ResolutionResult:
        logger.debug("Resolved %s to %s (%s)", token, candidate.identifier, tier.label)
        return ResolutionResult(True, candidate.identifier, tier)


__all__ = [
    "ParsedVersion",
    "ResolutionResult",
    "ResolutionTier",
    "VersionResolver",
    "parse_version",
]
