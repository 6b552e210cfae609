"""Case-normalised lookup over every stored identifier and filename."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Sequence

from .models import StoredFile
from .normalization import normalise_token, token_variants

logger = logging.getLogger(__name__)


class ResourceIndex:
    """Answer "is token X stored" with extension and path fallbacks.

    Both the identifier and the filename of every stored file are indexed.
    The index is immutable once built.
    """

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._keys: frozenset[str] = frozenset(
            key for key in (normalise_token(value) for value in keys) if key
        )
        self._sorted: tuple[str, ...] = tuple(sorted(self._keys))

    @classmethod
    def build(cls, files: Iterable[StoredFile]) -> "ResourceIndex":
        """Return an index over the identifiers and filenames of ``files``."""

        keys: list[str] = []
        for stored in files:
            keys.append(stored.identifier)
            keys.append(stored.filename)
        index = cls(keys)
        logger.debug("Indexed %s unique resource ids/filenames", len(index))
        return index

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and normalise_token(token) in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._sorted)

    @property
    def keys(self) -> Sequence[str]:
        """Return every indexed key in sorted order."""

        return self._sorted

    def lookup(self, token: str) -> str | None:
        """Return the first indexed spelling of ``token`` or ``None``."""

        for variant in token_variants(token):
            if variant in self._keys:
                return variant
        return None

    def exists(self, token: str) -> bool:
        """Return ``True`` if ``token`` names a stored file under any known spelling."""

        return self.lookup(token) is not None

    def exists_any(self, normalised_variants: Iterable[str]) -> bool:
        """Return ``True`` if any of the already normalised spellings is indexed."""

        return any(variant in self._keys for variant in normalised_variants)


__all__ = ["ResourceIndex"]
