"""Token normalisation shared by resource lookups and usage reconciliation."""

from __future__ import annotations

from typing import Iterator

KNOWN_EXTENSIONS: tuple[str, ...] = (".VOCS", ".XML", ".HTML", ".JSON")


def normalise_token(token: str | None) -> str:
    """Return ``token`` trimmed, upper-cased and with forward slashes only."""

    if not token:
        return ""
    return token.strip().replace("\\", "/").upper()


def strip_extension(token: str) -> str | None:
    """Return ``token`` without its last ``.extension`` or ``None`` if it has none."""

    last_dot = token.rfind(".")
    if last_dot <= 0:
        return None
    return token[:last_dot]


def basename(token: str) -> str | None:
    """Return the last path segment of ``token`` or ``None`` if it has no path."""

    if "/" not in token:
        return None
    tail = token.rsplit("/", 1)[-1]
    return tail or None


def token_variants(token: str | None) -> tuple[str, ...]:
    """Return every spelling under which ``token`` may be stored, in probe order.

    The order is: the normalised token, the token with each known extension
    appended, the token without its extension, then the same three steps for
    the basename when the token carries a path. Duplicates are dropped.
    """

    normalised = normalise_token(token)
    if not normalised:
        return ()
    return tuple(dict.fromkeys(_iter_variants(normalised)))


def _iter_variants(normalised: str) -> Iterator[str]:
    yield from _stem_variants(normalised)
    tail = basename(normalised)
    if tail is not None:
        yield from _stem_variants(tail)


def _stem_variants(value: str) -> Iterator[str]:
    yield value
    for extension in KNOWN_EXTENSIONS:
        yield f"{value}{extension}"
    stripped = strip_extension(value)
    if stripped is not None:
        yield stripped


__all__ = [
    "KNOWN_EXTENSIONS",
    "basename",
    "normalise_token",
    "strip_extension",
    "token_variants",
]
