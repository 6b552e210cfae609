"""Core records describing the stored files of a workspace."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class FileKind(str, Enum):
    """Type tag assigned to a stored file at ingestion."""

    TESTTAKERS = "TestTakers"
    BOOKLET = "Booklet"
    UNIT = "Unit"
    SCHEME = "Scheme"
    DEFINITION = "Definition"
    PLAYER = "Player"

    @classmethod
    def parse(cls, value: str | "FileKind") -> "FileKind":
        """Return the kind named by ``value``, accepting legacy spellings.

        Raises:
            ValueError: If ``value`` does not name a known kind.
        """

        if isinstance(value, FileKind):
            return value
        key = str(value).strip().lower()
        try:
            return _KIND_ALIASES[key]
        except KeyError as exc:
            raise ValueError(f"Unknown file kind '{value}'.") from exc


_KIND_ALIASES: Mapping[str, FileKind] = {
    "testtakers": FileKind.TESTTAKERS,
    "booklet": FileKind.BOOKLET,
    "unit": FileKind.UNIT,
    "scheme": FileKind.SCHEME,
    "schemer": FileKind.SCHEME,
    "definition": FileKind.DEFINITION,
    "resource": FileKind.DEFINITION,
    "player": FileKind.PLAYER,
}


@dataclass(frozen=True)
class StoredFile:
    """One uploaded asset of a workspace.

    ``identifier`` is the primary soft key and is compared case-insensitively.
    ``row_id`` is the storage-assigned numeric key, when the backing store has one.
    """

    identifier: str
    filename: str
    kind: FileKind
    payload: str | bytes = ""
    row_id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", FileKind.parse(self.kind))

    def data(self) -> bytes:
        """Return the payload encoded as UTF-8 bytes."""

        if isinstance(self.payload, bytes):
            return self.payload
        return self.payload.encode("utf-8")


@dataclass(frozen=True)
class SchemaResult:
    """Outcome of the external structural (XSD / JSON-Schema) check of one file."""

    schema_valid: bool
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class Person:
    """A person recorded for the workspace, used for roster checks."""

    group: str
    login: str
    code: str = ""
    consider: bool = True


@dataclass(frozen=True)
class LoginReferences:
    """A single ``<Login>`` of a TestTakers roster."""

    group: str
    login: str
    mode: str
    booklet_refs: tuple[str, ...] = ()
    booklet_codes: tuple[str, ...] = ()


@dataclass(frozen=True)
class TestTakersReferences:
    """References made by a TestTakers roster document."""

    __test__ = False

    logins: tuple[LoginReferences, ...] = ()
    group_count: int = 0

    def booklet_refs(self) -> tuple[str, ...]:
        """Return every booklet token referenced by any login, in document order."""

        return tuple(ref for login in self.logins for ref in login.booklet_refs)

    def logins_in_modes(self, modes: frozenset[str]) -> tuple[LoginReferences, ...]:
        return tuple(login for login in self.logins if login.mode in modes)


@dataclass(frozen=True)
class BookletReferences:
    """References made by a Booklet document."""

    booklet_id: str = ""
    unit_refs: tuple[str, ...] = ()


@dataclass(frozen=True)
class UnitReferences:
    """References made by a Unit document."""

    unit_id: str = ""
    coding_scheme_refs: tuple[str, ...] = ()
    definition_refs: tuple[str, ...] = ()
    player_refs: tuple[str, ...] = ()
    has_player: bool = False


ACTIVE_LOGIN_MODES: frozenset[str] = frozenset({"run-hot-return", "run-hot-restart"})
"""Login modes that produce responses which are later coded."""

CONSIDERED_LOGIN_MODES: frozenset[str] = ACTIVE_LOGIN_MODES | {"run-trial"}
"""Active modes plus ``run-trial``; logins outside this set are reported as filtered."""


@dataclass(frozen=True)
class UnusedFile:
    """A stored file that no TestTaker reaches."""

    row_id: int | None
    file_id: str
    filename: str
    file_type: str


__all__ = [
    "ACTIVE_LOGIN_MODES",
    "CONSIDERED_LOGIN_MODES",
    "BookletReferences",
    "FileKind",
    "LoginReferences",
    "Person",
    "SchemaResult",
    "StoredFile",
    "TestTakersReferences",
    "UnitReferences",
    "UnusedFile",
]
