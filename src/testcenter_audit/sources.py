"""Read-only access to the files, schema results and persons of a workspace."""

from __future__ import annotations

import io
import json
import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Collection, Dict, Iterator, List, Mapping, Sequence

from .extractors import extract_booklet, extract_unit
from .models import FileKind, Person, SchemaResult, StoredFile
from .versioning import parse_version

logger = logging.getLogger(__name__)


class WorkspaceSource(ABC):
    """Interface describing the external collaborators a validation run reads from."""

    @abstractmethod
    def list_files(
        self,
        workspace_id: int,
        kinds: Collection[FileKind] | None = None,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> List[StoredFile]:
        """Return one page of stored files, optionally restricted to ``kinds``.

        Pages are ordered consistently between calls.
        """

    @abstractmethod
    def get_schema_validation_results(self, workspace_id: int) -> Mapping[str, SchemaResult]:
        """Return schema outcomes keyed by ``"{Kind}:{identifier}"``."""

    @abstractmethod
    def get_persons_not_considered(
        self, workspace_id: int, logins: Sequence[str]
    ) -> List[str]:
        """Return the subset of ``logins`` whose persons are excluded from analysis."""

    @abstractmethod
    def list_persons(self, workspace_id: int) -> List[Person]:
        """Return every person recorded for the workspace."""


def iter_files(
    source: WorkspaceSource,
    workspace_id: int,
    kinds: Collection[FileKind] | None = None,
    *,
    batch_size: int,
) -> Iterator[StoredFile]:
    """Yield every matching stored file, fetching ``batch_size`` files per page."""

    for page in iter_pages(source, workspace_id, kinds, batch_size=batch_size):
        yield from page


def iter_pages(
    source: WorkspaceSource,
    workspace_id: int,
    kinds: Collection[FileKind] | None = None,
    *,
    batch_size: int,
) -> Iterator[List[StoredFile]]:
    """Yield successive non-empty pages of stored files."""

    if batch_size < 1:
        raise ValueError("batch_size must be greater than zero")
    offset = 0
    while True:
        page = source.list_files(workspace_id, kinds, offset=offset, limit=batch_size)
        if not page:
            return
        yield page
        offset += len(page)


class InMemoryWorkspaceSource(WorkspaceSource):
    """Keep workspaces in local process memory."""

    def __init__(
        self,
        files: Mapping[int, Sequence[StoredFile]] | None = None,
        *,
        schema_results: Mapping[int, Mapping[str, SchemaResult]] | None = None,
        persons: Mapping[int, Sequence[Person]] | None = None,
    ) -> None:
        self._files: Dict[int, List[StoredFile]] = {
            workspace_id: list(entries) for workspace_id, entries in (files or {}).items()
        }
        self._schema_results: Dict[int, Dict[str, SchemaResult]] = {
            workspace_id: dict(results)
            for workspace_id, results in (schema_results or {}).items()
        }
        self._persons: Dict[int, List[Person]] = {
            workspace_id: list(entries) for workspace_id, entries in (persons or {}).items()
        }

    def list_files(
        self,
        workspace_id: int,
        kinds: Collection[FileKind] | None = None,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> List[StoredFile]:
        entries = self._files.get(workspace_id, [])
        if kinds is not None:
            wanted = {FileKind.parse(kind) for kind in kinds}
            entries = [entry for entry in entries if entry.kind in wanted]
        end = None if limit is None else offset + limit
        return entries[offset:end]

    def get_schema_validation_results(self, workspace_id: int) -> Mapping[str, SchemaResult]:
        return dict(self._schema_results.get(workspace_id, {}))

    def get_persons_not_considered(
        self, workspace_id: int, logins: Sequence[str]
    ) -> List[str]:
        wanted = set(logins)
        return [
            person.login
            for person in self._persons.get(workspace_id, [])
            if not person.consider and person.login in wanted
        ]

    def list_persons(self, workspace_id: int) -> List[Person]:
        return list(self._persons.get(workspace_id, []))


_ROOT_ELEMENT_KINDS: Mapping[str, FileKind] = {
    "testtakers": FileKind.TESTTAKERS,
    "booklet": FileKind.BOOKLET,
    "unit": FileKind.UNIT,
}


def infer_kind(filename: str, payload: str | bytes) -> FileKind:
    """Guess the kind of a loose file from its name and content.

    XML files are classified by their root element, ``.vocs`` files are
    coding schemes, HTML files named like ``MODULE-MAJOR.MINOR[.PATCH]`` are
    players and everything else is a definition resource.
    """

    suffix = Path(filename).suffix.lower()
    if suffix == ".xml":
        root = _root_element_name(payload)
        if root in _ROOT_ELEMENT_KINDS:
            return _ROOT_ELEMENT_KINDS[root]
    if suffix == ".vocs":
        return FileKind.SCHEME
    if suffix == ".html" and parse_version(filename) is not None:
        return FileKind.PLAYER
    return FileKind.DEFINITION


def load_directory(root: Path) -> List[StoredFile]:
    """Load every regular file below ``root`` as a stored file.

    Booklets and units are identified by their declared metadata id, every
    other file by its upper-cased file name. Two files resolving to the same
    identifier are rejected.

    Raises:
        ValueError: If ``root`` is not a directory or two files share a name.
    """

    root_path = Path(root)
    if not root_path.is_dir():
        raise ValueError(f"Workspace root '{root_path}' must be a directory.")

    stored: List[StoredFile] = []
    seen: Dict[str, Path] = {}
    for row_id, path in enumerate(sorted(p for p in root_path.rglob("*") if p.is_file()), 1):
        payload = path.read_bytes()
        kind = infer_kind(path.name, payload)
        identifier = _identifier_for(path, kind, payload)
        if identifier in seen:
            raise ValueError(
                f"Files '{seen[identifier]}' and '{path}' share the identifier {identifier}."
            )
        seen[identifier] = path
        stored.append(
            StoredFile(
                identifier=identifier,
                filename=path.relative_to(root_path).as_posix(),
                kind=kind,
                payload=payload,
                row_id=row_id,
            )
        )
    logger.info("Loaded %s file(s) from %s", len(stored), root_path)
    return stored


def load_schema_results(path: Path) -> Dict[str, SchemaResult]:
    """Read a ``{"Kind:identifier": {"schemaValid": bool, "errors": [...]}}`` JSON file.

    Raises:
        ValueError: If the payload does not have that shape.
    """

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("Schema results must be a JSON object.")

    results: Dict[str, SchemaResult] = {}
    for key, entry in payload.items():
        if not isinstance(entry, dict) or "schemaValid" not in entry:
            raise ValueError(f"Schema result '{key}' must include 'schemaValid'.")
        errors = entry.get("errors", [])
        if isinstance(errors, (str, bytes)) or not isinstance(errors, list):
            raise ValueError(f"Schema result '{key}' errors must be a list.")
        results[str(key)] = SchemaResult(
            schema_valid=bool(entry["schemaValid"]),
            errors=tuple(str(error) for error in errors),
        )
    return results


def load_persons(path: Path) -> List[Person]:
    """Read a JSON list of ``{"group", "login", "code", "consider"}`` person records.

    Raises:
        ValueError: If the payload does not have that shape.
    """

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError("Persons must be a JSON list.")

    persons: List[Person] = []
    for entry in payload:
        if not isinstance(entry, dict):
            raise ValueError("Person entries must be objects.")
        group = entry.get("group")
        login = entry.get("login")
        if group is None or login is None:
            raise ValueError("Person entries must include 'group' and 'login'.")
        persons.append(
            Person(
                group=str(group),
                login=str(login),
                code=str(entry.get("code") or ""),
                consider=bool(entry.get("consider", True)),
            )
        )
    return persons


def _root_element_name(payload: str | bytes) -> str | None:
    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    try:
        for _, element in ET.iterparse(io.BytesIO(data), events=("start",)):
            return element.tag.rsplit("}", 1)[-1].lower()
    except ET.ParseError:
        return None
    return None


def _identifier_for(path: Path, kind: FileKind, payload: bytes) -> str:
    if kind is FileKind.BOOKLET:
        declared = extract_booklet(payload, source=path.name).booklet_id
    elif kind is FileKind.UNIT:
        declared = extract_unit(payload, source=path.name).unit_id
    else:
        declared = ""
    if declared:
        return declared.upper()
    if kind in (FileKind.BOOKLET, FileKind.UNIT):
        return path.stem.upper()
    return path.name.upper()


__all__ = [
    "InMemoryWorkspaceSource",
    "WorkspaceSource",
    "infer_kind",
    "iter_files",
    "iter_pages",
    "load_directory",
    "load_persons",
    "load_schema_results",
]
