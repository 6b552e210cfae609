"""Pure parsers that pull outgoing references out of roster, booklet and unit XML."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Iterator

from .models import (
    BookletReferences,
    LoginReferences,
    TestTakersReferences,
    UnitReferences,
)

logger = logging.getLogger(__name__)


class DocumentParseError(ValueError):
    """Raised when a document is not well-formed XML."""


def parse_test_takers(markup: str | bytes) -> TestTakersReferences:
    """Return the groups, logins and booklet tokens of a TestTakers roster.

    Raises:
        DocumentParseError: If ``markup`` is not well-formed.
    """

    root = _parse(markup)
    logins: list[LoginReferences] = []
    group_count = 0
    for group in _iter_named(root, "Group"):
        group_count += 1
        group_id = (group.get("id") or "").strip()
        for login in _iter_named(group, "Login"):
            booklets = list(_iter_named(login, "Booklet"))
            logins.append(
                LoginReferences(
                    group=group_id,
                    login=(login.get("name") or "").strip(),
                    mode=(login.get("mode") or "").strip(),
                    booklet_refs=tuple(
                        text for text in (_text(element) for element in booklets) if text
                    ),
                    booklet_codes=tuple(
                        codes
                        for codes in (
                            (element.get("codes") or "").strip() for element in booklets
                        )
                        if codes
                    ),
                )
            )
    return TestTakersReferences(logins=tuple(logins), group_count=group_count)


def parse_booklet(markup: str | bytes) -> BookletReferences:
    """Return the booklet id and every unit it references, testlets included.

    Raises:
        DocumentParseError: If ``markup`` is not well-formed.
    """

    root = _parse(markup)
    unit_refs = tuple(
        unit_id
        for unit_id in ((unit.get("id") or "").strip() for unit in _iter_named(root, "Unit"))
        if unit_id
    )
    return BookletReferences(booklet_id=_metadata_id(root), unit_refs=unit_refs)


def parse_unit(markup: str | bytes) -> UnitReferences:
    """Return the coding scheme, definition and player tokens of a unit.

    The player attribute uses ``@`` between module and version; it is
    rewritten to ``-`` so it can be resolved like any stored identifier.

    Raises:
        DocumentParseError: If ``markup`` is not well-formed.
    """

    root = _parse(markup)
    scheme_refs: list[str] = []
    definition_refs: list[str] = []
    player_refs: list[str] = []
    for element in root.iter():
        name = _local_name(element.tag)
        if name == "CodingSchemeRef":
            text = _text(element)
            if text:
                scheme_refs.append(text)
        elif name == "DefinitionRef":
            text = _text(element)
            if text:
                definition_refs.append(text)
            player = (element.get("player") or "").strip()
            if player:
                player_refs.append(player.replace("@", "-", 1))
    return UnitReferences(
        unit_id=_metadata_id(root),
        coding_scheme_refs=tuple(scheme_refs),
        definition_refs=tuple(definition_refs),
        player_refs=tuple(player_refs),
        has_player=bool(player_refs),
    )


def extract_test_takers(markup: str | bytes, *, source: str = "") -> TestTakersReferences:
    """Lenient :func:`parse_test_takers`: malformed rosters yield no logins."""

    try:
        return parse_test_takers(markup)
    except DocumentParseError as exc:
        logger.warning("Failed to parse TestTakers %s: %s", source or "<unnamed>", exc)
        return TestTakersReferences()


def extract_booklet(markup: str | bytes, *, source: str = "") -> BookletReferences:
    """Lenient :func:`parse_booklet`: malformed booklets yield no unit references."""

    try:
        return parse_booklet(markup)
    except DocumentParseError as exc:
        logger.warning("Failed to parse booklet %s: %s", source or "<unnamed>", exc)
        return BookletReferences()


def extract_unit(markup: str | bytes, *, source: str = "") -> UnitReferences:
    """Lenient :func:`parse_unit`: malformed units yield no outgoing references."""

    try:
        return parse_unit(markup)
    except DocumentParseError as exc:
        logger.warning("Failed to parse unit %s: %s", source or "<unnamed>", exc)
        return UnitReferences()


def _parse(markup: str | bytes) -> ET.Element:
    if isinstance(markup, str):
        markup = markup.encode("utf-8")
    if not markup.strip():
        raise DocumentParseError("document is empty")
    try:
        return ET.fromstring(markup)
    except ET.ParseError as exc:
        raise DocumentParseError(str(exc)) from exc


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _iter_named(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in element.iter():
        if child is not element and _local_name(child.tag) == name:
            yield child


def _text(element: ET.Element) -> str:
    return "".join(element.itertext()).strip()


def _metadata_id(root: ET.Element) -> str:
    for metadata in _iter_named(root, "Metadata"):
        for child in metadata:
            if _local_name(child.tag) == "Id":
                return _text(child)
    return ""


__all__ = [
    "DocumentParseError",
    "extract_booklet",
    "extract_test_takers",
    "extract_unit",
    "parse_booklet",
    "parse_test_takers",
    "parse_unit",
]
