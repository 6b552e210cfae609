from __future__ import annotations

import pytest

from testcenter_audit.versioning import (
    ParsedVersion,
    ResolutionTier,
    VersionResolver,
    parse_version,
)


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("IQB-PLAYER-ASPECT-2.6", ParsedVersion("IQB-PLAYER-ASPECT", 2, 6)),
        ("iqb-player-aspect@2.6.3", ParsedVersion("IQB-PLAYER-ASPECT", 2, 6, 3)),
        (
            "IQB-PLAYER-ASPECT-2.6.3.html",
            ParsedVersion("IQB-PLAYER-ASPECT", 2, 6, 3, extension="HTML"),
        ),
        (
            "PLAYER-1.10.2-beta.html",
            ParsedVersion("PLAYER", 1, 10, 2, label="-BETA", extension="HTML"),
        ),
        ("PLAYERV3.0", ParsedVersion("PLAYER", 3, 0)),
    ],
)
def test_parse_version_reads_components(token: str, expected: ParsedVersion) -> None:
    assert parse_version(token) == expected


@pytest.mark.parametrize("token", ["U1.VOCS", "PLAYER", "2.6.1", "PLAYER-2", ""])
def test_parse_version_rejects_tokens_outside_grammar(token: str) -> None:
    assert parse_version(token) is None


def test_two_part_version_counts_as_patch_zero() -> None:
    assert ParsedVersion("PLAYER", 2, 6).effective_patch == 0
    assert ParsedVersion("PLAYER", 2, 6, 4).effective_patch == 4


def test_exact_patch_wins_over_newer_patch() -> None:
    resolver = VersionResolver(["MODULE-2.6.0", "MODULE-2.6.1", "MODULE-2.6.2"])

    result = resolver.resolve("MODULE-2.6.1")

    assert result.exists
    assert result.resolved_identifier == "MODULE-2.6.1"
    assert result.tier is ResolutionTier.EXACT


def test_missing_patch_falls_back_to_newest_patch_of_line() -> None:
    resolver = VersionResolver(["MODULE-2.6.0", "MODULE-2.6.2"])

    result = resolver.resolve("MODULE-2.6.1")

    assert result.resolved_identifier == "MODULE-2.6.2"
    assert result.tier is ResolutionTier.PATCH_FALLBACK


def test_two_part_token_selects_highest_patch() -> None:
    resolver = VersionResolver(["MODULE-2.6.0", "MODULE-2.6.1", "MODULE-2.6.2"])

    result = resolver.resolve("MODULE-2.6")

    assert result.resolved_identifier == "MODULE-2.6.2"
    assert result.tier is ResolutionTier.PATCH_FALLBACK


def test_retired_minor_falls_back_to_newest_minor() -> None:
    resolver = VersionResolver(["MODULE-2.8.1", "MODULE-2.9.0", "MODULE-2.9.4"])

    result = resolver.resolve("MODULE-2.6")

    assert result.resolved_identifier == "MODULE-2.9.4"
    assert result.tier is ResolutionTier.MINOR_PATCH_FALLBACK


def test_minor_fallback_prefers_explicit_patch_on_tie() -> None:
    resolver = VersionResolver(
        ["IQB-PLAYER-ASPECT-2.5", "IQB-PLAYER-ASPECT-2.5.0", "IQB-PLAYER-ASPECT-2.5.2"]
    )

    result = resolver.resolve("IQB-PLAYER-ASPECT-2.6")

    assert result.resolved_identifier == "IQB-PLAYER-ASPECT-2.5.2"
    assert result.tier is ResolutionTier.MINOR_PATCH_FALLBACK

    tie = VersionResolver(["PLAYER-2.5", "PLAYER-2.5.0"]).resolve("PLAYER-2.5")
    assert tie.resolved_identifier == "PLAYER-2.5.0"


def test_two_part_identifier_is_a_valid_target() -> None:
    result = VersionResolver(["PLAYER-2.5"]).resolve("PLAYER-2.5")

    assert result.exists
    assert result.resolved_identifier == "PLAYER-2.5"


def test_other_modules_and_majors_are_ignored() -> None:
    resolver = VersionResolver(["OTHER-2.6.9", "MODULE-3.6.9", "MODULE-2.60.1"])

    result = resolver.resolve("MODULE-2.6")

    assert result.resolved_identifier == "MODULE-2.60.1"
    assert result.tier is ResolutionTier.MINOR_PATCH_FALLBACK
    assert not resolver.resolve("MODULE-4.0").exists


def test_candidates_with_extensions_and_separators_resolve() -> None:
    resolver = VersionResolver(["iqb-player-aspect-2.6.3.html", "IQB-PLAYER-ASPECT@2.6.4"])

    result = resolver.resolve("IQB-PLAYER-ASPECT@2.6")

    assert result.resolved_identifier == "IQB-PLAYER-ASPECT@2.6.4"


def test_unresolvable_token_is_literal_miss() -> None:
    result = VersionResolver(["MODULE-1.0.0"]).resolve("MODULE-2.0")

    assert not result.exists
    assert result.resolved_identifier is None
    assert result.tier is ResolutionTier.LITERAL_MISS


def test_unparseable_token_matches_literally() -> None:
    resolver = VersionResolver(["CUSTOM-PLAYER.HTML"])

    assert resolver.resolve("custom-player.html").tier is ResolutionTier.EXACT
    assert resolver.resolve("CUSTOM-PLAYER").tier is ResolutionTier.LITERAL_MISS


def test_unparseable_token_uses_literal_lookup_when_given() -> None:
    resolver = VersionResolver(
        ["CUSTOM-PLAYER.HTML"],
        literal_lookup=lambda token: "CUSTOM-PLAYER.HTML" if token == "custom" else None,
    )

    result = resolver.resolve("custom")

    assert result.exists
    assert result.resolved_identifier == "CUSTOM-PLAYER.HTML"


def test_tiers_are_totally_ordered() -> None:
    assert (
        ResolutionTier.EXACT
        > ResolutionTier.PATCH_FALLBACK
        > ResolutionTier.MINOR_PATCH_FALLBACK
        > ResolutionTier.LITERAL_MISS
    )
    assert ResolutionTier.MINOR_PATCH_FALLBACK.label == "MinorPatchFallback"


def test_patch_siblings_cover_the_whole_line() -> None:
    resolver = VersionResolver(
        ["PLAYER-2.6", "PLAYER-2.6.0", "PLAYER-2.6.3", "PLAYER-2.7.0", "OTHER-2.6.1"]
    )

    assert set(resolver.patch_siblings("PLAYER-2.6.3")) == {
        "PLAYER-2.6",
        "PLAYER-2.6.0",
        "PLAYER-2.6.3",
    }
    assert resolver.patch_siblings("not a version") == ()


def test_patched_token_without_exact_build_is_patch_fallback() -> None:
    resolver = VersionResolver(["MODULE-2.6", "MODULE-2.6.1"])

    result = resolver.resolve("MODULE-2.6.5")

    assert result.exists
    assert result.resolved_identifier == "MODULE-2.6.1"
    assert result.tier is ResolutionTier.PATCH_FALLBACK
