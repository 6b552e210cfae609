"""Reference validation and unused-file detection for test-administration workspaces."""

from .cache import UnitReferenceCache
from .config import ValidationSettings
from .engine import PreloadedWorkspace, WorkspaceValidationError, WorkspaceValidator
from .extractors import (
    DocumentParseError,
    extract_booklet,
    extract_test_takers,
    extract_unit,
    parse_booklet,
    parse_test_takers,
    parse_unit,
)
from .models import (
    BookletReferences,
    FileKind,
    LoginReferences,
    Person,
    SchemaResult,
    StoredFile,
    TestTakersReferences,
    UnitReferences,
    UnusedFile,
)
from .normalization import normalise_token, token_variants
from .reachability import (
    FileStatus,
    TierResult,
    ValidationRecord,
    build_validation_record,
    schema_key,
)
from .reconciler import UsageGraph, find_unused
from .report import FileValidationReport, assemble_report, detect_duplicate_logins
from .resource_index import ResourceIndex
from .roster import RosterValidationReport, validate_test_takers
from .sources import InMemoryWorkspaceSource, WorkspaceSource, load_directory
from .versioning import (
    ParsedVersion,
    ResolutionResult,
    ResolutionTier,
    VersionResolver,
    parse_version,
)

__all__ = [
    "StoredFile",
    "FileKind",
    "SchemaResult",
    "Person",
    "LoginReferences",
    "TestTakersReferences",
    "BookletReferences",
    "UnitReferences",
    "UnusedFile",
    "normalise_token",
    "token_variants",
    "ResourceIndex",
    "ParsedVersion",
    "ResolutionResult",
    "ResolutionTier",
    "VersionResolver",
    "parse_version",
    "DocumentParseError",
    "parse_test_takers",
    "parse_booklet",
    "parse_unit",
    "extract_test_takers",
    "extract_booklet",
    "extract_unit",
    "FileStatus",
    "TierResult",
    "ValidationRecord",
    "build_validation_record",
    "schema_key",
    "UsageGraph",
    "find_unused",
    "FileValidationReport",
    "assemble_report",
    "detect_duplicate_logins",
    "WorkspaceSource",
    "InMemoryWorkspaceSource",
    "load_directory",
    "UnitReferenceCache",
    "ValidationSettings",
    "PreloadedWorkspace",
    "WorkspaceValidationError",
    "WorkspaceValidator",
    "RosterValidationReport",
    "validate_test_takers",
]
