"""Configuration helpers for validation runs."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

_PREFIX = "TESTCENTER_AUDIT_"


def _normalise_string(value: str | None, *, default: str) -> str:
    if value is None:
        return default

    trimmed = value.strip()
    return trimmed or default


def _positive_int(source: Mapping[str, str], name: str, *, default: int) -> int:
    variable = f"{_PREFIX}{name}"
    raw = source.get(variable)
    if raw is None or not raw.strip():
        return default
    try:
        parsed = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{variable} must be a positive integer.") from exc
    if parsed < 1:
        raise ValueError(f"{variable} must be greater than zero.")
    return parsed


@dataclass(frozen=True)
class ValidationSettings:
    """Tuning knobs for a validation run.

    Batch sizes bound how many stored files are fetched per page from the
    workspace source. ``max_workers`` bounds both the concurrent preload
    tasks and the per-roster pass.
    """

    testtaker_batch_size: int = 20
    booklet_batch_size: int = 100
    unit_batch_size: int = 200
    resource_batch_size: int = 5000
    person_batch_size: int = 500
    max_workers: int = 4
    schema_preview_limit: int = 20
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ValidationSettings":
        """Return settings populated from ``environ``.

        Args:
            environ: Optional mapping of environment variables. When omitted,
                :data:`os.environ` is used.

        Raises:
            ValueError: If a numeric variable is not a positive integer or the
                log level is unknown.
        """

        source = environ if environ is not None else os.environ

        log_level = _normalise_string(
            source.get(f"{_PREFIX}LOG_LEVEL"), default="INFO"
        ).upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"{_PREFIX}LOG_LEVEL '{log_level}' is not a logging level.")

        return cls(
            testtaker_batch_size=_positive_int(source, "TESTTAKER_BATCH_SIZE", default=20),
            booklet_batch_size=_positive_int(source, "BOOKLET_BATCH_SIZE", default=100),
            unit_batch_size=_positive_int(source, "UNIT_BATCH_SIZE", default=200),
            resource_batch_size=_positive_int(source, "RESOURCE_BATCH_SIZE", default=5000),
            person_batch_size=_positive_int(source, "PERSON_BATCH_SIZE", default=500),
            max_workers=_positive_int(source, "MAX_WORKERS", default=4),
            schema_preview_limit=_positive_int(source, "SCHEMA_PREVIEW_LIMIT", default=20),
            log_level=log_level,
        )


__all__ = ["ValidationSettings"]
