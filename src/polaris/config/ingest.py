"""Ingestion defaults for the ledger sink."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_int_env
from .errors import ConfigurationError

DEFAULT_DEDUPE_CACHE_SIZE = 10_000
DEDUPE_CACHE_SIZE_VAR = "POLARIS_DEDUPE_CACHE_SIZE"


@dataclass(frozen=True, slots=True)
class IngestConfig:
    # 0 disables the in-process fast path; the durable event store still deduplicates.
    dedupe_cache_size: int = DEFAULT_DEDUPE_CACHE_SIZE


def get_ingest_config() -> IngestConfig:
    size = optional_int_env(DEDUPE_CACHE_SIZE_VAR, DEFAULT_DEDUPE_CACHE_SIZE)
    if size < 0:
        raise ConfigurationError(
            f"{DEDUPE_CACHE_SIZE_VAR} must be non-negative", variable=DEDUPE_CACHE_SIZE_VAR
        )
    return IngestConfig(dedupe_cache_size=size)
