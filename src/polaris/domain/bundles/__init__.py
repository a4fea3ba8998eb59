"""Content bundles applied to the graph by event handlers."""

from __future__ import annotations

from polaris.domain.bundles.release_bundle import BundleStats, ReleaseBundleHandler, op_id
from polaris.domain.bundles.schema import ReleaseBundle, normalize_role, normalize_roles

__all__ = [
    "BundleStats",
    "ReleaseBundle",
    "ReleaseBundleHandler",
    "normalize_role",
    "normalize_roles",
    "op_id",
]
