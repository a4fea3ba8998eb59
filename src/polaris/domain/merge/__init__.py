"""Merge engine."""

from __future__ import annotations

from polaris.domain.merge.engine import MergeEngine, MergeOptions, MergeResult

__all__ = ["MergeEngine", "MergeOptions", "MergeResult"]
