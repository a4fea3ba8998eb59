"""Transactional merge of duplicate entities into one survivor.

A merge batch runs in a single unit of work. For every absorbed entity the
engine moves its edges and claims onto the survivor, drops what is left and
writes a tombstone that redirects to the survivor. Any exception rolls the
whole batch back; a result is only returned after commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from polaris.domain.errors import (
    IntegrityViolation,
    InvalidArgumentError,
    NotFoundError,
    TypeMismatchError,
    ValidationError,
)
from polaris.domain.identity.grammar import is_canonical
from polaris.domain.model import EdgeRecord, Tombstone, utcnow

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from polaris.domain.model import EntityRecord
    from polaris.domain.ports import GraphStore, GraphUnitOfWorkFactory


log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True, kw_only=True)
class MergeOptions:
    submitter: str = "system"
    event_hash: str | None = None
    evidence: str = ""
    rewire_edges: bool = True
    move_claims: bool = True


@dataclass(slots=True, kw_only=True)
class MergeResult:
    survivor_id: str
    edges_rewired: int = 0
    claims_moved: int = 0
    tombstones_created: int = 0
    skipped: list[str] = field(default_factory=list[str])

    def as_dict(self) -> dict[str, object]:
        return {
            "survivor_id": self.survivor_id,
            "edges_rewired": self.edges_rewired,
            "claims_moved": self.claims_moved,
            "tombstones_created": self.tombstones_created,
            "skipped": list(self.skipped),
        }


class MergeEngine:
    """Collapse duplicate entities into a canonical survivor."""

    def __init__(
        self,
        unit_of_work_factory: GraphUnitOfWorkFactory,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._log = logger or log
        self._clock = clock

    def merge(
        self,
        survivor_id: str,
        absorbed_ids: Iterable[str],
        options: MergeOptions | None = None,
    ) -> MergeResult:
        options = options or MergeOptions()
        absorbed = self._validate_arguments(survivor_id, absorbed_ids)

        self._log.info("Merging %d entities into %s", len(absorbed), survivor_id)
        try:
            with self._uow_factory() as uow:
                result = self._merge_in_transaction(
                    uow.repositories.graph, survivor_id, absorbed, options
                )
                uow.commit()
        except Exception:
            self._log.exception("Merge into %s failed, rolled back", survivor_id)
            raise

        self._log.info(
            "Merge into %s completed: %d edges rewired, %d claims moved, %d tombstones",
            survivor_id,
            result.edges_rewired,
            result.claims_moved,
            result.tombstones_created,
        )
        return result

    @staticmethod
    def _validate_arguments(survivor_id: str, absorbed_ids: Iterable[str]) -> list[str]:
        if not is_canonical(survivor_id):
            raise InvalidArgumentError(f"Survivor id must be canonical, got: {survivor_id!r}")
        absorbed = list(dict.fromkeys(absorbed_ids))
        if not absorbed:
            raise InvalidArgumentError("Merge requires at least one absorbed id")
        for absorbed_id in absorbed:
            if not isinstance(absorbed_id, str) or not absorbed_id:
                raise InvalidArgumentError(f"Invalid absorbed id: {absorbed_id!r}")
        if survivor_id in absorbed:
            raise InvalidArgumentError(f"Survivor {survivor_id} cannot absorb itself")
        return absorbed

    def _merge_in_transaction(
        self,
        graph: GraphStore,
        survivor_id: str,
        absorbed_ids: list[str],
        options: MergeOptions,
    ) -> MergeResult:
        survivor = graph.get_entity(survivor_id, for_update=True)
        if survivor is None:
            raise NotFoundError(f"Survivor entity not found: {survivor_id}")
        if survivor.is_tombstone:
            raise ValidationError(
                f"Survivor {survivor_id} was merged into {survivor.merged_into}"
            )

        # type check every absorbed entity before the first write
        for absorbed_id in absorbed_ids:
            candidate = graph.get_entity(absorbed_id)
            if candidate is not None and candidate.entity_type is not survivor.entity_type:
                raise TypeMismatchError(
                    f"Type mismatch: survivor is {survivor.entity_type}, "
                    f"{absorbed_id} is {candidate.entity_type}"
                )

        merged_at = self._clock()
        result = MergeResult(survivor_id=survivor_id)
        for absorbed_id in absorbed_ids:
            absorbed = graph.get_entity(absorbed_id, for_update=True)
            if absorbed is None:
                self._log.warning("Absorbed entity not found, skipping: %s", absorbed_id)
                result.skipped.append(absorbed_id)
                continue
            if absorbed.is_tombstone:
                self._log.info(
                    "Absorbed entity %s already merged into %s, skipping",
                    absorbed_id,
                    absorbed.merged_into,
                )
                result.skipped.append(absorbed_id)
                continue
            self._absorb(graph, survivor, absorbed, options, merged_at, result)

        if result.tombstones_created:
            graph.record_absorption(
                survivor_id, count=result.tombstones_created, merged_at=merged_at
            )

        leftovers = graph.pending_retarget_count()
        if leftovers:
            raise IntegrityViolation(
                f"Merge into {survivor_id} left {leftovers} edges pending retarget"
            )
        return result

    def _absorb(  # noqa: PLR0913
        self,
        graph: GraphStore,
        survivor: EntityRecord,
        absorbed: EntityRecord,
        options: MergeOptions,
        merged_at: datetime,
        result: MergeResult,
    ) -> None:
        """Fold one absorbed entity into the survivor.

        Edges already touching the survivor are dropped rather than rewired,
        since rewiring them would turn them into survivor self-loops.
        """

        if absorbed.entity_type is not survivor.entity_type:
            raise IntegrityViolation(
                f"Type of {absorbed.id} changed during merge "
                f"({absorbed.entity_type} vs {survivor.entity_type})"
            )

        if options.rewire_edges:
            rewired = 0
            for edge in graph.incident_edges(absorbed.id):
                if edge.is_self_loop or edge.touches(survivor.id):
                    continue
                self._retarget(graph, edge, absorbed.id, survivor.id)
                rewired += 1
            result.edges_rewired += rewired
            self._log.debug("Rewired %d edges from %s", rewired, absorbed.id)

        if options.move_claims:
            moved = 0
            for claim in graph.claims_about(absorbed.id):
                graph.move_claim(
                    claim.claim_id,
                    entity_id=survivor.id,
                    merged_from=absorbed.id,
                    merged_at=merged_at,
                    merged_by=options.submitter,
                )
                moved += 1
            result.claims_moved += moved
            self._log.debug("Moved %d claims from %s", moved, absorbed.id)

        graph.delete_incident_edges(absorbed.id)
        graph.mark_merged(
            absorbed.id,
            Tombstone(
                merged_into=survivor.id,
                merged_at=merged_at,
                merged_by=options.submitter,
                merge_event_hash=options.event_hash,
                merge_evidence=options.evidence,
            ),
        )
        result.tombstones_created += 1
        self._log.info("Marked %s as tombstone redirecting to %s", absorbed.id, survivor.id)

    @staticmethod
    def _retarget(graph: GraphStore, edge: EdgeRecord, absorbed_id: str, survivor_id: str) -> None:
        """Move the absorbed endpoint of ``edge`` onto the survivor, keeping its edge key."""
        source_id = survivor_id if edge.source_id == absorbed_id else None
        target_id = survivor_id if edge.target_id == absorbed_id else None

        if graph.supports_atomic_retarget:
            graph.retarget_edge(edge, source_id=source_id, target_id=target_id)
            return

        replacement = EdgeRecord(
            rel_type=edge.rel_type,
            source_id=source_id or edge.source_id,
            target_id=target_id or edge.target_id,
            properties=dict(edge.properties),
            pending_retarget=True,
        )
        graph.add_edge(replacement)
        graph.delete_edge(edge.edge_id)
        graph.promote_edge(replacement.edge_id, edge_key=edge.edge_key)
