from __future__ import annotations

import threading
from functools import partial
from typing import TYPE_CHECKING

import pytest

from polaris.adapters.sqlalchemy import SqlAlchemyGraphStore
from polaris.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyGraphUnitOfWork,
    shutdown,
    startup,
)
from polaris.domain.merge import MergeEngine, MergeResult
from polaris.domain.model import EdgeRecord, EntityStatus, EntityType, RelationshipType
from tests.helpers.registry import mint_in

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from sqlalchemy.orm import Session

    from polaris.domain.model import EntityRecord

    UowFactory = Callable[[], SqlAlchemyGraphUnitOfWork]


class _InterleavingGraphStore(SqlAlchemyGraphStore):
    """Runs ``interleave`` right after ``watched_id`` is read for update."""

    def __init__(
        self, session: Session, *, watched_id: str, interleave: Callable[[], None]
    ) -> None:
        super().__init__(session)
        self._watched_id = watched_id
        self._interleave = interleave

    def get_entity(self, entity_id: str, *, for_update: bool = False) -> EntityRecord | None:
        entity = super().get_entity(entity_id, for_update=for_update)
        if for_update and entity_id == self._watched_id:
            self._interleave()
        return entity


@pytest.fixture
def file_unit_of_work(tmp_path: Path) -> Iterator[UowFactory]:
    startup(database_uri=f"sqlite+pysqlite:///{tmp_path / 'registry.db'}", force=True)
    try:
        yield SqlAlchemyGraphUnitOfWork
    finally:
        shutdown()


@pytest.mark.integration
def test_racing_merges_on_one_absorbed_entity(file_unit_of_work: UowFactory) -> None:
    first_survivor = mint_in(file_unit_of_work, EntityType.GROUP)
    second_survivor = mint_in(file_unit_of_work, EntityType.GROUP)
    absorbed = mint_in(file_unit_of_work, EntityType.GROUP)
    track = mint_in(file_unit_of_work, EntityType.TRACK)
    with file_unit_of_work() as uow:
        uow.repositories.graph.add_edge(
            EdgeRecord(
                rel_type=RelationshipType.PERFORMED_ON, source_id=absorbed, target_id=track
            )
        )
        uow.commit()

    outcomes: dict[str, MergeResult | BaseException] = {}

    def competing_merge() -> None:
        try:
            outcomes["first"] = MergeEngine(file_unit_of_work).merge(first_survivor, [absorbed])
        except BaseException as exc:  # noqa: BLE001
            outcomes["first"] = exc

    competitor = threading.Thread(target=competing_merge)

    def start_competitor() -> None:
        if competitor.is_alive() or "first" in outcomes:
            return
        competitor.start()
        # gives the competitor every chance to read and write before we continue
        competitor.join(timeout=0.5)

    interleaving_factory = partial(
        SqlAlchemyGraphUnitOfWork,
        graph_factory=partial(
            _InterleavingGraphStore, watched_id=absorbed, interleave=start_competitor
        ),
    )
    second = MergeEngine(interleaving_factory).merge(second_survivor, [absorbed])
    competitor.join(timeout=10)
    first = outcomes["first"]

    assert not competitor.is_alive()
    assert isinstance(first, MergeResult)
    assert second.tombstones_created + first.tombstones_created == 1
    assert second.tombstones_created == 1
    assert first.skipped == [absorbed]
    with file_unit_of_work() as uow:
        graph = uow.repositories.graph
        tombstone = graph.get_entity(absorbed)
        winner = graph.get_entity(second_survivor)
        loser = graph.get_entity(first_survivor)
        performed = graph.find_edges(target_id=track, rel_type=RelationshipType.PERFORMED_ON)
    assert tombstone is not None
    assert tombstone.status is EntityStatus.MERGED
    assert tombstone.merged_into == second_survivor
    assert [edge.source_id for edge in performed] == [second_survivor]
    assert winner is not None
    assert winner.absorbed_count == 1
    assert loser is not None
    assert loser.absorbed_count == 0
