from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from polaris.domain.bundles import ReleaseBundle, ReleaseBundleHandler, normalize_role
from polaris.domain.bundles.schema import PersonCredit
from polaris.domain.errors import ValidationError
from polaris.domain.identity import IdentityAccessors
from polaris.domain.model import EntityStatus, EntityType, Event, EventType, RelationshipType
from polaris.domain.ports import HandlerContext
from tests.helpers.registry import mint_in

if TYPE_CHECKING:
    from collections.abc import Callable

    from polaris.adapters.sqlalchemy.unit_of_work import SqlAlchemyGraphUnitOfWork
    from tests.helpers.registry import FixedClock

    UowFactory = Callable[[], SqlAlchemyGraphUnitOfWork]


def _bundle_body() -> dict[str, Any]:
    return {
        "release": {
            "release_name": "Kind of Blue",
            "releaseDate": "1959-08-17",
            "catalog_number": "CL 1355",
            "format": ["LP"],
            "guests": [{"name": "Teo Macero", "roles": ["producer"]}],
            "labels": [{"name": "Columbia"}],
            "master_id": "master-kob",
        },
        "groups": [
            {
                "group_name": "Miles Davis Sextet",
                "members": [
                    {"name": "Miles Davis", "role": "leader", "instruments": ["trumpet"]},
                    {"name": "John Coltrane", "instruments": ["tenor saxophone"]},
                ],
            }
        ],
        "songs": [
            {"title": "So What", "writers": [{"name": "Miles Davis", "share_percentage": 100}]}
        ],
        "tracks": [
            {
                "track_id": "t1",
                "title": "So What",
                "duration": "9:22",
                "performed_by_groups": [{"name": "Miles Davis Sextet"}],
                "producers": [{"name": "Irving Townsend"}],
            },
            {
                "title": "Freddie Freeloader",
                "performed_by_groups": [{"name": "Unknown Combo"}],
            },
        ],
        "tracklist": [
            {"track_id": "t1", "track_number": 1},
            {"title": "Freddie Freeloader", "track_number": 2},
            {"title": "Blue in Green", "track_number": 3},
        ],
        "sources": [{"url": "https://example.org/kob"}],
    }


def _run(
    uow_factory: UowFactory,
    body: dict[str, Any],
    *,
    clock: FixedClock,
    event_hash: str = "b" * 64,
) -> dict[str, Any]:
    handler = ReleaseBundleHandler(uow_factory, clock=clock)
    event = Event(
        type=EventType.CREATE_RELEASE_BUNDLE.value, author_pubkey="PUB_K1_author", body=body
    )
    return dict(handler(event, HandlerContext(event_hash=event_hash, author="PUB_K1_author")))


def _count_edges(uow_factory: UowFactory, rel_type: RelationshipType) -> int:
    with uow_factory() as uow:
        graph = uow.repositories.graph
        return len(graph.find_edges(rel_type=rel_type))


def test_bundle_schema_accepts_legacy_field_names() -> None:
    bundle = ReleaseBundle.model_validate(
        {"release": {"release_name": "Abbey Road", "tracks": [{"title": "Come Together"}]}}
    )

    assert bundle.release.name == "Abbey Road"
    assert [track.title for track in bundle.tracks] == ["Come Together"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Lead Vocals", "vocals"),
        ("  vocal ", "vocals"),
        ("Electric Guitar", "guitar"),
        ("prod", "producer"),
        ("Theremin", "theremin"),
        ("   ", None),
    ],
)
def test_normalize_role_maps_synonyms(raw: str, expected: str | None) -> None:
    assert normalize_role(raw) == expected


def test_person_credit_normalizes_roles() -> None:
    credit = PersonCredit.model_validate(
        {
            "name": "Astrud Gilberto",
            "role": "Lead Vocal",
            "roles": "vox, backing vocals, Harmony Vocals, ",
            "instruments": ["Keys", "keyboard", "Synths"],
        }
    )

    assert credit.role == "vocals"
    assert credit.roles == ["vocals", "backing vocals"]
    assert credit.instruments == ["keyboards", "synthesizer"]


def test_bundle_stores_normalized_roles_on_edges(
    sqlite_unit_of_work: UowFactory, clock: FixedClock
) -> None:
    body = _bundle_body()
    body["groups"][0]["members"][1]["role"] = "  Lead Vocals"
    body["release"]["guests"][0]["roles"] = ["Production", "mix"]

    result = _run(sqlite_unit_of_work, body, clock=clock)

    with sqlite_unit_of_work() as uow:
        graph = uow.repositories.graph
        members = graph.find_edges(
            target_id=result["group_ids"][0], rel_type=RelationshipType.MEMBER_OF
        )
        guests = graph.find_edges(
            target_id=result["release_id"], rel_type=RelationshipType.GUEST_ON
        )
    assert {edge.properties["role"] for edge in members} == {"leader", "vocals"}
    assert [edge.properties["roles"] for edge in guests] == [["producer", "mixing"]]


def test_bundle_writes_entities_and_relationships(
    sqlite_unit_of_work: UowFactory, clock: FixedClock
) -> None:
    result = _run(sqlite_unit_of_work, _bundle_body(), clock=clock)

    assert result["status"] == "processed"
    assert result["release_id"].startswith("prov:release:")
    assert len(result["group_ids"]) == 1
    assert len(result["song_ids"]) == 1
    assert len(result["track_ids"]) == 2
    stats = result["stats"]
    assert stats["skipped_references"] == ["Unknown Combo", "Blue in Green"]

    with sqlite_unit_of_work() as uow:
        graph = uow.repositories.graph
        release = graph.get_entity(result["release_id"])
        group_id = result["group_ids"][0]
        members = graph.find_edges(target_id=group_id, rel_type=RelationshipType.MEMBER_OF)
        tracklist = graph.find_edges(
            target_id=result["release_id"], rel_type=RelationshipType.IN_RELEASE
        )
        performed = graph.find_edges(source_id=group_id, rel_type=RelationshipType.PERFORMED_ON)
        claims = graph.claims_about(result["release_id"])

    assert release is not None
    assert release.status is EntityStatus.PROVISIONAL
    assert release.entity_type is EntityType.RELEASE
    assert release.properties["name"] == "Kind of Blue"
    assert release.properties["release_date"] == "1959-08-17"
    assert "guests" not in release.properties
    assert len(members) == 2
    assert {edge.properties["role"] for edge in members} == {"leader", "member"}
    assert sorted(edge.properties["track_number"] for edge in tracklist) == [1, 2]
    assert len(performed) == 1
    assert [claim.property for claim in claims] == ["created"]
    assert _count_edges(sqlite_unit_of_work, RelationshipType.WROTE) == 1
    assert _count_edges(sqlite_unit_of_work, RelationshipType.PRODUCED) == 1
    assert _count_edges(sqlite_unit_of_work, RelationshipType.GUEST_ON) == 1
    assert _count_edges(sqlite_unit_of_work, RelationshipType.IN_MASTER) == 1
    assert _count_edges(sqlite_unit_of_work, RelationshipType.RELEASED) == 1


def test_replaying_a_bundle_changes_nothing(
    sqlite_unit_of_work: UowFactory, clock: FixedClock
) -> None:
    first = _run(sqlite_unit_of_work, _bundle_body(), clock=clock)
    with sqlite_unit_of_work() as uow:
        edges_before = len(uow.repositories.graph.incident_edges(first["release_id"]))

    replay = _run(sqlite_unit_of_work, _bundle_body(), clock=clock)

    assert replay["release_id"] == first["release_id"]
    assert replay["stats"]["entities_created"] == 0
    assert replay["stats"]["edges_created"] == 0
    assert replay["stats"]["claims_created"] == 0
    with sqlite_unit_of_work() as uow:
        assert len(uow.repositories.graph.incident_edges(first["release_id"])) == edges_before


def test_bundle_reuses_canonical_and_aliased_entities(
    sqlite_unit_of_work: UowFactory, clock: FixedClock
) -> None:
    group_id = mint_in(sqlite_unit_of_work, EntityType.GROUP, name="Quintet")
    person_id = mint_in(sqlite_unit_of_work, EntityType.PERSON, name="Red Garland")
    accessors = IdentityAccessors(sqlite_unit_of_work)
    accessors.create_external_mapping("discogs", "person", "254", person_id)
    body = {
        "release": {"name": "Relaxin'"},
        "groups": [
            {"name": "Quintet", "group_id": group_id, "members": [{"discogs_id": "254"}]}
        ],
    }

    result = _run(sqlite_unit_of_work, body, clock=clock)

    assert result["group_ids"] == [group_id]
    with sqlite_unit_of_work() as uow:
        members = uow.repositories.graph.find_edges(
            target_id=group_id, rel_type=RelationshipType.MEMBER_OF
        )
        group = uow.repositories.graph.get_entity(group_id)
    assert [edge.source_id for edge in members] == [person_id]
    assert group is not None
    assert group.status is EntityStatus.ACTIVE


def test_bundle_rejects_entities_of_the_wrong_type(
    sqlite_unit_of_work: UowFactory, clock: FixedClock
) -> None:
    person_id = mint_in(sqlite_unit_of_work, EntityType.PERSON)
    body = {"release": {"name": "Oops"}, "groups": [{"name": "X", "group_id": person_id}]}

    with pytest.raises(ValidationError):
        _run(sqlite_unit_of_work, body, clock=clock)

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.graph.incident_edges(person_id) == []


def test_bundle_requires_a_release(sqlite_unit_of_work: UowFactory, clock: FixedClock) -> None:
    with pytest.raises(ValidationError):
        _run(sqlite_unit_of_work, {"groups": []}, clock=clock)
