"""Apply CREATE_RELEASE_BUNDLE events to the graph.

A bundle describes one release with its groups, songs, tracks and credits.
Everything is written in one transaction. Edge keys and claim ids derive from
the event hash and the position of each operation in the bundle, so replaying
an event changes nothing.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from polaris.domain.errors import ValidationError
from polaris.domain.identity.aliases import follow_merges, resolve_entity_id, resolve_to_canonical
from polaris.domain.identity.grammar import classify, normalize_name
from polaris.domain.identity.minting import claim_id_for
from polaris.domain.model import (
    ClaimRecord,
    EdgeRecord,
    EntityRecord,
    EntityStatus,
    EntityType,
    IdKind,
    RelationshipType,
    utcnow,
)
from polaris.domain.validation import parse_body

from .schema import ReleaseBundle

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from polaris.domain.model import Event
    from polaris.domain.ports import GraphStore, GraphUnitOfWorkFactory, HandlerContext

    from .schema import (
        GroupPayload,
        PersonCredit,
        ReleasePayload,
        SongPayload,
        TrackPayload,
    )


log = logging.getLogger(__name__)


def op_id(event_hash: str, index: int) -> str:
    return hashlib.sha256(f"{event_hash}:{index}".encode()).hexdigest()


@dataclass(slots=True)
class BundleStats:
    groups: int = 0
    persons: int = 0
    songs: int = 0
    tracks: int = 0
    labels: int = 0
    entities_created: int = 0
    edges_created: int = 0
    claims_created: int = 0
    skipped_references: list[str] = field(default_factory=list[str])

    def as_dict(self) -> dict[str, object]:
        return {
            "groups": self.groups,
            "persons": self.persons,
            "songs": self.songs,
            "tracks": self.tracks,
            "labels": self.labels,
            "entities_created": self.entities_created,
            "edges_created": self.edges_created,
            "claims_created": self.claims_created,
            "skipped_references": list(self.skipped_references),
        }


class _BundleWriter:
    """Per-event write helper bound to one transaction."""

    def __init__(
        self, graph: GraphStore, context: HandlerContext, submitter: str, now: datetime
    ) -> None:
        self.graph = graph
        self.context = context
        self.submitter = submitter
        self.now = now
        self.stats = BundleStats()
        self._op_index = 0

    def next_op(self) -> tuple[int, str]:
        index = self._op_index
        self._op_index += 1
        return index, op_id(self.context.event_hash, index)

    def resolve(self, entity_type: EntityType, data: Mapping[str, object]) -> str:
        entity_id = resolve_entity_id(self.graph, entity_type, data)
        if self.graph.get_alias(entity_id) is not None:
            return resolve_to_canonical(self.graph, entity_id)
        return entity_id

    def existing(self, entity_id: str | None) -> str | None:
        """Live id behind ``entity_id`` when it is a known entity or alias."""

        if not entity_id:
            return None
        if self.graph.get_alias(entity_id) is not None:
            return resolve_to_canonical(self.graph, entity_id)
        entity = self.graph.get_entity(entity_id)
        return follow_merges(self.graph, entity).id if entity else None

    def upsert(
        self,
        entity_id: str,
        entity_type: EntityType,
        properties: Mapping[str, object],
        *,
        overwrite: bool = True,
    ) -> str:
        existing = self.graph.get_entity(entity_id)
        if existing is not None:
            live = follow_merges(self.graph, existing)
            if live.entity_type is not entity_type:
                raise ValidationError(
                    f"{live.id} is a {live.entity_type}, bundle uses it as {entity_type}"
                )
            if overwrite:
                self.graph.set_entity_properties(
                    live.id, properties, updated_by=self.submitter, updated_at=self.now
                )
            return live.id

        parsed = classify(entity_id)
        if parsed.kind is IdKind.CANONICAL and parsed.entity_type is not entity_type:
            raise ValidationError(f"{entity_id} cannot identify a {entity_type}")
        self.graph.add_entity(
            EntityRecord(
                id=entity_id,
                entity_type=entity_type,
                status=(
                    EntityStatus.ACTIVE
                    if parsed.kind is IdKind.CANONICAL
                    else EntityStatus.PROVISIONAL
                ),
                properties=dict(properties),
                created_at=self.now,
                created_by=self.submitter,
                creation_source="release_bundle",
                event_hash=self.context.event_hash,
            )
        )
        self.stats.entities_created += 1
        return entity_id

    def link(
        self,
        op: str,
        rel_type: RelationshipType,
        source_id: str,
        target_id: str,
        properties: Mapping[str, object] | None = None,
    ) -> None:
        props = {key: value for key, value in (properties or {}).items() if value is not None}
        props["event_hash"] = self.context.event_hash
        created = self.graph.add_edge(
            EdgeRecord(
                rel_type=rel_type,
                source_id=source_id,
                target_id=target_id,
                properties=props,
                edge_key=f"{op}:{rel_type}:{source_id}->{target_id}",
            )
        )
        if created:
            self.stats.edges_created += 1

    def audit_claim(self, op_index: int, entity_id: str, value: object) -> None:
        created = self.graph.add_claim(
            ClaimRecord(
                claim_id=claim_id_for(self.context.event_hash, "created", op_index),
                entity_id=entity_id,
                property="created",
                value=value,
                created_at=self.now,
                created_by=self.submitter,
                event_hash=self.context.event_hash,
            )
        )
        if created:
            self.stats.claims_created += 1

    def person(self, credit: PersonCredit) -> str:
        person_id = self.resolve(EntityType.PERSON, credit.model_dump(exclude_none=True))
        self.stats.persons += 1
        return self.upsert(
            person_id,
            EntityType.PERSON,
            {"name": credit.name} if credit.name else {},
            overwrite=False,
        )


class ReleaseBundleHandler:
    """Handler for CREATE_RELEASE_BUNDLE events."""

    def __init__(
        self,
        unit_of_work_factory: GraphUnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._clock = clock

    def __call__(self, event: Event, context: HandlerContext) -> Mapping[str, object]:
        bundle = parse_body(ReleaseBundle, event.body)
        submitter = context.author or event.author_pubkey
        log.info(
            "Processing release bundle %s from event %s", bundle.release.name, context.event_hash
        )

        with self._uow_factory() as uow:
            writer = _BundleWriter(uow.repositories.graph, context, submitter, self._clock())
            group_ids = [self._write_group(writer, group) for group in bundle.groups]
            release_id = self._write_release(writer, bundle.release)
            song_ids = [self._write_song(writer, song) for song in bundle.songs]
            track_ids: dict[str, str] = {}
            for track in bundle.tracks:
                track_id = self._write_track(writer, track)
                if track.track_id:
                    track_ids[track.track_id] = track_id
                track_ids[f"title:{normalize_name(track.title)}"] = track_id
            self._write_tracklist(writer, bundle, release_id, track_ids)
            self._write_master_and_labels(writer, bundle.release, release_id)
            if bundle.sources:
                log.debug("Ignoring %d source references", len(bundle.sources))
            uow.commit()

        stats = writer.stats
        log.info(
            "Processed release bundle %s: %d groups, %d songs, %d tracks, %d edges",
            release_id,
            stats.groups,
            stats.songs,
            stats.tracks,
            stats.edges_created,
        )
        return {
            "status": "processed",
            "release_id": release_id,
            "group_ids": group_ids,
            "song_ids": song_ids,
            "track_ids": sorted(set(track_ids.values())),
            "stats": stats.as_dict(),
        }

    @staticmethod
    def _write_group(writer: _BundleWriter, group: GroupPayload) -> str:
        op_index, op = writer.next_op()
        group_id = writer.upsert(
            writer.resolve(EntityType.GROUP, group.model_dump(exclude_none=True)),
            EntityType.GROUP,
            group.properties(exclude={"group_id", "members"}),
        )
        writer.stats.groups += 1
        for member in group.members:
            person_id = writer.person(member)
            writer.link(
                op,
                RelationshipType.MEMBER_OF,
                person_id,
                group_id,
                {
                    "role": member.role or "member",
                    "from_date": member.from_date,
                    "to_date": member.to_date,
                    "instruments": list(member.instruments),
                },
            )
        writer.audit_claim(op_index, group_id, group.properties())
        return group_id

    @staticmethod
    def _write_release(writer: _BundleWriter, release: ReleasePayload) -> str:
        op_index, op = writer.next_op()
        release_id = writer.upsert(
            writer.resolve(EntityType.RELEASE, release.model_dump(exclude_none=True)),
            EntityType.RELEASE,
            release.properties(
                exclude={"release_id", "guests", "labels", "master_id", "master_name", "tracks"}
            ),
        )
        for guest in release.guests:
            writer.link(
                op,
                RelationshipType.GUEST_ON,
                writer.person(guest),
                release_id,
                {"roles": list(guest.roles), "credited_as": guest.credited_as},
            )
        writer.audit_claim(op_index, release_id, release.properties(exclude={"tracks"}))
        return release_id

    @staticmethod
    def _write_song(writer: _BundleWriter, song: SongPayload) -> str:
        op_index, op = writer.next_op()
        song_id = writer.upsert(
            writer.resolve(EntityType.SONG, song.model_dump(exclude_none=True)),
            EntityType.SONG,
            song.properties(exclude={"song_id", "writers"}),
        )
        writer.stats.songs += 1
        for writer_credit in song.writers:
            writer.link(
                op,
                RelationshipType.WROTE,
                writer.person(writer_credit),
                song_id,
                {
                    "role": writer_credit.role or "songwriter",
                    "share_percentage": writer_credit.share_percentage,
                },
            )
        writer.audit_claim(op_index, song_id, song.properties())
        return song_id

    @staticmethod
    def _write_track(writer: _BundleWriter, track: TrackPayload) -> str:
        op_index, op = writer.next_op()
        track_id = writer.upsert(
            writer.resolve(EntityType.TRACK, track.model_dump(exclude_none=True)),
            EntityType.TRACK,
            track.properties(
                exclude={
                    "track_id",
                    "performed_by_groups",
                    "guests",
                    "producers",
                    "arrangers",
                    "recording_of_song_id",
                    "cover_of_song_id",
                    "samples",
                }
            ),
        )
        writer.stats.tracks += 1

        for group_ref in track.performed_by_groups:
            group_id = writer.existing(group_ref.group_id)
            if group_id is None and group_ref.name:
                group_id = writer.existing(
                    writer.resolve(EntityType.GROUP, group_ref.model_dump(exclude_none=True))
                )
            if group_id is None:
                log.warning("Track %s names an unknown performing group, skipping", track.title)
                writer.stats.skipped_references.append(group_ref.group_id or str(group_ref.name))
                continue
            writer.link(
                op,
                RelationshipType.PERFORMED_ON,
                group_id,
                track_id,
                {"credited_as": group_ref.credited_as},
            )

        for guest in track.guests:
            writer.link(
                op,
                RelationshipType.GUEST_ON,
                writer.person(guest),
                track_id,
                {
                    "roles": list(guest.roles),
                    "instruments": list(guest.instruments),
                    "credited_as": guest.credited_as,
                },
            )
        for producer in track.producers:
            writer.link(
                op,
                RelationshipType.PRODUCED,
                writer.person(producer),
                track_id,
                {"role": producer.role or "producer"},
            )
        for arranger in track.arrangers:
            writer.link(
                op,
                RelationshipType.ARRANGED,
                writer.person(arranger),
                track_id,
                {"role": arranger.role or "arranger"},
            )

        for rel_type, song_ref in (
            (RelationshipType.RECORDING_OF, track.recording_of_song_id),
            (RelationshipType.COVER_OF, track.cover_of_song_id),
        ):
            if not song_ref:
                continue
            song_id = writer.existing(song_ref)
            if song_id is None:
                log.warning("Track %s references unknown song %s", track.title, song_ref)
                writer.stats.skipped_references.append(song_ref)
                continue
            writer.link(op, rel_type, track_id, song_id)

        for sample in track.samples:
            sampled_id = writer.existing(sample.track_id)
            if sampled_id is None:
                sampled_id = writer.upsert(
                    sample.track_id
                    or writer.resolve(EntityType.TRACK, {"title": sample.title or "Unknown"}),
                    EntityType.TRACK,
                    {"title": sample.title or "Unknown"},
                    overwrite=False,
                )
            writer.link(
                op,
                RelationshipType.SAMPLES,
                track_id,
                sampled_id,
                {"portion_used": sample.portion_used, "cleared": sample.cleared},
            )

        writer.audit_claim(op_index, track_id, track.properties())
        return track_id

    @staticmethod
    def _write_tracklist(
        writer: _BundleWriter,
        bundle: ReleaseBundle,
        release_id: str,
        track_ids: Mapping[str, str],
    ) -> None:
        _, op = writer.next_op()
        for item in bundle.tracklist:
            track_id: str | None = None
            if item.track_id:
                track_id = track_ids.get(item.track_id) or writer.existing(item.track_id)
            elif item.title:
                track_id = track_ids.get(f"title:{normalize_name(item.title)}")
            if track_id is None:
                log.warning(
                    "Tracklist entry %s matches no track, skipping", item.track_id or item.title
                )
                writer.stats.skipped_references.append(item.track_id or str(item.title))
                continue
            writer.link(
                op,
                RelationshipType.IN_RELEASE,
                track_id,
                release_id,
                {
                    "disc_number": item.disc_number,
                    "track_number": item.track_number,
                    "side": item.side,
                    "is_bonus": item.is_bonus,
                },
            )

    @staticmethod
    def _write_master_and_labels(
        writer: _BundleWriter, release: ReleasePayload, release_id: str
    ) -> None:
        _, op = writer.next_op()
        if release.master_id:
            master_name = release.master_name or release.name
            master_data: dict[str, Any] = {"master_id": release.master_id, "name": master_name}
            master_id = writer.upsert(
                writer.resolve(EntityType.MASTER, master_data),
                EntityType.MASTER,
                {"name": master_name},
                overwrite=False,
            )
            writer.link(op, RelationshipType.IN_MASTER, release_id, master_id)

        for label in release.labels:
            label_id = writer.upsert(
                writer.resolve(EntityType.LABEL, label.model_dump(exclude_none=True)),
                EntityType.LABEL,
                {"name": label.name} if label.name else {},
                overwrite=False,
            )
            writer.stats.labels += 1
            writer.link(op, RelationshipType.RELEASED, label_id, release_id)
