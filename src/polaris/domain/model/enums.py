"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityType(StrEnum):
    """Closed set of canonical entity kinds."""

    PERSON = "person"
    GROUP = "group"
    SONG = "song"  # composition
    TRACK = "track"  # recording
    RELEASE = "release"
    MASTER = "master"
    LABEL = "label"


class IdKind(StrEnum):
    CANONICAL = "canonical"
    PROVISIONAL = "provisional"
    EXTERNAL = "external"


class ExternalSource(StrEnum):
    """Third-party catalogs whose identifiers we recognise."""

    DISCOGS = "discogs"
    MUSICBRAINZ = "musicbrainz"
    ISNI = "isni"
    WIKIDATA = "wikidata"
    SPOTIFY = "spotify"


class EntityStatus(StrEnum):
    ACTIVE = "ACTIVE"
    PROVISIONAL = "PROVISIONAL"
    MERGED = "MERGED"


class AliasKind(StrEnum):
    PROVISIONAL = "provisional"
    EXTERNAL = "external"


class ResolutionMethod(StrEnum):
    MANUAL = "manual"
    IMPORT = "import"
    AI_SUGGESTED = "ai_suggested"
    AUTHORITY_SOURCE = "authority_source"


class RelationshipType(StrEnum):
    """Whitelisted edge types; dynamic query construction only ever uses these."""

    ALIAS_OF = "ALIAS_OF"
    MEMBER_OF = "MEMBER_OF"
    PERFORMED_ON = "PERFORMED_ON"
    GUEST_ON = "GUEST_ON"
    WROTE = "WROTE"
    PRODUCED = "PRODUCED"
    ARRANGED = "ARRANGED"
    RECORDING_OF = "RECORDING_OF"
    COVER_OF = "COVER_OF"
    SAMPLES = "SAMPLES"
    IN_RELEASE = "IN_RELEASE"
    IN_MASTER = "IN_MASTER"
    RELEASED = "RELEASED"


class EventType(StrEnum):
    CREATE_RELEASE_BUNDLE = "CREATE_RELEASE_BUNDLE"
    MINT_ENTITY = "MINT_ENTITY"
    RESOLVE_ID = "RESOLVE_ID"
    ADD_CLAIM = "ADD_CLAIM"
    EDIT_CLAIM = "EDIT_CLAIM"
    VOTE = "VOTE"
    LIKE = "LIKE"
    FINALIZE = "FINALIZE"
    MERGE_ENTITY = "MERGE_ENTITY"


class IngestStatus(StrEnum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    FAILED = "failed"
