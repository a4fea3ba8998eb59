"""Pydantic models describing release bundle event bodies."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_LEGACY_RELEASE_FIELDS = {
    "release_name": "name",
    "releaseDate": "release_date",
    "albumArt": "album_art",
}


def _rename_legacy(value: object, renames: Mapping[str, str]) -> object:
    if not isinstance(value, Mapping):
        return value
    data: dict[str, Any] = dict(cast(Mapping[str, Any], value))
    for legacy, canonical in renames.items():
        if legacy in data and canonical not in data:
            data[canonical] = data.pop(legacy)
    return data


ROLE_SYNONYMS: Final[dict[str, str]] = {
    "guitars": "guitar",
    "electric guitar": "guitar",
    "acoustic guitar": "guitar",
    "bass": "bass guitar",
    "electric bass": "bass guitar",
    "drum": "drums",
    "keys": "keyboards",
    "keyboard": "keyboards",
    "synth": "synthesizer",
    "synths": "synthesizer",
    "vox": "vocals",
    "vocal": "vocals",
    "voice": "vocals",
    "singing": "vocals",
    "lead vocals": "vocals",
    "lead vocal": "vocals",
    "background vocals": "backing vocals",
    "harmony vocals": "backing vocals",
    "prod": "producer",
    "production": "producer",
    "recording engineer": "engineer",
    "mixing engineer": "mixing",
    "mix": "mixing",
    "mastering engineer": "mastering",
    "master": "mastering",
    "writer": "songwriter",
    "arrangement": "arranger",
}


def normalize_role(role: object) -> str | None:
    """Lowercase and trim ``role`` and map known synonyms onto one spelling."""

    if not isinstance(role, str):
        return None
    normalized = role.strip().lower()
    if not normalized:
        return None
    return ROLE_SYNONYMS.get(normalized, normalized)


def normalize_roles(roles: object) -> list[str]:
    """Normalize a role list or a comma separated string, dropping blanks and repeats."""

    if isinstance(roles, str):
        roles = roles.split(",")
    if not isinstance(roles, list | tuple):
        return []
    normalized: list[str] = []
    for role in cast("list[object] | tuple[object, ...]", roles):
        value = normalize_role(role)
        if value is not None and value not in normalized:
            normalized.append(value)
    return normalized


class BundleModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    def properties(self, *, exclude: set[str] | None = None) -> dict[str, Any]:
        """Scalar attributes worth storing on the entity node."""

        return self.model_dump(mode="json", exclude_none=True, exclude=exclude)


class PersonCredit(BundleModel):
    name: str | None = None
    person_id: str | None = None
    role: str | None = None
    roles: list[str] = Field(default_factory=list[str])
    instruments: list[str] = Field(default_factory=list[str])
    credited_as: str | None = None
    from_date: str | None = None
    to_date: str | None = None
    share_percentage: float | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: object) -> object:
        return value if value is None else normalize_role(value)

    @field_validator("roles", "instruments", mode="before")
    @classmethod
    def _normalize_roles(cls, value: object) -> object:
        return value if value is None else normalize_roles(value)


class GroupPayload(BundleModel):
    name: str
    group_id: str | None = None
    alt_names: list[str] = Field(default_factory=list[str])
    bio: str | None = None
    formed_date: str | None = None
    disbanded_date: str | None = None
    members: list[PersonCredit] = Field(default_factory=list[PersonCredit])

    @model_validator(mode="before")
    @classmethod
    def _rename_legacy_fields(cls, value: object) -> object:
        return _rename_legacy(value, {"group_name": "name"})


class LabelRef(BundleModel):
    name: str | None = None
    label_id: str | None = None


class ReleasePayload(BundleModel):
    name: str
    release_id: str | None = None
    alt_names: list[str] = Field(default_factory=list[str])
    release_date: str | None = None
    format: list[str] | str | None = None
    country: str | None = None
    catalog_number: str | None = None
    liner_notes: str | None = None
    trivia: str | None = None
    album_art: str | None = None
    master_id: str | None = None
    master_name: str | None = None
    guests: list[PersonCredit] = Field(default_factory=list[PersonCredit])
    labels: list[LabelRef] = Field(default_factory=list[LabelRef])

    @model_validator(mode="before")
    @classmethod
    def _rename_legacy_fields(cls, value: object) -> object:
        return _rename_legacy(value, _LEGACY_RELEASE_FIELDS)


class SongPayload(BundleModel):
    title: str
    song_id: str | None = None
    alt_titles: list[str] = Field(default_factory=list[str])
    iswc: str | None = None
    year: int | str | None = None
    lyrics: str | None = None
    writers: list[PersonCredit] = Field(default_factory=list[PersonCredit])


class GroupRef(BundleModel):
    group_id: str | None = None
    name: str | None = None
    credited_as: str | None = None


class SampleRef(BundleModel):
    track_id: str | None = None
    title: str | None = None
    portion_used: str | None = None
    cleared: bool = False


class TrackPayload(BundleModel):
    title: str
    track_id: str | None = None
    isrc: str | None = None
    duration: int | str | None = None
    recording_date: str | None = None
    recording_location: str | None = None
    listen_links: list[str] = Field(default_factory=list[str])
    performed_by_groups: list[GroupRef] = Field(default_factory=list[GroupRef])
    guests: list[PersonCredit] = Field(default_factory=list[PersonCredit])
    producers: list[PersonCredit] = Field(default_factory=list[PersonCredit])
    arrangers: list[PersonCredit] = Field(default_factory=list[PersonCredit])
    recording_of_song_id: str | None = None
    cover_of_song_id: str | None = None
    samples: list[SampleRef] = Field(default_factory=list[SampleRef])


class TracklistItem(BundleModel):
    track_id: str | None = None
    title: str | None = None
    disc_number: int = 1
    track_number: int | None = None
    side: str | None = None
    is_bonus: bool = False


class ReleaseBundle(BundleModel):
    release: ReleasePayload
    groups: list[GroupPayload] = Field(default_factory=list[GroupPayload])
    songs: list[SongPayload] = Field(default_factory=list[SongPayload])
    tracks: list[TrackPayload] = Field(default_factory=list[TrackPayload])
    tracklist: list[TracklistItem] = Field(default_factory=list[TracklistItem])
    sources: list[dict[str, Any]] = Field(default_factory=list[dict[str, Any]])

    @model_validator(mode="before")
    @classmethod
    def _tracks_from_release(cls, value: object) -> object:
        # older clients nest the track catalog under the release
        if not isinstance(value, Mapping):
            return value
        data: dict[str, Any] = dict(cast(Mapping[str, Any], value))
        release = data.get("release")
        if "tracks" not in data and isinstance(release, Mapping):
            nested = cast(Mapping[str, Any], release).get("tracks")
            if nested is not None:
                data["tracks"] = nested
        return data
