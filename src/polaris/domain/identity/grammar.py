"""Identifier grammar: classification and minting of registry ids.

Three kinds of identifier circulate through the registry:

- canonical ``polaris:{type}:{uuid}``, stable forever
- external ``{source}:{type}:{id}``, a reference into a known third-party catalog
- provisional, anything else (``prov:{type}:{hash}`` when we mint it ourselves)

``classify`` never raises; callers must check ``valid``.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final
from uuid import uuid4

from polaris.domain.errors import InvalidArgumentError
from polaris.domain.model import EntityType, ExternalSource, IdKind

if TYPE_CHECKING:
    from collections.abc import Mapping

CANONICAL_PREFIX: Final[str] = "polaris"
PROVISIONAL_PREFIX: Final[str] = "prov"
PROVISIONAL_HASH_LENGTH: Final[int] = 16

_KNOWN_SOURCES: Final[frozenset[str]] = frozenset(source.value for source in ExternalSource)
_UUID_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


@dataclass(slots=True, frozen=True)
class IdClassification:
    kind: IdKind
    raw: str
    valid: bool
    fields: dict[str, str] = field(default_factory=dict[str, str])

    @property
    def entity_type(self) -> EntityType | None:
        value = self.fields.get("entity_type")
        if value is None:
            return None
        try:
            return EntityType(value)
        except ValueError:
            return None


def classify(identifier: object) -> IdClassification:
    """Classify ``identifier`` by kind and parse its fields."""

    if not isinstance(identifier, str) or not identifier.strip():
        raw = identifier if isinstance(identifier, str) else repr(identifier)
        return IdClassification(kind=IdKind.PROVISIONAL, raw=raw, valid=False)

    parts = identifier.split(":", 2)
    if len(parts) < 3:
        return IdClassification(kind=IdKind.PROVISIONAL, raw=identifier, valid=True)

    prefix, type_part, rest = parts
    if prefix == CANONICAL_PREFIX:
        return IdClassification(
            kind=IdKind.CANONICAL,
            raw=identifier,
            valid=_is_entity_type(type_part) and bool(_UUID_PATTERN.match(rest)),
            fields={"entity_type": type_part, "uuid": rest},
        )

    if prefix in _KNOWN_SOURCES:
        return IdClassification(
            kind=IdKind.EXTERNAL,
            raw=identifier,
            valid=bool(type_part) and bool(rest),
            fields={"source": prefix, "external_type": type_part, "external_id": rest},
        )

    if prefix == PROVISIONAL_PREFIX:
        return IdClassification(
            kind=IdKind.PROVISIONAL,
            raw=identifier,
            valid=_is_entity_type(type_part) and bool(rest),
            fields={"entity_type": type_part, "local_id": rest},
        )

    return IdClassification(kind=IdKind.PROVISIONAL, raw=identifier, valid=True)


def is_canonical(identifier: object) -> bool:
    parsed = classify(identifier)
    return parsed.kind is IdKind.CANONICAL and parsed.valid


def parse_entity_type(value: object) -> EntityType:
    """Validate a free-form type string against the closed entity-type set."""

    if isinstance(value, EntityType):
        return value
    if isinstance(value, str):
        try:
            return EntityType(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in EntityType)
    raise InvalidArgumentError(f"Invalid entity type: {value!r} (expected one of {allowed})")


def mint(entity_type: EntityType | str) -> str:
    """Generate a fresh canonical id for ``entity_type``."""

    resolved = parse_entity_type(entity_type)
    return f"{CANONICAL_PREFIX}:{resolved.value}:{uuid4()}"


def make_external_id(source: str, external_type: str, external_id: str) -> str:
    return f"{source}:{external_type}:{external_id}"


def make_provisional_id(
    entity_type: EntityType | str, fingerprint_data: Mapping[str, object]
) -> str:
    """Deterministic provisional id for an entity described by ``fingerprint_data``."""

    resolved = parse_entity_type(entity_type)
    canonical = json.dumps(fingerprint_data, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{PROVISIONAL_PREFIX}:{resolved.value}:{digest[:PROVISIONAL_HASH_LENGTH]}"


_THE_PREFIX = re.compile(r"^the\s+", re.IGNORECASE)
_DISCOGS_SUFFIX = re.compile(r"\s*\(\d+\)$")
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[.,;:!?'\"]")


def normalize_name(name: object) -> str:
    """Fold naming variations that should not produce distinct provisional ids."""

    if not isinstance(name, str) or not name:
        return ""
    normalized = name.lower().strip()
    normalized = _THE_PREFIX.sub("", normalized)
    normalized = _DISCOGS_SUFFIX.sub("", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)
    return _PUNCTUATION.sub("", normalized)


def fingerprint(entity_type: EntityType | str, data: Mapping[str, object]) -> dict[str, object]:
    """Key fields identifying an entity before it has a canonical id."""

    resolved = parse_entity_type(entity_type)
    match resolved:
        case EntityType.PERSON:
            result: dict[str, object] = {
                "type": "person",
                "name": normalize_name(data.get("name") or data.get("person_name")),
            }
            if data.get("birth_year"):
                result["birth_year"] = data["birth_year"]
            return result
        case EntityType.GROUP:
            return {
                "type": "group",
                "name": normalize_name(data.get("name") or data.get("group_name")),
            }
        case EntityType.SONG:
            result = {
                "type": "song",
                "title": normalize_name(data.get("title") or data.get("song_title")),
            }
            if data.get("primary_writer"):
                result["writer"] = normalize_name(data["primary_writer"])
            return result
        case EntityType.TRACK:
            return {
                "type": "track",
                "title": normalize_name(data.get("title") or data.get("track_title")),
                "release": data.get("release_id"),
                "position": data.get("track_number") or data.get("position"),
            }
        case EntityType.RELEASE:
            result = {
                "type": "release",
                "title": normalize_name(
                    data.get("title") or data.get("release_name") or data.get("name")
                ),
                "date": data.get("release_date") or data.get("year"),
            }
            if data.get("catalog_number"):
                result["catalog"] = data["catalog_number"]
            return result
        case EntityType.MASTER | EntityType.LABEL:
            return {"type": resolved.value, "name": normalize_name(data.get("name"))}


def _is_entity_type(value: str) -> bool:
    try:
        EntityType(value)
    except ValueError:
        return False
    return True
