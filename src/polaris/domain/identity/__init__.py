"""Identifier grammar, alias resolution and entity minting."""

from __future__ import annotations

from polaris.domain.identity.aliases import (
    IdentityAccessors,
    create_alias,
    create_external_mapping,
    follow_merges,
    resolve_entity_id,
    resolve_external_mapping,
    resolve_to_canonical,
)
from polaris.domain.identity.grammar import (
    IdClassification,
    classify,
    fingerprint,
    is_canonical,
    make_external_id,
    make_provisional_id,
    mint,
    normalize_name,
    parse_entity_type,
)
from polaris.domain.identity.minting import InitialClaim, MintOutcome, claim_id_for, mint_entity

__all__ = [
    "IdClassification",
    "IdentityAccessors",
    "InitialClaim",
    "MintOutcome",
    "claim_id_for",
    "classify",
    "create_alias",
    "create_external_mapping",
    "fingerprint",
    "follow_merges",
    "is_canonical",
    "make_external_id",
    "make_provisional_id",
    "mint",
    "mint_entity",
    "normalize_name",
    "parse_entity_type",
    "resolve_entity_id",
    "resolve_external_mapping",
    "resolve_to_canonical",
]
