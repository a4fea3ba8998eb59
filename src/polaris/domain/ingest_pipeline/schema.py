"""Pydantic models for anchored events and typed event bodies."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

from polaris.domain.errors import ValidationError
from polaris.domain.ingest_pipeline.hashing import canonical_json
from polaris.domain.validation import parse_body


class AnchoredEvent(BaseModel):
    """Ledger-attested action as delivered by the ledger sink.

    ``content_hash`` is authoritative; ``event_hash`` is advisory only.
    """

    model_config = ConfigDict(extra="allow")

    content_hash: str | None = None
    payload: str | bytes | None = None
    event_hash: str | None = None
    block_num: int | None = None
    block_id: str | None = None
    trx_id: str | None = None
    action_ordinal: int | None = None
    timestamp: int | str | None = None
    source: str | None = None
    contract_account: str | None = None
    action_name: str = "put"

    def blockchain_metadata(self) -> dict[str, Any]:
        return {
            "block_num": self.block_num,
            "block_id": self.block_id,
            "trx_id": self.trx_id,
            "action_ordinal": self.action_ordinal,
            "timestamp": self.timestamp,
            "source": self.source,
        }


class EventBody(BaseModel):
    model_config = ConfigDict(extra="allow")


class InitialClaimPayload(EventBody):
    property: str
    value: Any = None
    confidence: float = 1.0


class ProvenancePayload(EventBody):
    source: str = "manual"
    submitter: str | None = None
    evidence: str = ""


class MintEntityBody(EventBody):
    entity_type: str
    canonical_id: str | None = None
    initial_claims: list[InitialClaimPayload] = Field(default_factory=list[InitialClaimPayload])
    provenance: ProvenancePayload = Field(default_factory=ProvenancePayload)


class ResolveIdBody(EventBody):
    subject_id: str
    canonical_id: str
    method: str = "manual"
    confidence: float = 1.0
    evidence: str = ""

    @field_validator("evidence", mode="before")
    @classmethod
    def _stringify_evidence(cls, value: object) -> object:
        if isinstance(value, Mapping | list):
            return canonical_json(value)
        return "" if value is None else value


class MergeStrategy(EventBody):
    rewire_edges: bool = True
    move_claims: bool = True
    tombstone_absorbed: bool = True


class MergeEntityBody(EventBody):
    survivor_id: str
    absorbed_ids: list[str]
    evidence: str = ""
    submitter: str | None = None
    strategy: MergeStrategy = Field(default_factory=MergeStrategy)


class NodeRef(EventBody):
    type: str
    id: str


class ClaimBody(EventBody):
    node: NodeRef
    field: str
    value: Any = None
    confidence: float = 1.0
    claim_id: str | None = None
    source: dict[str, Any] | None = None


def parse_anchored_event(raw: AnchoredEvent | Mapping[str, Any]) -> AnchoredEvent:
    if isinstance(raw, AnchoredEvent):
        return raw
    if not isinstance(raw, Mapping):
        raise ValidationError("Anchored event must be a mapping")
    return parse_body(AnchoredEvent, cast(Mapping[str, Any], raw))
