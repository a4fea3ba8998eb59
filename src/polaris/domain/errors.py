"""Typed errors raised by the identity, merge and ingest layers.

Every error carries a machine-readable ``kind`` so callers at the API or sink
boundary can report failures without leaking store internals.
"""

from __future__ import annotations

from typing import ClassVar


class PolarisError(Exception):
    """Base class for registry errors surfaced to callers."""

    kind: ClassVar[str] = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(PolarisError):
    """Bad input: missing fields, bad identifier grammar, wrong entity type."""

    kind = "validation_error"


class InvalidArgumentError(ValidationError):
    """An argument is outside the accepted domain (e.g. unknown entity type)."""

    kind = "invalid_argument"


class TypeMismatchError(ValidationError):
    """Entities of different types were asked to merge."""

    kind = "type_mismatch"


class IntegrityViolation(PolarisError):
    """The backend broke a contract mid-operation; the transaction must roll back."""

    kind = "integrity_violation"


class NotFoundError(PolarisError):
    """A referenced entity, alias, mapping or event does not exist."""

    kind = "not_found"
