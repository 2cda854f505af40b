"""
Pydantic models for audit chain blocks and verification results.

Field names follow Python conventions; the wire format (JSON) uses the
camelCase aliases the records UI consumes.
"""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Block(BaseModel):
    """One persisted, immutable audit log entry."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    block_id: str = Field(..., alias="id", description="Opaque block identifier")
    sequence: Optional[int] = Field(None, description="Store-assigned ordering tie-breaker")
    timestamp: str = Field(..., description="ISO 8601 time the action occurred")
    actor: str = Field(..., description="Username, or 'System'")
    action: str = Field(..., description="Action verb, e.g. CREATE")
    module: str = Field(..., description="Subsystem, e.g. Resident")
    description: str = Field(..., description="Human-readable detail")
    previous_digest: str = Field(..., alias="previousDigest")
    digest: str = Field(..., description="SHA-256 of the canonical block content")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Block":
        """Build a Block from an audit_blocks row."""
        return cls(
            block_id=row["block_id"],
            sequence=row["sequence"],
            timestamp=row["timestamp"],
            actor=row["actor"],
            action=row["action"],
            module=row["module"],
            description=row["description"],
            previous_digest=row["previous_digest"],
            digest=row["digest"],
        )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with camelCase keys."""
        return self.model_dump(by_alias=True)


class SecureResult(BaseModel):
    """The whole chain verified."""

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["Secure"] = "Secure"
    total_blocks: int = Field(0, alias="totalBlocks")
    message: str = "Audit chain integrity verified. No tampering detected."


class CompromisedResult(BaseModel):
    """
    The chain failed verification.

    Only the first failure is reported. The offending block is identified by
    id, never by content, so tampered data is not re-trusted.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["Compromised"] = "Compromised"
    failure_index: int = Field(..., alias="failureIndex")
    failure_kind: Literal["DataTampering", "ChainBreak"] = Field(
        ..., alias="failureKind"
    )
    block_id: str = Field(..., alias="blockId")
    total_blocks: int = Field(0, alias="totalBlocks")
    message: str = "Integrity check failed."


VerificationResult = Union[SecureResult, CompromisedResult]


class AuditStats(BaseModel):
    """Chain summary for dashboards."""

    total: int
    tip: Optional[str] = None
