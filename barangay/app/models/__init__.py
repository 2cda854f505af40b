"""
Pydantic models for the barangay audit chain.
"""

from barangay.app.models.audit import (
    AuditStats,
    Block,
    CompromisedResult,
    SecureResult,
    VerificationResult,
)

__all__ = [
    "AuditStats",
    "Block",
    "CompromisedResult",
    "SecureResult",
    "VerificationResult",
]
