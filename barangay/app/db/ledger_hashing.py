"""
Single-source canonical hashing module for the barangay audit chain.

All digest computation for audit blocks MUST go through this module.
The writer (services/audit_log.py), the verification service
(services/chain_verifier.py) and the offline verifier
(tools/verify_audit_chain.py) all import from here to prevent
canonicalization drift.

Hash policy
-----------
  canonical = JSON object with keys in this exact order:
              timestamp, actor, action, module, description, previousDigest
              compact separators, no key sorting, UTF-8 (no ASCII escaping)
  digest    = SHA-256(canonical.encode("utf-8")).hexdigest()

Ordering used by verifier
--------------------------
  ORDER BY timestamp ASC, sequence ASC
"""

import hashlib
import json
from collections import OrderedDict
from datetime import datetime, timezone

# previousDigest of the first block in the chain.
GENESIS_DIGEST = "0" * 32

# Constants exported so callers can embed them verbatim in JSON output.
HASH_POLICY = (
    "SHA-256(json{timestamp,actor,action,module,description,previousDigest})"
)
ORDERING = "timestamp ASC, sequence ASC"

# Field order of the canonical object. Changing it invalidates every block.
CANONICAL_FIELDS = (
    "timestamp",
    "actor",
    "action",
    "module",
    "description",
    "previousDigest",
)


def utc_timestamp() -> str:
    """
    Current UTC time as a fixed-width ISO 8601 string.

    Always millisecond precision with a 'Z' suffix, e.g.
    '2025-03-01T08:15:30.123Z', so that string order equals time order.
    """
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def hash_content(content: str) -> str:
    """Hash a UTF-8 string with SHA-256 and return the hex digest."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def canonical_block_json(
    timestamp: str,
    actor: str,
    action: str,
    module: str,
    description: str,
    previous_digest: str,
) -> str:
    """
    Produce the canonical JSON text for one block's hashable fields.

    Args:
        timestamp: ISO 8601 timestamp stored with the block
        actor: Username or "System"
        action: Action verb (e.g. "CREATE")
        module: Subsystem the action belongs to (e.g. "Resident")
        description: Free-text detail
        previous_digest: Digest of the predecessor, or GENESIS_DIGEST

    Returns:
        Canonical JSON string

    Raises:
        ValueError: If any field is not a string

    Example:
        >>> canonical_block_json("t", "alice", "CREATE", "Resident", "d", "0" * 32)
        '{"timestamp":"t","actor":"alice","action":"CREATE","module":"Resident","description":"d","previousDigest":"00000000000000000000000000000000"}'
    """
    values = (timestamp, actor, action, module, description, previous_digest)
    for name, value in zip(CANONICAL_FIELDS, values):
        if not isinstance(value, str):
            raise ValueError(
                f"Block field '{name}' must be a string, got {type(value).__name__}"
            )

    fields = OrderedDict(zip(CANONICAL_FIELDS, values))
    return json.dumps(fields, separators=(",", ":"), ensure_ascii=False)


def compute_block_digest(
    timestamp: str,
    actor: str,
    action: str,
    module: str,
    description: str,
    previous_digest: str,
) -> str:
    """
    Compute the canonical digest for one audit block.

    This is the SINGLE authoritative implementation used by the append
    service and every verifier.  Do NOT duplicate this logic elsewhere.
    """
    return hash_content(
        canonical_block_json(
            timestamp, actor, action, module, description, previous_digest
        )
    )
