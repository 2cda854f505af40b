"""
Audit chain verification.

Walks the chain oldest to newest and certifies it Secure, or reports the
first block where it is Compromised:

  DataTampering  the block's recomputed digest differs from its stored
                 digest (or a hashed field is missing): the block itself
                 was edited.
  ChainBreak     the block's previous_digest does not match the digest of
                 the block before it (or the oldest block is not a genesis
                 block): blocks were removed, inserted or reordered.

Tampering is checked before linkage at each index.  Scanning stops at the
first failure.  Verification never raises for bad chain data; it returns a
result value.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from barangay.app.db.chain_store import ChainStore
from barangay.app.db.ledger_hashing import GENESIS_DIGEST, compute_block_digest
from barangay.app.models.audit import (
    CompromisedResult,
    SecureResult,
    VerificationResult,
)

logger = logging.getLogger(__name__)

DATA_TAMPERING = "DataTampering"
CHAIN_BREAK = "ChainBreak"

_HASHED_COLUMNS = (
    "timestamp",
    "actor",
    "action",
    "module",
    "description",
    "previous_digest",
)


def recompute_digest(row: Dict[str, Any]) -> Optional[str]:
    """
    Recompute a stored row's digest from its stored fields.

    Returns None if any hashed field is missing or not a string.
    """
    values = [row.get(column) for column in _HASHED_COLUMNS]
    if any(not isinstance(value, str) for value in values):
        return None
    return compute_block_digest(*values)


def verify_blocks(rows: Iterable[Dict[str, Any]]) -> VerificationResult:
    """
    Verify an iterable of stored rows given in causal (ascending) order.

    Only the previous row's digest is kept, so the rows may be streamed.

    Args:
        rows: audit_blocks rows as dicts, oldest first

    Returns:
        SecureResult or CompromisedResult (first failure only)
    """
    previous_digest: Optional[str] = None
    index = -1

    for index, row in enumerate(rows):
        block_id = str(row.get("block_id"))
        stored_digest = row.get("digest")

        expected = recompute_digest(row)
        if expected is None or expected != stored_digest:
            return CompromisedResult(
                failure_index=index,
                failure_kind=DATA_TAMPERING,
                block_id=block_id,
                total_blocks=index + 1,
            )

        linked_to = GENESIS_DIGEST if index == 0 else previous_digest
        if row["previous_digest"] != linked_to:
            return CompromisedResult(
                failure_index=index,
                failure_kind=CHAIN_BREAK,
                block_id=block_id,
                total_blocks=index + 1,
            )

        previous_digest = stored_digest

    return SecureResult(total_blocks=index + 1)


def verify_chain_integrity(store: Optional[ChainStore] = None) -> VerificationResult:
    """
    Verify the whole persisted chain.

    Read-only; may run concurrently with appends.  A block appended while
    the scan is in progress may or may not be included.
    """
    store = store or ChainStore()
    rows = store.iter_rows(order="asc")
    try:
        result = verify_blocks(rows)
    finally:
        rows.close()

    if isinstance(result, CompromisedResult):
        logger.warning(
            "SECURITY ALERT: audit chain compromised (%s at index %d, block %s)",
            result.failure_kind,
            result.failure_index,
            result.block_id,
        )
    else:
        logger.info("Audit chain verified: %d blocks secure", result.total_blocks)

    return result
