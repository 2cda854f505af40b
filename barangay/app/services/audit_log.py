"""
Audit log append service.

Every mutating operation in the records system (resident, official,
document, blotter, announcement and user-account changes, logins and
signups) records itself here through append_audit_entry().

The write is best-effort: a failed append is logged and swallowed so that
the triggering business operation succeeds or fails on its own merits.
Set AUDIT_STRICT_MODE=1 to make append failures propagate instead.
"""

import logging
import os
import threading
import uuid
from typing import Optional

from barangay.app.db.chain_store import ChainStore, ChainStoreError, StaleTipError
from barangay.app.db.ledger_hashing import (
    GENESIS_DIGEST,
    compute_block_digest,
    utc_timestamp,
)
from barangay.app.models.audit import Block
from barangay.app.models.vocabulary import (
    SYSTEM_ACTOR,
    is_known_action,
    is_known_module,
)

logger = logging.getLogger(__name__)

DEFAULT_APPEND_RETRIES = 5


class AuditWriteError(Exception):
    """An audit block could not be persisted (raised in strict mode only)."""


def is_strict_mode_enabled() -> bool:
    """
    Check if audit append failures should propagate to the caller.

    Default: False (best-effort audit trail).
    """
    return os.environ.get("AUDIT_STRICT_MODE", "").lower() in ("1", "true", "yes")


def get_append_retries() -> int:
    """Bound on compare-and-swap retries when another writer moved the tip."""
    try:
        return max(1, int(os.environ.get("AUDIT_APPEND_RETRIES", DEFAULT_APPEND_RETRIES)))
    except ValueError:
        return DEFAULT_APPEND_RETRIES


class AuditLogService:
    """
    Single entry point for recording actions into the audit chain.

    Args:
        store: Chain store to append to
        strict: Propagate append failures as AuditWriteError. None reads
            AUDIT_STRICT_MODE on every call.
        max_retries: Attempts before giving up on a moving tip. None reads
            AUDIT_APPEND_RETRIES.
    """

    def __init__(
        self,
        store: Optional[ChainStore] = None,
        strict: Optional[bool] = None,
        max_retries: Optional[int] = None,
    ):
        self.store = store or ChainStore()
        self._strict = strict
        self._max_retries = max_retries
        # Serializes read-tip-then-append within this process; the store's
        # compare-and-swap covers other processes.
        self._lock = threading.Lock()

    @property
    def strict(self) -> bool:
        return is_strict_mode_enabled() if self._strict is None else self._strict

    @property
    def max_retries(self) -> int:
        return get_append_retries() if self._max_retries is None else self._max_retries

    def build_block(
        self,
        actor: str,
        action: str,
        module: str,
        description: str,
        previous_digest: str,
        not_before: Optional[str] = None,
    ) -> Block:
        """
        Build the next block; the timestamp is captured exactly once here.

        `not_before` is the tip timestamp. A wall clock that stepped back
        behind it is clamped to it, so the new block still sorts after the
        tip and the sequence breaks the tie.
        """
        timestamp = utc_timestamp()
        if not_before and timestamp < not_before:
            logger.warning(
                "System clock is behind the audit chain tip (%s < %s); "
                "using the tip timestamp",
                timestamp,
                not_before,
            )
            timestamp = not_before
        digest = compute_block_digest(
            timestamp, actor, action, module, description, previous_digest
        )
        return Block(
            block_id=str(uuid.uuid4()),
            timestamp=timestamp,
            actor=actor,
            action=action,
            module=module,
            description=description,
            previous_digest=previous_digest,
            digest=digest,
        )

    def _append_locked(
        self, actor: str, action: str, module: str, description: str
    ) -> Block:
        last_error: Optional[StaleTipError] = None
        for _ in range(self.max_retries):
            tip = self.store.get_tip()
            previous_digest = tip.digest if tip else GENESIS_DIGEST
            block = self.build_block(
                actor,
                action,
                module,
                description,
                previous_digest,
                not_before=tip.timestamp if tip else None,
            )
            try:
                return self.store.append(block)
            except StaleTipError as e:
                # Another writer extended the chain between our read and write.
                logger.debug("Chain tip moved during append, retrying: %s", e)
                last_error = e
        raise last_error

    def append(
        self,
        actor: Optional[str],
        action: str,
        module: str,
        description: str,
    ) -> Optional[Block]:
        """
        Record one action as a new block at the chain tip.

        Args:
            actor: Username performing the action; empty means "System"
            action: Action verb (see models.vocabulary)
            module: Subsystem name (see models.vocabulary)
            description: Human-readable detail

        Returns:
            The persisted block, or None if the append failed in
            best-effort mode.

        Raises:
            AuditWriteError: Append failed and strict mode is enabled.
        """
        actor = actor or SYSTEM_ACTOR
        if not is_known_action(action) or not is_known_module(module):
            logger.debug("Audit entry outside known vocabulary: %s/%s", module, action)

        try:
            with self._lock:
                block = self._append_locked(actor, action, module, description)
        except (ChainStoreError, ValueError) as e:
            logger.error(
                "Audit append failed (%s in %s by %s): %s", action, module, actor, e
            )
            if self.strict:
                raise AuditWriteError(str(e)) from e
            return None

        logger.info(
            "Audit block appended: %s... | %s %s by %s",
            block.digest[:10],
            action,
            module,
            actor,
        )
        return block


_default_service: Optional[AuditLogService] = None
_default_lock = threading.Lock()


def get_audit_service() -> AuditLogService:
    """Process-wide AuditLogService used by collaborators and routes."""
    global _default_service
    with _default_lock:
        if _default_service is None:
            _default_service = AuditLogService()
        return _default_service


def append_audit_entry(
    actor: Optional[str], action: str, module: str, description: str
) -> Optional[Block]:
    """
    Record an action in the audit chain.

    Called after every create/update/archive/delete/login/signup operation.
    Never raises unless AUDIT_STRICT_MODE is enabled.
    """
    return get_audit_service().append(actor, action, module, description)
