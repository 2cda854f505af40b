"""
Chain store for the audit_blocks ledger.

Durable, append-only persistence of audit blocks in SQLite.  The store
exposes no update or delete operation: a block, once written, is only ever
read back.

Concurrency:
  append() runs inside BEGIN IMMEDIATE, which takes SQLite's single write
  lock before the tip is read.  The block is accepted only if its
  previous_digest equals the tip digest at that moment (compare-and-swap),
  so two writers can never both extend the same tip.  The unique index on
  previous_digest is the storage-level backstop for the same invariant.
  A block may not be timestamped before the tip, so timestamp order and
  chain order never diverge and get_tip() always returns the real tip.
"""

import sqlite3
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from barangay.app.db import migrate
from barangay.app.db.ledger_hashing import GENESIS_DIGEST, utc_timestamp
from barangay.app.models.audit import Block

_COLUMNS = (
    "block_id, sequence, timestamp, actor, action, module, description, "
    "previous_digest, digest"
)
_ORDER_SQL = {
    "asc": "ORDER BY timestamp ASC, sequence ASC",
    "desc": "ORDER BY timestamp DESC, sequence DESC",
}
_SEARCH_SQL = (
    "WHERE lower(actor) LIKE ? ESCAPE '\\' OR lower(action) LIKE ? ESCAPE '\\' "
    "OR lower(module) LIKE ? ESCAPE '\\' OR lower(description) LIKE ? ESCAPE '\\'"
)


class ChainStoreError(Exception):
    """Storage-level failure while reading or appending audit blocks."""


class DuplicateDigestError(ChainStoreError):
    """A block with the same digest is already in the chain."""

    def __init__(self, digest: str):
        super().__init__(f"Digest already present in chain: {digest[:16]}...")
        self.digest = digest


class StaleTipError(ChainStoreError):
    """The block does not extend the current chain tip."""

    def __init__(self, expected: str, actual: Optional[str]):
        super().__init__(
            f"Block extends {expected[:16]}... but tip is "
            f"{(actual or GENESIS_DIGEST)[:16]}..."
        )
        self.expected = expected
        self.actual = actual


class ClockRegressionError(StaleTipError):
    """The block is timestamped before the current chain tip."""

    def __init__(self, timestamp: str, tip_timestamp: str):
        ChainStoreError.__init__(
            self, f"Block timestamp {timestamp} precedes tip timestamp {tip_timestamp}"
        )
        self.timestamp = timestamp
        self.tip_timestamp = tip_timestamp


def _search_params(search: str) -> Tuple[str, ...]:
    escaped = (
        search.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    pattern = f"%{escaped}%"
    return (pattern, pattern, pattern, pattern)


class ChainStore:
    """
    Append-only audit block store.

    Args:
        connect: Connection factory; defaults to migrate.get_connection so
            the configured database path is resolved on every call.
    """

    def __init__(self, connect: Optional[Callable[[], sqlite3.Connection]] = None):
        self._connect = connect or migrate.get_connection

    def _open(self) -> sqlite3.Connection:
        try:
            return self._connect()
        except sqlite3.Error as e:
            raise ChainStoreError(f"Cannot open audit database: {e}") from e

    # ------------------------------------------------------------------ #
    # Writes                                                              #
    # ------------------------------------------------------------------ #

    def append(self, block: Block) -> Block:
        """
        Persist `block` as the new chain tip.

        Raises:
            DuplicateDigestError: The digest already exists in the chain.
            StaleTipError: block.previous_digest is not the current tip.
            ClockRegressionError: block.timestamp precedes the tip timestamp.
            ChainStoreError: Any other storage failure.
        """
        conn = self._open()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                exists = conn.execute(
                    "SELECT 1 FROM audit_blocks WHERE digest = ?", (block.digest,)
                ).fetchone()
                if exists:
                    raise DuplicateDigestError(block.digest)

                tip = conn.execute(
                    "SELECT digest, timestamp FROM audit_blocks "
                    f"{_ORDER_SQL['desc']} LIMIT 1"
                ).fetchone()
                tip_digest = tip["digest"] if tip else None
                if block.previous_digest != (tip_digest or GENESIS_DIGEST):
                    raise StaleTipError(block.previous_digest, tip_digest)
                if tip and block.timestamp < tip["timestamp"]:
                    raise ClockRegressionError(block.timestamp, tip["timestamp"])

                cursor = conn.execute(
                    """
                    INSERT INTO audit_blocks (
                        block_id, timestamp, actor, action, module,
                        description, previous_digest, digest, created_at_utc
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        block.block_id,
                        block.timestamp,
                        block.actor,
                        block.action,
                        block.module,
                        block.description,
                        block.previous_digest,
                        block.digest,
                        utc_timestamp(),
                    ),
                )
                sequence = cursor.lastrowid
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as e:
            raise ChainStoreError(f"Failed to append audit block: {e}") from e
        finally:
            conn.close()

        return block.model_copy(update={"sequence": sequence})

    # ------------------------------------------------------------------ #
    # Reads                                                               #
    # ------------------------------------------------------------------ #

    def get_tip(self) -> Optional[Block]:
        """Return the most recently appended block, or None for an empty chain."""
        conn = self._open()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM audit_blocks {_ORDER_SQL['desc']} LIMIT 1"
            ).fetchone()
        except sqlite3.Error as e:
            raise ChainStoreError(f"Failed to read chain tip: {e}") from e
        finally:
            conn.close()
        return Block.from_row(dict(row)) if row else None

    def list_all(
        self,
        order: str = "desc",
        page: int = 1,
        limit: int = 200,
        search: Optional[str] = None,
    ) -> List[Block]:
        """
        List blocks ordered by timestamp.

        Args:
            order: "asc" (oldest first) or "desc" (newest first)
            page: 1-based page number
            limit: Page size
            search: Optional case-insensitive substring matched against
                actor, action, module and description

        Returns:
            One page of blocks
        """
        if order not in _ORDER_SQL:
            raise ValueError(f"order must be 'asc' or 'desc', got {order!r}")
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")

        where, params = "", ()
        if search:
            where, params = _SEARCH_SQL, _search_params(search)

        conn = self._open()
        try:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM audit_blocks {where} "
                f"{_ORDER_SQL[order]} LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
        except sqlite3.Error as e:
            raise ChainStoreError(f"Failed to list audit blocks: {e}") from e
        finally:
            conn.close()
        return [Block.from_row(dict(row)) for row in rows]

    def iter_rows(self, order: str = "asc") -> Iterator[Dict[str, Any]]:
        """
        Stream raw audit_blocks rows without materializing the chain.

        Rows are plain dicts and are not validated, so a malformed stored
        block reaches the caller as-is.
        """
        if order not in _ORDER_SQL:
            raise ValueError(f"order must be 'asc' or 'desc', got {order!r}")

        conn = self._open()
        try:
            try:
                cursor = conn.execute(
                    f"SELECT {_COLUMNS} FROM audit_blocks {_ORDER_SQL[order]}"
                )
                for row in cursor:
                    yield dict(row)
            except sqlite3.Error as e:
                raise ChainStoreError(f"Failed to read audit blocks: {e}") from e
        finally:
            conn.close()

    def count(self, search: Optional[str] = None) -> int:
        """Number of blocks in the chain (optionally matching `search`)."""
        where, params = "", ()
        if search:
            where, params = _SEARCH_SQL, _search_params(search)

        conn = self._open()
        try:
            row = conn.execute(
                f"SELECT COUNT(*) FROM audit_blocks {where}", params
            ).fetchone()
        except sqlite3.Error as e:
            raise ChainStoreError(f"Failed to count audit blocks: {e}") from e
        finally:
            conn.close()
        return row[0]
