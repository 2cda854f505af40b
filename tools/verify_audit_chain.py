#!/usr/bin/env python3
"""
Barangay Audit Chain Integrity Verifier

Offline check of an audit_blocks SQLite database: recomputes every block
digest and checks hash-chain linkage, using the same canonical hashing and
verification code as the API.

Usage:
    python tools/verify_audit_chain.py --db PATH [--json] [--verbose]

Exit codes:
    0  SECURE       - chain is intact
    1  COMPROMISED  - tampering or chain break detected
    2  ERROR        - configuration error, missing columns, or query error
"""

import argparse
import json
import os
import sqlite3
import sys
from typing import Any, Dict, Iterator, Optional, Set

# Allow running as `python tools/verify_audit_chain.py` without setting
# PYTHONPATH manually: insert the repo root so barangay imports resolve.
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)

from barangay.app.db.ledger_hashing import HASH_POLICY, ORDERING  # noqa: E402
from barangay.app.models.audit import CompromisedResult  # noqa: E402
from barangay.app.services.chain_verifier import verify_blocks  # noqa: E402

_REQUIRED_COLUMNS: Set[str] = {
    "block_id",
    "sequence",
    "timestamp",
    "actor",
    "action",
    "module",
    "description",
    "previous_digest",
    "digest",
}


def _columns(conn: sqlite3.Connection, table: str) -> Set[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row[1] for row in rows}


def _iter_rows(
    conn: sqlite3.Connection, verbose: bool, total: int
) -> Iterator[Dict[str, Any]]:
    cursor = conn.execute(
        """
        SELECT block_id, sequence, timestamp, actor, action, module,
               description, previous_digest, digest
        FROM audit_blocks
        ORDER BY timestamp ASC, sequence ASC
        """
    )
    for i, row in enumerate(cursor):
        if verbose:
            sys.stderr.write(
                f"  Block {i + 1}/{total}: {str(row['block_id'])[:8]}... "
                f"({row['module']}/{row['action']})\n"
            )
        yield dict(row)


def verify(db_path: str, verbose: bool = False) -> Dict[str, Any]:
    """
    Verify the audit chain stored in `db_path`.

    Returns a result dict with keys:
        status        "SECURE" | "COMPROMISED" | "ERROR"
        ordering      str
        hash_policy   str
        total_blocks  int (blocks in the table)
        result        the verification result in wire format, or None
        error         present on ERROR only
    """
    base: Dict[str, Any] = {
        "ordering": ORDERING,
        "hash_policy": HASH_POLICY,
        "total_blocks": 0,
        "result": None,
    }

    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as exc:
        return {**base, "status": "ERROR", "error": f"Cannot open database: {exc}"}

    conn.row_factory = sqlite3.Row
    try:
        missing = _REQUIRED_COLUMNS - _columns(conn, "audit_blocks")
        if missing:
            return {
                **base,
                "status": "ERROR",
                "error": (
                    "Missing columns in audit_blocks (inspected via PRAGMA "
                    f"table_info): {sorted(missing)}"
                ),
            }

        total = conn.execute("SELECT COUNT(*) FROM audit_blocks").fetchone()[0]
        result = verify_blocks(_iter_rows(conn, verbose, total))
    except sqlite3.Error as exc:
        return {**base, "status": "ERROR", "error": f"Query error: {exc}"}
    finally:
        conn.close()

    status = "COMPROMISED" if isinstance(result, CompromisedResult) else "SECURE"
    return {
        **base,
        "status": status,
        "total_blocks": total,
        "result": result.model_dump(by_alias=True),
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Verify barangay audit chain integrity",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0  SECURE       - chain intact
  1  COMPROMISED  - tampering or chain break detected
  2  ERROR        - configuration / schema / query error
""",
    )
    parser.add_argument(
        "--db",
        default=os.environ.get("BARANGAY_DB_PATH", "/tmp/barangay_audit.db"),
        help="Path to SQLite database (default: $BARANGAY_DB_PATH)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print block-by-block progress to stderr",
    )
    parser.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Output indented JSON to stdout",
    )
    return parser


def main(argv: Optional[list] = None) -> int:
    args = _build_parser().parse_args(argv)

    if not os.path.isfile(args.db):
        sys.stderr.write(f"ERROR: Database not found: {args.db}\n")
        return 2

    report = verify(args.db, verbose=args.verbose)
    print(json.dumps(report, indent=2 if args.json_output else None))

    status = report["status"]
    if status == "SECURE":
        return 0
    if status == "ERROR":
        return 2
    return 1


if __name__ == "__main__":
    sys.exit(main())
