"""
CSV export of audit blocks for offline review.
"""

import csv
import io
from typing import Iterable

from barangay.app.models.audit import Block

CSV_HEADERS = [
    "Timestamp",
    "User",
    "Action",
    "Module",
    "Description",
    "Hash",
    "Previous Hash",
]


def export_blocks_csv(blocks: Iterable[Block]) -> str:
    """
    Render blocks as CSV text, every field quoted.

    Example:
        >>> export_blocks_csv([]).splitlines()[0]
        '"Timestamp","User","Action","Module","Description","Hash","Previous Hash"'
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for block in blocks:
        writer.writerow(
            [
                block.timestamp,
                block.actor,
                block.action,
                block.module,
                block.description,
                block.digest,
                block.previous_digest,
            ]
        )
    return buffer.getvalue()


def export_filename(timestamp: str) -> str:
    """Download filename for an export taken at `timestamp` (ISO 8601)."""
    return f"blockchain_audit_logs_{timestamp[:10]}.csv"
