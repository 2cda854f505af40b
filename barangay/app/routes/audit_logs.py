"""
Audit log endpoints (admin only).

- GET /api/audit-logs          paginated blocks, newest first by default
- GET /api/audit-logs/verify   chain integrity check
- GET /api/audit-logs/export   CSV download
- GET /api/audit-logs/stats    block count and current tip
"""

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response

from barangay.app.db.chain_store import ChainStore, ChainStoreError
from barangay.app.db.ledger_hashing import utc_timestamp
from barangay.app.models.audit import AuditStats, CompromisedResult
from barangay.app.security.auth import Identity, require_role
from barangay.app.security.rate_limit import limiter
from barangay.app.services.audit_export import export_blocks_csv, export_filename
from barangay.app.services.chain_verifier import verify_chain_integrity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])

DEFAULT_PAGE_SIZE = 200
MAX_PAGE_SIZE = 1000
MAX_EXPORT_ROWS = 100000


def get_chain_store() -> ChainStore:
    """Dependency hook so tests can substitute the store."""
    return ChainStore()


def _storage_unavailable(e: ChainStoreError) -> HTTPException:
    logger.error("Audit chain storage error: %s", e)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "error": "audit_storage_unavailable",
            "message": "Audit log storage is unavailable",
        },
    )


@router.get("")
@limiter.limit("120/minute")
async def list_audit_entries(
    request: Request,  # Required for rate limiting
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort: Literal["asc", "desc"] = Query("desc"),
    q: Optional[str] = Query(None, max_length=200),
    identity: Identity = Depends(require_role("admin")),
    store: ChainStore = Depends(get_chain_store),
) -> List[Dict[str, Any]]:
    """
    List audit blocks.

    Query parameters:
    - page: 1-based page number
    - limit: page size (default 200)
    - sort: "desc" (newest first, default) or "asc"
    - q: case-insensitive search over actor, action, module, description
    """
    try:
        blocks = store.list_all(order=sort, page=page, limit=limit, search=q)
    except ChainStoreError as e:
        raise _storage_unavailable(e)
    return [block.to_wire() for block in blocks]


@router.get("/verify")
@limiter.limit("10/minute")
async def verify_audit_chain(
    request: Request,  # Required for rate limiting
    identity: Identity = Depends(require_role("admin")),
    store: ChainStore = Depends(get_chain_store),
):
    """
    Verify the integrity of the whole audit chain.

    Returns 200 with {"status": "Secure", ...} when intact, or 400 with
    {"status": "Compromised", "failureIndex", "failureKind", "blockId", ...}
    for the first failure found.
    """
    try:
        result = verify_chain_integrity(store)
    except ChainStoreError as e:
        raise _storage_unavailable(e)

    status_code = (
        status.HTTP_400_BAD_REQUEST
        if isinstance(result, CompromisedResult)
        else status.HTTP_200_OK
    )
    return JSONResponse(status_code=status_code, content=result.model_dump(by_alias=True))


@router.get("/export")
@limiter.limit("20/minute")
async def export_audit_entries(
    request: Request,  # Required for rate limiting
    sort: Literal["asc", "desc"] = Query("desc"),
    q: Optional[str] = Query(None, max_length=200),
    identity: Identity = Depends(require_role("admin")),
    store: ChainStore = Depends(get_chain_store),
) -> Response:
    """Download the (optionally filtered) audit log as CSV."""
    try:
        blocks = store.list_all(order=sort, page=1, limit=MAX_EXPORT_ROWS, search=q)
    except ChainStoreError as e:
        raise _storage_unavailable(e)

    filename = export_filename(utc_timestamp())
    return Response(
        content=export_blocks_csv(blocks),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/stats", response_model=AuditStats)
@limiter.limit("60/minute")
async def audit_stats(
    request: Request,  # Required for rate limiting
    identity: Identity = Depends(require_role("admin")),
    store: ChainStore = Depends(get_chain_store),
) -> AuditStats:
    """Total number of blocks and the current tip digest."""
    try:
        tip = store.get_tip()
        total = store.count()
    except ChainStoreError as e:
        raise _storage_unavailable(e)
    return AuditStats(total=total, tip=tip.digest if tip else None)
