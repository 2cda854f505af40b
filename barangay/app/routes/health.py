"""
Health check endpoints.
"""

from fastapi import APIRouter

from barangay.app.db.migrate import check_db_security

router = APIRouter()


@router.get("/healthz")
async def health_check():
    """Basic health check endpoint."""
    return {"ok": True}


@router.get("/api/health/status")
async def health_status():
    """Health status including database hardening checks."""
    return {
        "status": "healthy",
        "service": "barangay-audit",
        "database": check_db_security(),
    }
