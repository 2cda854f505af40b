"""
JWT-based authentication and authorization for the audit API.

Tokens are issued by the records system's login endpoint; this module only
validates them and enforces roles on the audit surface.

Roles:
- admin: Full access, including the audit log and chain verification
- staff: Records operations (no audit access)
- resident: Resident self-service (no audit access)
"""

import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

VALID_ROLES = {"admin", "staff", "resident"}

security = HTTPBearer()


class Identity(BaseModel):
    """
    Authenticated identity extracted from JWT.

    `sub` is the username recorded as the actor of audit blocks.
    """

    sub: str
    role: str
    exp: Optional[int] = None

    def has_role(self, required_role: str) -> bool:
        """Check if identity has the required role."""
        return self.role == required_role or self.role == "admin"


def decode_jwt(token: str) -> dict:
    """
    Decode and validate JWT token.

    Raises:
        HTTPException: 401 if token is invalid, expired, or malformed
    """
    try:
        return jwt.decode(
            token,
            JWT_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
            options={
                "verify_signature": True,
                "verify_exp": True,
                "require_exp": True,
                "require_sub": True,
            },
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "invalid_token",
                "message": f"Token validation failed: {str(e)}",
            },
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Identity:
    """
    Extract and validate identity from the bearer token.

    Raises:
        HTTPException: 401 if token is invalid or missing required claims
    """
    payload = decode_jwt(credentials.credentials)

    sub = payload.get("sub")
    role = payload.get("role")

    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "missing_claim", "message": "Token missing 'sub' claim"},
        )

    if not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "missing_claim", "message": "Token missing 'role' claim"},
        )

    if role not in VALID_ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "invalid_role",
                "message": f"Invalid role '{role}'. Must be one of: {sorted(VALID_ROLES)}",
            },
        )

    return Identity(sub=sub, role=role, exp=payload.get("exp"))


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/api/audit-logs")
        async def list_logs(identity: Identity = Depends(require_role("admin"))):
            ...
    """

    async def role_checker(
        identity: Identity = Depends(get_current_identity),
    ) -> Identity:
        if not identity.has_role(required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "insufficient_permissions",
                    "message": f"Role '{required_role}' required. You have: '{identity.role}'",
                },
            )
        return identity

    return role_checker


def create_jwt_token(sub: str, role: str, expires_in_seconds: int = 3600) -> str:
    """
    Create a JWT token for development/testing.

    In production, tokens come from the records system's login endpoint.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "role": role,
        "exp": int(now.timestamp()) + expires_in_seconds,
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
