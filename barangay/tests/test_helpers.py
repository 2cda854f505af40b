"""
Test helpers for the audit chain tests.

Provides JWT headers for the admin API and a canonical three-block chain.
"""

import os
from datetime import datetime, timezone

from jose import jwt


def generate_test_jwt(
    sub: str = "admin-user",
    role: str = "admin",
    expires_in_seconds: int = 3600,
    secret_key: str = None,
    algorithm: str = None,
) -> str:
    """
    Generate a test JWT token.

    Args:
        sub: Username (subject)
        role: admin, staff or resident
        expires_in_seconds: Token validity duration (negative for expired)
        secret_key: JWT secret key (uses env var if not provided)
        algorithm: JWT algorithm (uses env var if not provided)
    """
    if secret_key is None:
        secret_key = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")

    if algorithm is None:
        algorithm = os.getenv("JWT_ALGORITHM", "HS256")

    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "role": role,
        "exp": int(now.timestamp()) + expires_in_seconds,
        "iat": int(now.timestamp()),
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def auth_headers(role: str = "admin", sub: str = None) -> dict:
    """Authorization header for the given role."""
    token = generate_test_jwt(sub=sub or f"test-{role}", role=role)
    return {"Authorization": f"Bearer {token}"}


SCENARIO_ENTRIES = [
    ("alice", "CREATE", "Resident", "Added resident: Juan"),
    ("bob", "LOGIN", "Auth", "User logged in: bob"),
    ("System", "ARCHIVE", "Blotter", "Moved case to bin: Cruz vs Santos"),
]


def append_scenario(service) -> list:
    """Append the alice/bob/System scenario and return the blocks."""
    return [service.append(*entry) for entry in SCENARIO_ENTRIES]
