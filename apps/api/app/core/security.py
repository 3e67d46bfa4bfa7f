from __future__ import annotations

"""
security.py

JWT verification for tokens issued by the identity provider.

- sub: the provider's user id (users.external_id)
- type: optional, must be "access" when present
- tokens are minted by the identity provider, never here
"""

from typing import Any, Dict, Optional

from jose import JWTError, jwt

from app.core.config import settings


# =========================
# JWT verification
# =========================

def decode_access_token(token: str) -> Optional[str]:
    """
    Verify a JWT and return its subject.

    Returns:
        external user id (sub), or None when the token is invalid
    """
    if not token:
        return None

    try:
        payload: Dict[str, Any] = jwt.decode(
            token,
            key=settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None

    if not isinstance(payload, dict):
        return None

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        return None

    token_type = payload.get("type")
    if token_type is not None and token_type != "access":
        return None

    return subject
