from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import Unauthorized, UserNotFound
from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import User

# Authorization: Bearer <token>
# auto_error=False so that every auth failure goes through Unauthorized
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Authentication dependency (single source of truth).
    - Extract Bearer token
    - Verify JWT, sub = identity provider user id
    - Load the local User mapped to that id
    """
    if creds is None or not creds.credentials:
        raise Unauthorized("Not authenticated")

    external_id = decode_access_token(creds.credentials)
    if not external_id:
        raise Unauthorized("Could not validate credentials")

    user = db.execute(
        select(User).where(User.external_id == external_id)
    ).scalar_one_or_none()

    if user is None:
        raise UserNotFound()

    return user
