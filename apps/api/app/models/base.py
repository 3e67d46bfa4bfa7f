# app/models/base.py

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Common declarative base for every SQLAlchemy model.
    create_all() relies on it to discover the tables.
    """
    pass
