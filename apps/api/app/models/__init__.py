"""
Models package.

Importing every model module registers its table on Base.metadata, which
create_all() (RUN_CREATE_ALL=1 and the test suite) depends on.
"""

from __future__ import annotations

# imported for the side effect of registering tables
from app.models import user  # noqa: F401
from app.models import car  # noqa: F401
