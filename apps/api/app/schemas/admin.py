from __future__ import annotations

from pydantic import BaseModel


class NavItem(BaseModel):
    label: str
    href: str
    # lucide icon name used by the admin frontend
    icon: str
    active: bool = False
