from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.admin import NavItem

router = APIRouter(prefix="/admin", tags=["admin"])

# (label, href, lucide icon)
SIDEBAR_ROUTES = (
    ("Dashboard", "/admin", "LayoutDashboard"),
    ("Cars", "/admin/cars", "Car"),
    ("Test Drives", "/admin/test-drives", "Calendar"),
    ("Settings", "/admin/settings", "Cog"),
)


def sidebar_items(pathname: str = "") -> List[NavItem]:
    return [
        NavItem(label=label, href=href, icon=icon, active=(pathname == href))
        for label, href, icon in SIDEBAR_ROUTES
    ]


@router.get("/navigation", response_model=List[NavItem])
def admin_navigation(
    pathname: str = "",
    current_user: User = Depends(get_current_user),
):
    """Sidebar entries for the admin layout; `active` marks the current page."""
    return sidebar_items(pathname)
