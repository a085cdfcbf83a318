from fastapi import APIRouter, Depends, Query

from ..core.auth import Principal, get_current_principal
from ..utils.navigation import dashboard_for, menu_for, permissions_for, resolve_path

router = APIRouter(prefix="/api/navigation", tags=["Navigation"])


def _nav_role(principal: Principal) -> str:
    if principal.is_guest:
        return "guest"
    return principal.school_role or principal.role


@router.get("")
async def navigation(principal: Principal = Depends(get_current_principal)):
    """Dashboard, menu and permission matrix for the current session."""
    role = _nav_role(principal)
    return {
        "role": role,
        "is_guest": principal.is_guest,
        "dashboard": dashboard_for(role),
        "menu": menu_for(role),
        "permissions": permissions_for(role),
    }


@router.get("/resolve")
async def resolve(path: str = Query(..., min_length=1), principal: Principal = Depends(get_current_principal)):
    redirect_to = resolve_path(_nav_role(principal), path)
    return {"path": path, "allowed": redirect_to is None, "redirect_to": redirect_to}
