# routes/auth.py
from fastapi import APIRouter, Depends

from schemas import ProfileOut, WarehouseOut, dump
from utils.permissions import AuthContext, ROLE_DISPLAY_NAMES, get_auth_context

router = APIRouter()

@router.get("/me")
async def get_me(context: AuthContext = Depends(get_auth_context)):
    """Get the current user's profile, role and capabilities"""
    profile = context.profile
    return {
        "success": True,
        "user": dump(ProfileOut, profile),
        "role_display": ROLE_DISPLAY_NAMES.get(context.role, context.role.value),
        "capabilities": sorted(context.capabilities),
        "warehouse": dump(WarehouseOut, profile.warehouse) if profile.warehouse else None,
    }
