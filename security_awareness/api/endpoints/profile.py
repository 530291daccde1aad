"""个人资料API端点"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ...db.connection import get_db
from ...middleware.audit import audit_log
from ...middleware.auth import RequestContext, require_auth, require_mfa
from ...schemas.auth import MFAToggle, PasswordUpdate, ProfileUpdate
from ...services.profile_service import ProfileService
from ..deps import endpoint_errors, success

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("")
async def get_profile(
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve profile"):
        return success(ProfileService(db).get_profile(current_user.id))


@router.put("", dependencies=[Depends(audit_log("UPDATE_PROFILE", "user"))])
async def update_profile(
    payload: ProfileUpdate,
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to update profile"):
        service = ProfileService(db)
        service.update_profile(current_user.id, payload.model_dump())
        return success(service.get_profile(current_user.id), "Profile updated successfully")


@router.put("/password", dependencies=[Depends(audit_log("CHANGE_PASSWORD", "user"))])
async def change_password(
    payload: PasswordUpdate,
    current_user: RequestContext = Depends(require_mfa),
    db: Session = Depends(get_db)
):
    """修改密码；启用MFA的用户需携带 x-mfa-token"""
    with endpoint_errors("Failed to change password"):
        ProfileService(db).change_password(current_user.id, payload.current_password, payload.new_password)
        return success(message="Password changed successfully")


@router.get("/preferences")
async def get_preferences(
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve preferences"):
        return success(ProfileService(db).get_preferences(current_user.id))


@router.put("/preferences", dependencies=[Depends(audit_log("UPDATE_PREFERENCES", "user"))])
async def update_preferences(
    preferences: Any = Body(None),
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """合并保存偏好设置，请求体须为JSON对象"""
    with endpoint_errors("Failed to update preferences"):
        merged: Dict[str, Any] = ProfileService(db).update_preferences(current_user.id, preferences)
        return success(merged, "Preferences updated successfully")


@router.get("/activity")
async def get_activity(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve activity history"):
        return success(ProfileService(db).get_activity(current_user.id, limit, offset))


@router.put("/mfa", dependencies=[Depends(audit_log("TOGGLE_MFA", "user"))])
async def toggle_mfa(
    payload: MFAToggle,
    current_user: RequestContext = Depends(require_mfa),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to update MFA settings"):
        enabled = ProfileService(db).toggle_mfa(current_user.id, payload.enable, payload.secret)
        return success(
            {"mfa_enabled": enabled},
            f"MFA {'enabled' if enabled else 'disabled'} successfully"
        )


@router.get("/stats")
async def get_stats(
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve user statistics"):
        return success(ProfileService(db).get_stats(current_user.id))
