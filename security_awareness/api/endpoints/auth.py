"""认证相关的API端点"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from ...core.logging import security_logger
from ...db.connection import get_db
from ...middleware.audit import audit_log
from ...middleware.auth import RequestContext, require_auth
from ...middleware.performance import get_client_ip
from ...schemas.auth import ChangePasswordRequest, LoginRequest, ProfileUpdate, RegisterRequest
from ...services.auth_service import AuthService
from ..deps import endpoint_errors

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
async def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """用户登录

    Returns:
        ``{message, token, user}``
    """
    with endpoint_errors("Login failed"):
        return AuthService(db).login(payload.username, payload.password, get_client_ip(request))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """用户注册"""
    with endpoint_errors("Registration failed"):
        user = AuthService(db).register(payload.model_dump())
        return {"message": "User registered successfully", "user": user}


@router.get("/profile")
async def get_profile(
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve profile"):
        return {"user": AuthService(db).get_profile(current_user.id)}


@router.put("/profile", dependencies=[Depends(audit_log("UPDATE_PROFILE", "user"))])
async def update_profile(
    payload: ProfileUpdate,
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to update profile"):
        AuthService(db).update_profile(current_user.id, payload.first_name, payload.last_name, payload.email)
        return {"message": "Profile updated successfully"}


@router.put("/change-password", dependencies=[Depends(audit_log("CHANGE_PASSWORD", "user"))])
async def change_password(
    payload: ChangePasswordRequest,
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to change password"):
        AuthService(db).change_password(current_user.id, payload.current_password, payload.new_password)
        return {"message": "Password changed successfully"}


@router.post("/logout")
async def logout(request: Request):
    """登出：令牌为无状态JWT，由客户端丢弃"""
    security_logger.info(
        "User logout",
        extra={"client_ip": get_client_ip(request), "event_type": "logout"}
    )
    return {"message": "Logout successful"}
