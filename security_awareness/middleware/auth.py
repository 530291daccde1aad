"""认证依赖

令牌校验的结果以 ``RequestContext`` 作为依赖返回值传给路由。
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ConfigurationError
from ..core.logging import security_logger, security_monitor
from ..core.security import decode_access_token, get_jwt_secret
from ..db.connection import get_db
from ..db.models.auth import DEFAULT_ROLE_NAME, User
from ..db.repositories.user_repository import UserRepository
from .performance import get_client_ip

bearer_scheme = HTTPBearer(auto_error=False)


class RequestContext(BaseModel):
    """当前请求的用户身份"""
    id: int
    username: str
    email: Optional[str] = None
    department: Optional[str] = None
    role: str = DEFAULT_ROLE_NAME
    role_id: Optional[int] = None
    mfa_enabled: bool = False
    is_demo: bool = False

    @classmethod
    def from_user(cls, user: User) -> "RequestContext":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            department=user.department,
            role=user.role_name,
            role_id=user.role_id,
            mfa_enabled=bool(user.mfa_enabled)
        )


def demo_identity() -> RequestContext:
    """开发环境使用的演示身份"""
    return RequestContext(
        id=1,
        username="demo",
        email="demo@dynamicbiz.com",
        department="IT",
        is_demo=True
    )


def _get_demo_identity(request: Request) -> Optional[RequestContext]:
    if settings.is_production:
        return None
    return getattr(request.state, "demo_identity", None)


def authenticate_request(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session
) -> RequestContext:
    """校验Bearer令牌并加载激活用户

    Args:
        request: HTTP请求
        credentials: Bearer凭证
        db: 数据库会话

    Returns:
        RequestContext: 当前用户身份

    Raises:
        HTTPException: 令牌缺失、无效、过期或用户不存在
    """
    demo = _get_demo_identity(request)
    client_ip = get_client_ip(request)
    token = credentials.credentials if credentials else None

    try:
        if not token:
            if demo is not None:
                return demo
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")

        try:
            secret = get_jwt_secret()
        except ConfigurationError:
            security_logger.error("JWT_SECRET not configured", extra={"event_type": "config_error"})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server configuration error"
            )

        try:
            payload = decode_access_token(token, secret)
        except ExpiredSignatureError:
            security_monitor.log_security_violation("token_expired", "Expired access token", client_ip)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
        except JWTError:
            if demo is not None:
                return demo
            security_monitor.log_security_violation("invalid_token", "Invalid access token", client_ip)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")

        user = UserRepository(db).get_active_by_id(payload.get("userId"))
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token or user not found"
            )

        return RequestContext.from_user(user)

    except HTTPException:
        raise
    except Exception as e:
        security_logger.error(
            "Authentication error",
            extra={"error": str(e), "client_ip": client_ip, "event_type": "auth_error"}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication failed"
        )


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> RequestContext:
    """FastAPI依赖：获取当前用户"""
    return authenticate_request(request, credentials, db)


def require_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> RequestContext:
    """FastAPI依赖：要求存在身份（令牌或演示身份）"""
    if credentials is None and _get_demo_identity(request) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return authenticate_request(request, credentials, db)


def require_mfa(
    request: Request,
    current_user: RequestContext = Depends(require_auth),
    db: Session = Depends(get_db)
) -> RequestContext:
    """FastAPI依赖：用户启用MFA时要求 x-mfa-token 请求头

    令牌内容目前只检查是否存在。
    """
    user = UserRepository(db).get_by_id(current_user.id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    if user.mfa_enabled and not request.headers.get("x-mfa-token"):
        security_monitor.log_security_violation(
            "mfa_missing", f"MFA token missing for user {user.username}", get_client_ip(request)
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="MFA token required")

    return current_user
