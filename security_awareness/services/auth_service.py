"""用户认证服务"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.logging import get_logger, security_monitor
from ..core.security import create_access_token
from ..db.models.auth import User
from ..db.repositories.user_repository import UserRepository

logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 12

# 登录和资料接口返回的用户字段
PUBLIC_USER_FIELDS = (
    "id", "username", "email", "first_name", "last_name", "department", "role",
    "role_id", "mfa_enabled", "is_active", "last_login", "created_at"
)


def serialize_user(user: User) -> Dict[str, Any]:
    """对外返回的用户信息"""
    data = user.to_public_dict()
    result = {field: data.get(field) for field in PUBLIC_USER_FIELDS}
    result["department"] = result["department"] or ""
    result["mfa_enabled"] = bool(result["mfa_enabled"])
    return result


class AuthService:
    """认证服务类"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)

    def login(self, username: Optional[str], password: Optional[str], ip: str = "unknown") -> Dict[str, Any]:
        """用户登录

        Args:
            username: 用户名
            password: 明文密码
            ip: 客户端IP

        Returns:
            Dict: ``{message, token, user}``

        Raises:
            HTTPException: 参数缺失(400)或凭证无效(401)
        """
        if not username or not password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username and password are required"
            )

        user = self.users.get_active_by_username(username)
        if user is None or not user.verify_password(password):
            security_monitor.log_auth_attempt(username, False, ip)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

        self.users.record_login(user)
        token = create_access_token(user.id, user.username)
        security_monitor.log_auth_attempt(username, True, ip)

        return {
            "message": "Login successful",
            "token": token,
            "user": serialize_user(user)
        }

    def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """用户注册

        Args:
            data: username/email/password/first_name/last_name/role_id/department

        Returns:
            Dict: 新用户的基本信息
        """
        required = ("username", "email", "password", "first_name", "last_name", "role_id", "department")
        if any(not data.get(field) for field in required):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="All fields are required")

        if len(data["password"]) < MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Password must be at least 12 characters long"
            )

        if self.users.username_or_email_exists(data["username"], data["email"]):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username or email already exists")

        user = self.users.create_user(
            username=data["username"],
            email=data["email"],
            password=data["password"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            role_id=data["role_id"],
            department=data["department"],
            rounds=settings.bcrypt_rounds
        )
        logger.info("User registered", extra={"user_id": user.id, "username": user.username})

        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "department": user.department
        }

    def get_user(self, user_id: int) -> User:
        """获取用户，不存在时返回404"""
        user = self.users.get_by_id(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user

    def get_profile(self, user_id: int) -> Dict[str, Any]:
        """获取当前用户资料"""
        return serialize_user(self.get_user(user_id))

    def update_profile(
        self,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        email: Optional[str] = None
    ) -> User:
        """更新姓名与邮箱，未提供的字段保持不变"""
        user = self.get_user(user_id)
        user.update_from_dict({"first_name": first_name, "last_name": last_name, "email": email})
        self.users.commit()
        return user

    def change_password(self, user_id: int, current_password: Optional[str], new_password: Optional[str]) -> None:
        """修改密码

        Raises:
            HTTPException: 参数缺失或过短(400)、当前密码错误(401)
        """
        if not current_password or not new_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current and new password are required"
            )
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="New password must be at least 12 characters long"
            )

        user = self.get_user(user_id)
        if not user.verify_password(current_password):
            security_monitor.log_security_violation(
                "password_change_rejected", f"Wrong current password for user {user.username}"
            )
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")

        self.users.change_password(user, new_password, settings.bcrypt_rounds)
        logger.info("Password changed", extra={"user_id": user.id})
