"""认证与个人资料相关的Pydantic模式

字段均为可选，必填校验在服务层完成以返回统一的错误信息。
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """登录请求"""
    username: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(BaseModel):
    """注册请求"""
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role_id: Optional[int] = None
    department: Optional[str] = None


class ProfileUpdate(BaseModel):
    """资料更新"""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """认证接口的修改密码请求（驼峰字段）"""
    current_password: Optional[str] = Field(default=None, alias="currentPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class PasswordUpdate(BaseModel):
    """个人资料接口的修改密码请求"""
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class MFAToggle(BaseModel):
    """MFA开关"""
    enable: bool = False
    secret: Optional[str] = None


PreferencesPayload = Dict[str, Any]
