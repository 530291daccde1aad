"""用户认证相关数据模型"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship

from ..base import BaseModel, utcnow
from ...core.security import hash_password, verify_password

DEFAULT_ROLE_NAME = "enduser"


class Role(BaseModel):
    """角色模型"""
    __tablename__ = "roles"

    name = Column(String(50), unique=True, nullable=False, comment="角色名称")
    description = Column(Text, comment="描述")

    users = relationship("User", back_populates="role")


class User(BaseModel):
    """用户模型"""
    __tablename__ = "users"
    __hidden_fields__ = ("password_hash", "mfa_secret")

    username = Column(String(50), unique=True, index=True, nullable=False, comment="用户名")
    email = Column(String(255), unique=True, index=True, nullable=False, comment="邮箱")
    password_hash = Column(String(255), nullable=False, comment="密码哈希")
    first_name = Column(String(100), comment="名")
    last_name = Column(String(100), comment="姓")
    role_id = Column(Integer, ForeignKey("roles.id"), comment="角色ID")
    department = Column(String(100), comment="部门")
    mfa_enabled = Column(Boolean, default=False, nullable=False, comment="是否启用MFA")
    mfa_secret = Column(String(255), comment="MFA密钥")
    is_active = Column(Boolean, default=True, nullable=False, comment="是否激活")
    last_login = Column(DateTime, comment="最后登录时间")
    preferences = Column(JSON, comment="用户偏好设置")

    role = relationship("Role", back_populates="users")
    audit_logs = relationship("AuditLog", back_populates="user")

    @property
    def role_name(self) -> str:
        """角色名称，角色缺失时为 enduser"""
        return self.role.name if self.role else DEFAULT_ROLE_NAME

    def set_password(self, password: str, rounds: int = None) -> None:
        """设置密码

        Args:
            password: 明文密码
            rounds: bcrypt轮数
        """
        self.password_hash = hash_password(password, rounds)

    def verify_password(self, password: str) -> bool:
        """验证密码

        Args:
            password: 明文密码

        Returns:
            bool: 密码是否正确
        """
        return verify_password(password, self.password_hash)

    def record_login(self) -> None:
        """记录登录"""
        self.last_login = utcnow()

    def to_public_dict(self) -> dict:
        """对外返回的用户信息（含角色名称）"""
        data = self.to_dict()
        data["role"] = self.role_name
        return data


class AuditLog(BaseModel):
    """审计日志模型"""
    __tablename__ = "audit_logs"

    user_id = Column(Integer, ForeignKey("users.id"), comment="用户ID")
    action = Column(String(100), nullable=False, comment="操作类型")
    resource_type = Column(String(50), comment="资源类型")
    resource_id = Column(String(100), comment="资源ID")
    details = Column(JSON, comment="详细信息")
    ip_address = Column(String(45), comment="IP地址")
    user_agent = Column(Text, comment="用户代理")

    user = relationship("User", back_populates="audit_logs")

    @classmethod
    def create_log(
        cls,
        action: str,
        user_id: int = None,
        resource_type: str = None,
        resource_id: str = None,
        details: dict = None,
        ip_address: str = None,
        user_agent: str = None
    ) -> 'AuditLog':
        """创建审计日志

        Args:
            action: 操作类型
            user_id: 用户ID
            resource_type: 资源类型
            resource_id: 资源ID
            details: 详细信息
            ip_address: IP地址
            user_agent: 用户代理

        Returns:
            AuditLog: 审计日志实例
        """
        return cls(
            action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent
        )
