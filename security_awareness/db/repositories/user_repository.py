"""用户数据访问仓储"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..models.auth import Role, User


class UserRepository(BaseRepository[User]):
    """用户仓储类"""

    def __init__(self, session: Session):
        super().__init__(session, User)

    def get_by_username(self, username: str) -> Optional[User]:
        """根据用户名获取用户"""
        return self.session.query(User).filter(User.username == username).first()

    def get_active_by_username(self, username: str) -> Optional[User]:
        """根据用户名获取激活用户"""
        return (
            self.session.query(User)
            .filter(User.username == username, User.is_active.is_(True))
            .first()
        )

    def get_active_by_id(self, user_id: int) -> Optional[User]:
        """根据ID获取激活用户"""
        return (
            self.session.query(User)
            .filter(User.id == user_id, User.is_active.is_(True))
            .first()
        )

    def username_or_email_exists(self, username: str, email: str) -> bool:
        """检查用户名或邮箱是否已被使用"""
        return (
            self.session.query(User.id)
            .filter(or_(User.username == username, User.email == email))
            .first()
        ) is not None

    def email_taken_by_other(self, email: str, user_id: int) -> bool:
        """检查邮箱是否被其他用户使用"""
        return (
            self.session.query(User.id)
            .filter(User.email == email, User.id != user_id)
            .first()
        ) is not None

    def create_user(
        self,
        username: str,
        email: str,
        password: str,
        first_name: str = None,
        last_name: str = None,
        role_id: int = None,
        department: str = None,
        is_active: bool = True,
        rounds: int = None
    ) -> User:
        """创建用户

        Args:
            username: 用户名
            email: 邮箱
            password: 明文密码
            first_name: 名
            last_name: 姓
            role_id: 角色ID
            department: 部门
            is_active: 是否激活
            rounds: bcrypt轮数

        Returns:
            User: 创建的用户
        """
        user = User(
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role_id=role_id,
            department=department,
            is_active=is_active
        )
        user.set_password(password, rounds)
        self.session.add(user)
        self.commit()
        self.session.refresh(user)
        return user

    def change_password(self, user: User, new_password: str, rounds: int = None) -> None:
        """修改密码"""
        user.set_password(new_password, rounds)
        self.commit()

    def record_login(self, user: User) -> None:
        """记录登录时间"""
        user.record_login()
        self.commit()

    def get_role(self, role_id: int) -> Optional[Role]:
        """根据ID获取角色"""
        return self.session.query(Role).filter(Role.id == role_id).first()

    def get_role_by_name(self, name: str) -> Optional[Role]:
        """根据名称获取角色"""
        return self.session.query(Role).filter(Role.name == name).first()
