"""基础仓储类

提供通用的数据访问操作。
"""

from typing import TypeVar, Generic, List, Optional, Type
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_

from ..base import BaseModel

T = TypeVar('T', bound=BaseModel)


class BaseRepository(Generic[T]):
    """基础仓储类

    提供通用的CRUD操作和查询方法。
    """

    def __init__(self, session: Session, model: Type[T]):
        """初始化仓储

        Args:
            session: 数据库会话
            model: 数据模型类
        """
        self.session = session
        self.model = model

    def commit(self) -> None:
        """提交事务，完整性错误时回滚并重新抛出"""
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise

    def create(self, **kwargs) -> T:
        """创建记录

        Args:
            **kwargs: 模型字段值

        Returns:
            T: 创建的模型实例

        Raises:
            IntegrityError: 数据完整性错误
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.commit()
        self.session.refresh(instance)
        return instance

    def get_by_id(self, id: int) -> Optional[T]:
        """根据ID获取记录

        Args:
            id: 记录ID

        Returns:
            Optional[T]: 模型实例或None
        """
        return self.session.query(self.model).filter(self.model.id == id).first()

    def update(self, id: int, **kwargs) -> Optional[T]:
        """更新记录

        值为None的字段保持原值。

        Args:
            id: 记录ID
            **kwargs: 要更新的字段值

        Returns:
            Optional[T]: 更新后的模型实例或None
        """
        instance = self.get_by_id(id)
        if instance:
            instance.update_from_dict(kwargs)
            self.commit()
            self.session.refresh(instance)
            return instance

        return None

    def delete(self, id: int) -> bool:
        """删除记录

        Args:
            id: 记录ID

        Returns:
            bool: 是否删除成功
        """
        instance = self.get_by_id(id)
        if instance:
            self.session.delete(instance)
            self.commit()
            return True

        return False

    def search_condition(self, search_term: str, search_fields: List[str]):
        """构建模糊搜索条件

        Args:
            search_term: 搜索词
            search_fields: 搜索字段列表

        Returns:
            or_ 条件，字段均不存在时为None
        """
        conditions = [
            getattr(self.model, field).like(f"%{search_term}%")
            for field in search_fields
            if hasattr(self.model, field)
        ]
        return or_(*conditions) if conditions else None
