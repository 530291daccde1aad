"""数据库基础类

定义所有数据模型的基类和通用功能。
"""

from datetime import datetime, date, timezone
from decimal import Decimal

from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base

# 创建基础模型类
Base = declarative_base()


def utcnow() -> datetime:
    """当前UTC时间（无时区信息，与数据库列一致）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def serialize_value(value):
    """将列值转换为可JSON序列化的值"""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class TimestampMixin:
    """时间戳混入类

    为模型添加创建时间和更新时间字段。
    """

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        comment="创建时间"
    )

    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="更新时间"
    )


class BaseModel(Base, TimestampMixin):
    """基础模型类

    所有数据模型的基类，包含通用字段和方法。
    """

    __abstract__ = True

    id = Column(
        Integer,
        primary_key=True,
        index=True,
        autoincrement=True,
        comment="主键ID"
    )

    # to_dict 默认排除的列
    __hidden_fields__ = ()

    def to_dict(self, exclude=None):
        """转换为字典

        Args:
            exclude: 额外排除的列名

        Returns:
            dict: 列名到可序列化值的映射
        """
        hidden = set(self.__hidden_fields__) | set(exclude or ())
        return {
            column.name: serialize_value(getattr(self, column.name))
            for column in self.__table__.columns
            if column.name not in hidden
        }

    def update_from_dict(self, data: dict):
        """从字典更新属性，忽略值为None的键"""
        for key, value in data.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)

    def __repr__(self):
        """字符串表示"""
        return f"<{self.__class__.__name__}(id={self.id})>"
