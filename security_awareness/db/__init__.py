"""数据库模块

- 数据库连接管理
- 数据模型定义
- 数据访问层（Repository）
- 维护脚本
"""

from .connection import db_manager, get_db
from .base import Base

__all__ = ["db_manager", "get_db", "Base"]
