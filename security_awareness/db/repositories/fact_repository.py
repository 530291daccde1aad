"""安全小知识数据访问仓储"""

import random
from typing import Any, Dict, List, Optional

from sqlalchemy import case, desc, func, or_
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..models.auth import Role
from ..models.fact import SecurityFact

PRIORITY_ORDER = case(
    {"high": 3, "medium": 2, "low": 1},
    value=SecurityFact.priority,
    else_=0
)


class FactRepository(BaseRepository[SecurityFact]):
    """安全小知识仓储类"""

    def __init__(self, session: Session):
        super().__init__(session, SecurityFact)

    def _active_query(self, category: str = None, role_id: int = None):
        query = (
            self.session.query(SecurityFact, Role.name)
            .outerjoin(Role, Role.id == SecurityFact.role_id)
            .filter(SecurityFact.is_active.is_(True))
        )
        if category:
            query = query.filter(SecurityFact.category == category)
        if role_id:
            # role_id 为空的条目对所有角色可见
            query = query.filter(or_(SecurityFact.role_id == role_id, SecurityFact.role_id.is_(None)))
        return query

    @staticmethod
    def _row_to_dict(row) -> Dict[str, Any]:
        fact, role_name = row
        data = fact.to_dict()
        data["role_name"] = role_name
        return data

    def list_active(
        self,
        category: str = None,
        role_id: int = None,
        priority: str = None,
        search: str = None,
        limit: int = None
    ) -> List[Dict[str, Any]]:
        """按优先级与创建时间排序获取启用的条目"""
        query = self._active_query(category, role_id)
        if priority:
            query = query.filter(SecurityFact.priority == priority)
        if search:
            query = query.filter(self.search_condition(search, ["title", "content"]))

        query = query.order_by(desc(PRIORITY_ORDER), desc(SecurityFact.created_at), desc(SecurityFact.id))
        if limit is not None:
            query = query.limit(limit)
        return [self._row_to_dict(row) for row in query.all()]

    def get_random(self, category: str = None, role_id: int = None) -> Optional[Dict[str, Any]]:
        """随机获取一条启用的条目"""
        query = self._active_query(category, role_id)
        total = query.count()
        if total == 0:
            return None
        row = query.order_by(SecurityFact.id).offset(random.randrange(total)).first()
        return self._row_to_dict(row) if row else None

    def get_active_detail(self, fact_id: int) -> Optional[Dict[str, Any]]:
        """获取启用条目详情"""
        row = self._active_query().filter(SecurityFact.id == fact_id).first()
        return self._row_to_dict(row) if row else None

    def get_categories(self) -> List[Dict[str, Any]]:
        """分类及条目数，数量多的在前"""
        count = func.count(SecurityFact.id)
        rows = (
            self.session.query(SecurityFact.category, count)
            .filter(SecurityFact.is_active.is_(True))
            .group_by(SecurityFact.category)
            .order_by(desc(count), SecurityFact.category)
            .all()
        )
        return [{"category": category, "count": total} for category, total in rows]

    def deactivate(self, fact: SecurityFact) -> None:
        """停用条目（软删除）"""
        fact.is_active = False
        self.commit()
