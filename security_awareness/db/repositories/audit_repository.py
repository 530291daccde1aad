"""审计日志数据访问仓储"""

from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..models.auth import AuditLog


class AuditRepository(BaseRepository[AuditLog]):
    """审计日志仓储类，记录只追加不修改"""

    def __init__(self, session: Session):
        super().__init__(session, AuditLog)

    def create_log(
        self,
        action: str,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> AuditLog:
        """追加一条审计记录，由调用方的事务负责提交"""
        entry = AuditLog.create_log(
            action=action,
            user_id=user_id,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def list_for_resource(self, resource_type: str, resource_id: Optional[str] = None, limit: int = 50) -> List[AuditLog]:
        """按资源查询审计记录，最新的在前"""
        query = self.session.query(AuditLog).filter(AuditLog.resource_type == resource_type)
        if resource_id is not None:
            query = query.filter(AuditLog.resource_id == str(resource_id))
        return query.order_by(desc(AuditLog.created_at), desc(AuditLog.id)).limit(limit).all()
