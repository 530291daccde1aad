"""安全策略数据访问仓储"""

from typing import Any, Dict, List, Optional

from sqlalchemy import case, desc, func
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..base import serialize_value
from ..models.auth import User
from ..models.policy import Policy, PolicyAcknowledgment

# critical 优先
PRIORITY_ORDER = case(
    {"critical": 4, "high": 3, "medium": 2, "low": 1},
    value=Policy.priority,
    else_=0
)


class PolicyRepository(BaseRepository[Policy]):
    """安全策略仓储类"""

    def __init__(self, session: Session):
        super().__init__(session, Policy)

    def _with_acknowledgment(self, user_id: Optional[int]):
        return (
            self.session.query(Policy, PolicyAcknowledgment.acknowledged_at, User.username)
            .outerjoin(
                PolicyAcknowledgment,
                (PolicyAcknowledgment.policy_id == Policy.id)
                & (PolicyAcknowledgment.user_id == user_id)
            )
            .outerjoin(User, User.id == Policy.published_by)
            .filter(Policy.status != "archived")
        )

    @staticmethod
    def _row_to_dict(row) -> Dict[str, Any]:
        policy, acknowledged_at, published_by_username = row
        data = policy.to_dict()
        data["published_by_username"] = published_by_username
        data["acknowledged"] = acknowledged_at is not None
        data["acknowledged_at"] = serialize_value(acknowledged_at)
        return data

    def list_for_user(
        self,
        user_id: Optional[int],
        category: str = None,
        status: str = None,
        priority: str = None,
        search: str = None
    ) -> List[Dict[str, Any]]:
        """获取未归档策略及当前用户的确认状态

        Args:
            user_id: 当前用户ID
            category: 分类过滤
            status: 状态过滤
            priority: 优先级过滤
            search: 标题或正文关键词

        Returns:
            List[Dict]: 策略字典列表
        """
        query = self._with_acknowledgment(user_id)

        if category:
            query = query.filter(Policy.category == category)
        if status:
            query = query.filter(Policy.status == status)
        if priority:
            query = query.filter(Policy.priority == priority)
        if search:
            query = query.filter(self.search_condition(search, ["title", "content"]))

        query = query.order_by(desc(PRIORITY_ORDER), desc(Policy.created_at), desc(Policy.id))
        return [self._row_to_dict(row) for row in query.all()]

    def get_for_user(self, policy_id: int, user_id: Optional[int]) -> Optional[Dict[str, Any]]:
        """获取单个未归档策略及确认状态"""
        row = self._with_acknowledgment(user_id).filter(Policy.id == policy_id).first()
        return self._row_to_dict(row) if row else None

    def get_published(self, policy_id: int) -> Optional[Policy]:
        """获取已发布的策略"""
        return (
            self.session.query(Policy)
            .filter(Policy.id == policy_id, Policy.status == "published")
            .first()
        )

    def archive(self, policy: Policy) -> Policy:
        """归档策略（软删除）"""
        policy.status = "archived"
        self.commit()
        return policy

    def get_acknowledgment(self, user_id: int, policy_id: int) -> Optional[PolicyAcknowledgment]:
        """获取用户对策略的确认记录"""
        return (
            self.session.query(PolicyAcknowledgment)
            .filter(
                PolicyAcknowledgment.user_id == user_id,
                PolicyAcknowledgment.policy_id == policy_id
            )
            .first()
        )

    def acknowledge(
        self,
        user_id: int,
        policy_id: int,
        ip_address: str = None,
        user_agent: str = None
    ) -> PolicyAcknowledgment:
        """创建确认记录"""
        acknowledgment = PolicyAcknowledgment(
            user_id=user_id,
            policy_id=policy_id,
            ip_address=ip_address,
            user_agent=user_agent
        )
        self.session.add(acknowledgment)
        self.commit()
        return acknowledgment

    def get_stats(self, user_id: Optional[int]) -> Dict[str, Any]:
        """获取策略统计

        Returns:
            Dict: total/acknowledged/pending/byCategory/byPriority
        """
        active = self.session.query(Policy).filter(Policy.status != "archived")
        total = active.count()
        acknowledged = (
            self.session.query(PolicyAcknowledgment)
            .filter(PolicyAcknowledgment.user_id == user_id)
            .count()
        )
        by_category = (
            self.session.query(Policy.category, func.count(Policy.id))
            .filter(Policy.status != "archived")
            .group_by(Policy.category)
            .all()
        )
        by_priority = (
            self.session.query(Policy.priority, func.count(Policy.id))
            .filter(Policy.status != "archived")
            .group_by(Policy.priority)
            .all()
        )

        return {
            "total": total,
            "acknowledged": acknowledged,
            "pending": total - acknowledged,
            "byCategory": [{"category": name, "count": count} for name, count in by_category],
            "byPriority": [{"priority": name, "count": count} for name, count in by_priority]
        }
