"""安全策略数据模型"""

from sqlalchemy import Column, Integer, String, DateTime, Date, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..base import BaseModel, utcnow

POLICY_PRIORITIES = ("low", "medium", "high", "critical")
POLICY_STATUSES = ("draft", "published", "archived")


class Policy(BaseModel):
    """安全策略模型"""
    __tablename__ = "policies"

    title = Column(String(255), nullable=False, comment="标题")
    content = Column(Text, nullable=False, comment="正文")
    version = Column(String(20), default="1.0", comment="版本")
    category = Column(String(100), nullable=False, index=True, comment="分类")
    priority = Column(String(20), default="medium", comment="优先级")
    status = Column(String(20), default="draft", index=True, comment="状态")
    published_by = Column(Integer, ForeignKey("users.id"), comment="发布者ID")
    published_at = Column(DateTime, comment="发布时间")
    effective_date = Column(Date, comment="生效日期")
    expiry_date = Column(Date, comment="失效日期")

    acknowledgments = relationship(
        "PolicyAcknowledgment", back_populates="policy", cascade="all, delete-orphan"
    )

    def publish(self, user_id: int) -> None:
        """发布策略"""
        self.status = "published"
        self.published_by = user_id
        self.published_at = utcnow()


class PolicyAcknowledgment(BaseModel):
    """策略确认记录"""
    __tablename__ = "policy_acknowledgments"
    __table_args__ = (UniqueConstraint("user_id", "policy_id", name="uq_policy_ack_user_policy"),)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="用户ID")
    policy_id = Column(Integer, ForeignKey("policies.id"), nullable=False, index=True, comment="策略ID")
    acknowledged_at = Column(DateTime, default=utcnow, nullable=False, comment="确认时间")
    ip_address = Column(String(45), comment="IP地址")
    user_agent = Column(Text, comment="用户代理")

    policy = relationship("Policy", back_populates="acknowledgments")
