"""安全知识数据模型"""

from sqlalchemy import Column, Integer, String, Boolean, Text, ForeignKey

from ..base import BaseModel

FACT_PRIORITIES = ("low", "medium", "high")


class SecurityFact(BaseModel):
    """安全小知识；role_id 为空时对所有角色可见"""
    __tablename__ = "security_facts"

    title = Column(String(255), nullable=False, comment="标题")
    content = Column(Text, nullable=False, comment="内容")
    category = Column(String(100), nullable=False, index=True, comment="分类")
    role_id = Column(Integer, ForeignKey("roles.id"), comment="目标角色ID")
    priority = Column(String(20), default="medium", comment="优先级")
    is_active = Column(Boolean, default=True, nullable=False, comment="是否启用")
