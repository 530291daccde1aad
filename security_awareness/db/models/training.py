"""培训模块数据模型"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..base import BaseModel

PROGRESS_STATUSES = ("not_started", "in_progress", "completed")


class TrainingModule(BaseModel):
    """培训模块"""
    __tablename__ = "training_modules"

    title = Column(String(255), nullable=False, comment="标题")
    description = Column(Text, comment="描述")
    role_id = Column(Integer, ForeignKey("roles.id"), comment="目标角色ID")
    category = Column(String(100), nullable=False, index=True, comment="分类")
    content_type = Column(String(50), default="interactive", comment="内容类型")
    content_url = Column(String(500), comment="内容地址")
    duration = Column(Integer, default=0, comment="时长（分钟）")
    prerequisites = Column(JSON, comment="前置模块ID列表")
    is_active = Column(Boolean, default=True, nullable=False, comment="是否启用")

    progress_records = relationship(
        "TrainingProgress", back_populates="module", cascade="all, delete-orphan"
    )

    @property
    def prerequisite_ids(self) -> list:
        return [int(item) for item in (self.prerequisites or [])]


class TrainingProgress(BaseModel):
    """培训进度"""
    __tablename__ = "training_progress"
    __table_args__ = (UniqueConstraint("user_id", "module_id", name="uq_training_progress_user_module"),)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="用户ID")
    module_id = Column(Integer, ForeignKey("training_modules.id"), nullable=False, index=True, comment="模块ID")
    status = Column(String(20), default="not_started", nullable=False, comment="状态")
    progress_percentage = Column(Integer, default=0, nullable=False, comment="进度百分比")
    time_spent = Column(Integer, default=0, nullable=False, comment="累计用时（分钟）")
    started_at = Column(DateTime, comment="开始时间")
    completed_at = Column(DateTime, comment="完成时间")

    module = relationship("TrainingModule", back_populates="progress_records")
