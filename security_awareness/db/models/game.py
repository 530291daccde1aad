"""安全小游戏数据模型"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship

from ..base import BaseModel, utcnow

GAME_TYPES = (
    "phishing_simulator",
    "password_challenge",
    "threat_detection",
    "fraud_detection",
    "code_review",
    "watermark_protection",
)
DEFAULT_GAME_TYPE = "phishing_simulator"


class MiniGame(BaseModel):
    """小游戏模型"""
    __tablename__ = "mini_games"

    title = Column(String(255), nullable=False, comment="标题")
    description = Column(Text, comment="描述")
    game_type = Column(String(50), default=DEFAULT_GAME_TYPE, comment="游戏类型")
    role_id = Column(Integer, ForeignKey("roles.id"), comment="目标角色ID")
    difficulty = Column(String(20), default="beginner", comment="难度")
    instructions = Column(Text, comment="说明")
    game_data = Column(JSON, comment="游戏数据")
    is_active = Column(Boolean, default=True, nullable=False, comment="是否启用")

    attempts = relationship("GameAttempt", back_populates="game", cascade="all, delete-orphan")


class GameAttempt(BaseModel):
    """游戏记录"""
    __tablename__ = "game_attempts"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="用户ID")
    game_id = Column(Integer, ForeignKey("mini_games.id"), nullable=False, index=True, comment="游戏ID")
    started_at = Column(DateTime, default=utcnow, nullable=False, comment="开始时间")
    completed_at = Column(DateTime, comment="完成时间")
    score = Column(Integer, comment="得分")
    max_score = Column(Integer, comment="满分")
    time_taken = Column(Integer, comment="用时（秒）")
    game_result = Column(JSON, comment="游戏结果")

    game = relationship("MiniGame", back_populates="attempts")
