"""数据模型模块

包含所有数据库模型定义。
"""

from .auth import Role, User, AuditLog
from .policy import Policy, PolicyAcknowledgment
from .quiz import Quiz, QuizQuestion, QuizAnswer, QuizAttempt
from .game import MiniGame, GameAttempt
from .training import TrainingModule, TrainingProgress
from .fact import SecurityFact

__all__ = [
    "Role",
    "User",
    "AuditLog",
    "Policy",
    "PolicyAcknowledgment",
    "Quiz",
    "QuizQuestion",
    "QuizAnswer",
    "QuizAttempt",
    "MiniGame",
    "GameAttempt",
    "TrainingModule",
    "TrainingProgress",
    "SecurityFact"
]
