"""数据访问层模块

包含所有数据访问仓储类。
"""

from .base import BaseRepository
from .user_repository import UserRepository
from .audit_repository import AuditRepository
from .policy_repository import PolicyRepository
from .quiz_repository import QuizRepository
from .game_repository import GameRepository
from .training_repository import TrainingRepository
from .fact_repository import FactRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "AuditRepository",
    "PolicyRepository",
    "QuizRepository",
    "GameRepository",
    "TrainingRepository",
    "FactRepository"
]
