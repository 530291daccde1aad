"""按业务领域划分的API路由"""

from .auth import router as auth_router
from .policies import router as policies_router
from .quizzes import router as quizzes_router
from .reports import router as reports_router
from .facts import router as facts_router
from .games import router as games_router
from .training import router as training_router
from .profile import router as profile_router

__all__ = [
    "auth_router",
    "policies_router",
    "quizzes_router",
    "reports_router",
    "facts_router",
    "games_router",
    "training_router",
    "profile_router"
]
