"""平台API的Python客户端与测验作答流程"""

from .api_client import ApiClient, ApiError, TokenStore
from .quiz_session import QuizSession, QuizState, InvalidTransitionError, normalize_quiz

__all__ = [
    "ApiClient",
    "ApiError",
    "TokenStore",
    "QuizSession",
    "QuizState",
    "InvalidTransitionError",
    "normalize_quiz"
]
