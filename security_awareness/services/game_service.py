"""安全小游戏服务"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.logging import get_logger
from ..db.models.game import DEFAULT_GAME_TYPE, GAME_TYPES, MiniGame
from ..db.repositories.game_repository import GameRepository
from ..middleware.auth import RequestContext
from .quiz_service import percentage

logger = get_logger(__name__)


class GameService:
    """小游戏服务类"""

    def __init__(self, db: Session):
        self.db = db
        self.games = GameRepository(db)

    def _get_or_404(self, game_id: int) -> MiniGame:
        game = self.games.get_by_id(game_id)
        if game is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
        return game

    def get_game_detail(self, game_id: int, user_id: int) -> Dict[str, Any]:
        """游戏详情与用户的历史记录"""
        game = self.games.get_active(game_id)
        if game is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")

        data = game.to_dict()
        data["previous_attempts"] = [
            attempt.to_dict() for attempt in self.games.get_attempts(user_id, game_id)
        ]
        return data

    def start_game(self, game_id: int, user_id: int) -> Dict[str, Any]:
        """开始游戏

        Returns:
            Dict: ``{attempt_id, game_data}``
        """
        game = self.games.get_active(game_id)
        if game is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found or inactive")

        attempt = self.games.start_attempt(user_id, game_id)
        logger.info("Game started", extra={"user_id": user_id, "game_id": game_id, "attempt_id": attempt.id})
        return {"attempt_id": attempt.id, "game_data": game.game_data}

    def submit_game(
        self,
        game_id: int,
        user_id: int,
        attempt_id: Optional[int],
        score: Optional[int],
        max_score: Optional[int],
        time_taken: Optional[int],
        game_result: Any = None
    ) -> Dict[str, Any]:
        """提交游戏结果，得分以客户端为准"""
        attempt = None
        if attempt_id is not None:
            attempt = self.games.get_attempt(attempt_id, user_id, game_id)
        if attempt is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid attempt")

        self.games.complete_attempt(attempt, score, max_score, time_taken, game_result)
        logger.info("Game submitted", extra={"user_id": user_id, "game_id": game_id, "score": score})

        return {
            "score": score,
            "max_score": max_score,
            "percentage": percentage(score or 0, max_score or 0),
            "time_taken": time_taken
        }

    def get_results(self, game_id: int, user_id: int) -> Dict[str, Any]:
        attempts = self.games.get_attempts(user_id, game_id, completed_only=True)
        if not attempts:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No completed attempts found")

        game = self.games.get_by_id(game_id)
        times = [attempt.time_taken for attempt in attempts if attempt.time_taken is not None]
        return {
            "game": game.to_dict() if game else None,
            "attempts": [attempt.to_dict() for attempt in attempts],
            "best_score": max(attempt.score or 0 for attempt in attempts),
            "best_time": min(times) if times else None,
            "total_attempts": len(attempts)
        }

    def create_game(self, data: Dict[str, Any], current_user: RequestContext) -> MiniGame:
        """创建游戏，未知类型按钓鱼模拟处理"""
        if not data.get("title"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")

        game_type = data.get("game_type")
        if game_type not in GAME_TYPES:
            game_type = DEFAULT_GAME_TYPE

        game = self.games.create(
            title=data["title"],
            description=data.get("description"),
            game_type=game_type,
            role_id=data.get("role_id") or current_user.role_id or 1,
            difficulty=data.get("difficulty") or "beginner",
            instructions=data.get("instructions") or "",
            game_data=data.get("game_data") if data.get("game_data") is not None else {}
        )
        logger.info("Game created", extra={"game_id": game.id, "created_by": current_user.id})
        return game

    def update_game(self, game_id: int, data: Dict[str, Any]) -> MiniGame:
        """部分更新游戏；无效类型保持原值"""
        self._get_or_404(game_id)
        if data.get("game_type") is not None and data["game_type"] not in GAME_TYPES:
            data.pop("game_type")
        return self.games.update(game_id, **data)

    def delete_game(self, game_id: int) -> bool:
        """删除游戏：已有记录时停用，否则物理删除

        Returns:
            bool: 是否为软删除
        """
        game = self._get_or_404(game_id)
        if self.games.has_attempts(game_id):
            self.games.deactivate(game)
            return True
        self.games.delete(game_id)
        return False
