"""小游戏数据访问仓储"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import asc, case, desc, func
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..base import serialize_value, utcnow
from ..models.auth import Role, User
from ..models.game import MiniGame, GameAttempt

DIFFICULTY_ORDER = case(
    {"beginner": 1, "intermediate": 2, "advanced": 3},
    value=MiniGame.difficulty,
    else_=4
)


class GameRepository(BaseRepository[MiniGame]):
    """小游戏仓储类"""

    def __init__(self, session: Session):
        super().__init__(session, MiniGame)

    def list_for_user(
        self,
        user_id: Optional[int],
        game_type: str = None,
        difficulty: str = None,
        role_id: int = None,
        search: str = None
    ) -> List[Dict[str, Any]]:
        """获取启用的游戏及用户的最好成绩与最短用时"""
        best = (
            self.session.query(
                GameAttempt.game_id.label("game_id"),
                func.max(GameAttempt.score).label("best_score"),
                func.min(GameAttempt.time_taken).label("best_time")
            )
            .filter(GameAttempt.user_id == user_id)
            .group_by(GameAttempt.game_id)
            .subquery()
        )

        query = (
            self.session.query(MiniGame, Role.name, best.c.game_id, best.c.best_score, best.c.best_time)
            .outerjoin(Role, Role.id == MiniGame.role_id)
            .outerjoin(best, best.c.game_id == MiniGame.id)
            .filter(MiniGame.is_active.is_(True))
        )

        if game_type:
            query = query.filter(MiniGame.game_type == game_type)
        if difficulty:
            query = query.filter(MiniGame.difficulty == difficulty)
        if role_id:
            query = query.filter(MiniGame.role_id == role_id)
        if search:
            query = query.filter(self.search_condition(search, ["title", "description"]))

        query = query.order_by(DIFFICULTY_ORDER, desc(MiniGame.created_at), desc(MiniGame.id))

        results = []
        for game, role_name, attempted_game_id, best_score, best_time in query.all():
            data = game.to_dict()
            data.update({
                "role_name": role_name,
                "attempted": attempted_game_id is not None,
                "best_score": best_score,
                "best_time": best_time
            })
            results.append(data)
        return results

    def get_active(self, game_id: int) -> Optional[MiniGame]:
        """获取启用的游戏"""
        return (
            self.session.query(MiniGame)
            .filter(MiniGame.id == game_id, MiniGame.is_active.is_(True))
            .first()
        )

    def get_attempts(self, user_id: int, game_id: int, completed_only: bool = False) -> List[GameAttempt]:
        """获取用户的游戏记录，最新在前"""
        query = self.session.query(GameAttempt).filter(
            GameAttempt.user_id == user_id,
            GameAttempt.game_id == game_id
        )
        if completed_only:
            query = query.filter(GameAttempt.completed_at.isnot(None))
            return query.order_by(desc(GameAttempt.completed_at), desc(GameAttempt.id)).all()
        return query.order_by(desc(GameAttempt.started_at), desc(GameAttempt.id)).all()

    def get_attempt(self, attempt_id: int, user_id: int, game_id: int) -> Optional[GameAttempt]:
        """获取用户的指定游戏记录"""
        return (
            self.session.query(GameAttempt)
            .filter(
                GameAttempt.id == attempt_id,
                GameAttempt.user_id == user_id,
                GameAttempt.game_id == game_id
            )
            .first()
        )

    def start_attempt(self, user_id: int, game_id: int) -> GameAttempt:
        """创建新的游戏记录"""
        attempt = GameAttempt(user_id=user_id, game_id=game_id, started_at=utcnow())
        self.session.add(attempt)
        self.commit()
        self.session.refresh(attempt)
        return attempt

    def complete_attempt(
        self,
        attempt: GameAttempt,
        score: Optional[int],
        max_score: Optional[int],
        time_taken: Optional[int],
        game_result: Any
    ) -> GameAttempt:
        """完成游戏记录"""
        attempt.completed_at = utcnow()
        attempt.score = score
        attempt.max_score = max_score
        attempt.time_taken = time_taken
        attempt.game_result = game_result
        self.commit()
        return attempt

    def get_history(self, user_id: int, limit: int = 10, offset: int = 0) -> Tuple[List[Dict[str, Any]], int]:
        """获取用户已完成的游戏历史

        Returns:
            Tuple: (记录列表, 总数)
        """
        base = (
            self.session.query(GameAttempt, MiniGame.title, MiniGame.game_type, MiniGame.difficulty)
            .join(MiniGame, MiniGame.id == GameAttempt.game_id)
            .filter(GameAttempt.user_id == user_id, GameAttempt.completed_at.isnot(None))
        )
        total = base.count()
        rows = (
            base.order_by(desc(GameAttempt.completed_at), desc(GameAttempt.id))
            .limit(limit)
            .offset(offset)
            .all()
        )

        attempts = []
        for attempt, title, game_type, difficulty in rows:
            data = attempt.to_dict()
            data.update({"game_title": title, "game_type": game_type, "difficulty": difficulty})
            attempts.append(data)
        return attempts, total

    def get_leaderboard(self, game_id: int, limit: int = 20) -> List[Dict[str, Any]]:
        """获取游戏排行榜：得分降序，同分用时升序"""
        rank = func.rank().over(order_by=(desc(GameAttempt.score), asc(GameAttempt.time_taken)))
        rows = (
            self.session.query(
                User.username,
                User.first_name,
                User.last_name,
                GameAttempt.score,
                GameAttempt.time_taken,
                GameAttempt.completed_at,
                rank.label("rank")
            )
            .join(User, User.id == GameAttempt.user_id)
            .filter(GameAttempt.game_id == game_id, GameAttempt.completed_at.isnot(None))
            .order_by(desc(GameAttempt.score), asc(GameAttempt.time_taken))
            .limit(limit)
            .all()
        )
        return [
            {key: serialize_value(value) for key, value in row._mapping.items()}
            for row in rows
        ]

    def has_attempts(self, game_id: int) -> bool:
        """游戏是否已有记录"""
        return self.session.query(GameAttempt.id).filter(GameAttempt.game_id == game_id).first() is not None

    def deactivate(self, game: MiniGame) -> None:
        """停用游戏（软删除）"""
        game.is_active = False
        self.commit()
