"""个人资料服务"""

import copy
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.logging import get_logger, security_monitor
from ..db.base import serialize_value
from ..db.connection import db_manager
from ..db.models.auth import User
from ..db.repositories.user_repository import UserRepository

logger = get_logger(__name__)

DEFAULT_PREFERENCES = {
    "notifications": {
        "email": True,
        "push": True,
        "sms": False
    },
    "theme": "light",
    "language": "en",
    "timezone": "UTC",
    "dashboard_layout": "default"
}

ACTIVITY_SQL = """
    SELECT 'policy_acknowledgment' AS type, p.title AS title, pa.acknowledged_at AS timestamp,
           'Policy Acknowledged' AS description, NULL AS score, NULL AS max_score,
           pa.ip_address AS ip_address, pa.user_agent AS user_agent
    FROM policy_acknowledgments pa
    JOIN policies p ON pa.policy_id = p.id
    WHERE pa.user_id = :user_id
    UNION ALL
    SELECT 'quiz_attempt' AS type, q.title AS title, qa.completed_at AS timestamp,
           'Quiz Completed' AS description, qa.score AS score, qa.max_score AS max_score,
           NULL AS ip_address, NULL AS user_agent
    FROM quiz_attempts qa
    JOIN quizzes q ON qa.quiz_id = q.id
    WHERE qa.user_id = :user_id AND qa.completed_at IS NOT NULL
    UNION ALL
    SELECT 'game_attempt' AS type, g.title AS title, ga.completed_at AS timestamp,
           'Game Completed' AS description, ga.score AS score, ga.max_score AS max_score,
           NULL AS ip_address, NULL AS user_agent
    FROM game_attempts ga
    JOIN mini_games g ON ga.game_id = g.id
    WHERE ga.user_id = :user_id AND ga.completed_at IS NOT NULL
    UNION ALL
    SELECT 'training_completion' AS type, tm.title AS title, tp.completed_at AS timestamp,
           'Training Module Completed' AS description, NULL AS score, NULL AS max_score,
           NULL AS ip_address, NULL AS user_agent
    FROM training_progress tp
    JOIN training_modules tm ON tp.module_id = tm.id
    WHERE tp.user_id = :user_id AND tp.status = 'completed'
    UNION ALL
    SELECT 'login' AS type, 'System' AS title, u.last_login AS timestamp,
           'User Login' AS description, NULL AS score, NULL AS max_score,
           NULL AS ip_address, NULL AS user_agent
    FROM users u
    WHERE u.id = :user_id AND u.last_login IS NOT NULL
    ORDER BY timestamp DESC
    LIMIT :limit OFFSET :offset
"""

ACTIVITY_COUNT_SQL = """
    SELECT
        (SELECT COUNT(*) FROM policy_acknowledgments WHERE user_id = :user_id)
      + (SELECT COUNT(*) FROM quiz_attempts WHERE user_id = :user_id AND completed_at IS NOT NULL)
      + (SELECT COUNT(*) FROM game_attempts WHERE user_id = :user_id AND completed_at IS NOT NULL)
      + (SELECT COUNT(*) FROM training_progress WHERE user_id = :user_id AND status = 'completed')
      + (SELECT COUNT(*) FROM users WHERE id = :user_id AND last_login IS NOT NULL) AS total
"""


def merge_preferences(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """递归合并偏好设置，嵌套字典按键合并"""
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_preferences(merged[key], value)
        else:
            merged[key] = value
    return merged


class ProfileService:
    """个人资料服务类"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)

    def _query(self, sql: str, params: Dict[str, Any]):
        rows = db_manager.execute_query(sql, params, session=self.db)
        return [{key: serialize_value(value) for key, value in row.items()} for row in rows]

    def _get_user(self, user_id: int, detail: str = "User not found") -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
        return user

    def get_profile(self, user_id: int) -> Dict[str, Any]:
        """用户资料，附带角色名称与描述"""
        user = self._get_user(user_id, "User profile not found")
        data = user.to_dict()
        data["role_name"] = user.role.name if user.role else None
        data["role_description"] = user.role.description if user.role else None
        return data

    def update_profile(self, user_id: int, data: Dict[str, Any]) -> User:
        """更新资料；邮箱不能与其他用户重复"""
        user = self._get_user(user_id, "User profile not found")
        email = data.get("email")
        if email and self.users.email_taken_by_other(email, user_id):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already taken by another user")

        user.update_from_dict({
            "first_name": data.get("first_name"),
            "last_name": data.get("last_name"),
            "email": email,
            "department": data.get("department")
        })
        self.users.commit()
        return user

    def change_password(self, user_id: int, current_password: Optional[str], new_password: Optional[str]) -> None:
        if not current_password or not new_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password and new password are required"
            )
        user = self._get_user(user_id)
        if not user.verify_password(current_password):
            security_monitor.log_security_violation(
                "password_change_rejected", f"Wrong current password for user {user.username}"
            )
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
        self.users.change_password(user, new_password, settings.bcrypt_rounds)

    def get_preferences(self, user_id: int) -> Dict[str, Any]:
        """偏好设置：默认值合并用户已保存的值"""
        user = self._get_user(user_id)
        return merge_preferences(DEFAULT_PREFERENCES, user.preferences or {})

    def update_preferences(self, user_id: int, preferences: Any) -> Dict[str, Any]:
        if not isinstance(preferences, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid preferences format")
        user = self._get_user(user_id)
        # JSON列需整体赋值才会被标记为已修改
        user.preferences = merge_preferences(user.preferences or {}, preferences)
        self.users.commit()
        return merge_preferences(DEFAULT_PREFERENCES, user.preferences)

    def get_activity(self, user_id: int, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        """跨模块的活动历史，按时间倒序分页"""
        params = {"user_id": user_id, "limit": limit, "offset": offset}
        activities = []
        for row in self._query(ACTIVITY_SQL, params):
            description = row["description"]
            if row.get("max_score") is not None:
                description = f"{description} - Score: {row['score']}/{row['max_score']}"
            activities.append({
                "type": row["type"],
                "title": row["title"],
                "timestamp": row["timestamp"],
                "description": description,
                "ip_address": row["ip_address"],
                "user_agent": row["user_agent"]
            })

        total = self._query(ACTIVITY_COUNT_SQL, {"user_id": user_id})[0]["total"]
        return {"activities": activities, "total": int(total or 0), "limit": limit, "offset": offset}

    def toggle_mfa(self, user_id: int, enable: bool, secret: Optional[str]) -> bool:
        """启用或关闭MFA

        Returns:
            bool: 更新后的启用状态
        """
        if enable and not secret:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="MFA secret is required when enabling MFA"
            )
        user = self._get_user(user_id)
        user.mfa_enabled = bool(enable)
        user.mfa_secret = secret if enable else None
        self.users.commit()
        logger.info("MFA toggled", extra={"user_id": user_id, "enabled": user.mfa_enabled})
        return user.mfa_enabled

    def get_stats(self, user_id: int) -> Dict[str, Any]:
        """用户在各模块的统计"""
        params = {"user_id": user_id}
        policies = self._query(
            """
            SELECT COUNT(*) AS total_policies, COUNT(pa.id) AS acknowledged_policies
            FROM policies p
            LEFT JOIN policy_acknowledgments pa ON p.id = pa.policy_id AND pa.user_id = :user_id
            WHERE p.status != 'archived'
            """,
            params
        )[0]
        quizzes = self._query(
            """
            SELECT COUNT(DISTINCT qa.quiz_id) AS total_quizzes,
                   COUNT(*) AS total_attempts,
                   AVG(qa.score * 100.0 / qa.max_score) AS avg_score,
                   COUNT(CASE WHEN qa.passed = 1 THEN 1 END) AS passed_attempts
            FROM quiz_attempts qa
            WHERE qa.user_id = :user_id AND qa.completed_at IS NOT NULL
            """,
            params
        )[0]
        games = self._query(
            """
            SELECT COUNT(DISTINCT ga.game_id) AS total_games,
                   COUNT(*) AS total_attempts,
                   AVG(ga.score * 100.0 / ga.max_score) AS avg_score,
                   AVG(ga.time_taken) AS avg_time
            FROM game_attempts ga
            WHERE ga.user_id = :user_id AND ga.completed_at IS NOT NULL
            """,
            params
        )[0]
        training = self._query(
            """
            SELECT COUNT(*) AS total_modules,
                   COUNT(CASE WHEN status = 'completed' THEN 1 END) AS completed_modules,
                   COUNT(CASE WHEN status = 'in_progress' THEN 1 END) AS in_progress_modules,
                   SUM(time_spent) AS total_time_spent
            FROM training_progress
            WHERE user_id = :user_id
            """,
            params
        )[0]

        return {"policies": policies, "quizzes": quizzes, "games": games, "training": training}
