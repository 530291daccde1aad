"""报表服务

报表查询直接使用参数化SQL，语句同时兼容 MySQL 与 SQLite。
"""

import csv
import io
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.logging import get_logger
from ..db.base import serialize_value
from ..db.connection import db_manager

logger = get_logger(__name__)

REPORT_TYPES = ("compliance", "training_progress", "quiz_performance", "policy_acknowledgments")
EXPORT_FORMATS = ("json", "csv")

RECENT_ACTIVITY_SQL = """
    SELECT 'policy' AS type, p.title AS title, pa.acknowledged_at AS date,
           NULL AS score, NULL AS max_score
    FROM policy_acknowledgments pa
    JOIN policies p ON pa.policy_id = p.id
    WHERE pa.user_id = :user_id
    UNION ALL
    SELECT 'quiz' AS type, q.title AS title, qa.completed_at AS date,
           qa.score AS score, qa.max_score AS max_score
    FROM quiz_attempts qa
    JOIN quizzes q ON qa.quiz_id = q.id
    WHERE qa.user_id = :user_id AND qa.completed_at IS NOT NULL
    UNION ALL
    SELECT 'game' AS type, g.title AS title, ga.completed_at AS date,
           ga.score AS score, ga.max_score AS max_score
    FROM game_attempts ga
    JOIN mini_games g ON ga.game_id = g.id
    WHERE ga.user_id = :user_id AND ga.completed_at IS NOT NULL
    UNION ALL
    SELECT 'training' AS type, tm.title AS title, tp.completed_at AS date,
           NULL AS score, NULL AS max_score
    FROM training_progress tp
    JOIN training_modules tm ON tp.module_id = tm.id
    WHERE tp.user_id = :user_id AND tp.status = 'completed'
    ORDER BY date DESC
    LIMIT 10
"""

ACTIVITY_LABELS = {
    "policy": "Policy Acknowledged",
    "quiz": "Quiz Completed",
    "game": "Game Completed",
    "training": "Training Completed"
}


def describe_activity(row: Dict[str, Any]) -> str:
    """活动描述，测验与游戏附带得分"""
    label = ACTIVITY_LABELS.get(row["type"], row["type"])
    if row.get("max_score") is not None:
        return f"{label} - Score: {row.get('score')}/{row['max_score']}"
    return label


def rows_to_csv(rows: List[Dict[str, Any]]) -> str:
    """将行字典转换为CSV文本，表头为所有行键的并集"""
    fieldnames: List[str] = []
    for row in rows:
        for key in row:
            if key not in fieldnames:
                fieldnames.append(key)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def _period(start_date: Optional[str], end_date: Optional[str]) -> Dict[str, str]:
    return {"start_date": start_date or "all", "end_date": end_date or "all"}


def _date_filter(column: str, start_date: Optional[str], end_date: Optional[str]) -> Tuple[str, Dict[str, Any]]:
    """起止日期都提供时生成日期过滤条件"""
    if start_date and end_date:
        return f" AND DATE({column}) BETWEEN :start_date AND :end_date", {
            "start_date": start_date,
            "end_date": end_date
        }
    return "", {}


class ReportService:
    """报表服务类"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self, sql: str, params: Dict[str, Any] = None) -> List[Dict[str, Any]]:
        rows = db_manager.execute_query(sql, params, session=self.db)
        return [{key: serialize_value(value) for key, value in row.items()} for row in rows]

    def _scalar(self, sql: str, params: Dict[str, Any] = None) -> int:
        rows = self._query(sql, params)
        return int(rows[0]["count"] or 0) if rows else 0

    def get_dashboard(self, user_id: int) -> Dict[str, Any]:
        """仪表盘统计：各模块总数、用户完成数与最近活动"""
        params = {"user_id": user_id}

        def section(total: int, completed: int, key: str = "completed") -> Dict[str, int]:
            return {"total": total, key: completed, "pending": total - completed}

        total_policies = self._scalar("SELECT COUNT(*) AS count FROM policies WHERE status != 'archived'")
        acknowledged = self._scalar(
            "SELECT COUNT(*) AS count FROM policy_acknowledgments WHERE user_id = :user_id", params
        )
        total_quizzes = self._scalar("SELECT COUNT(*) AS count FROM quizzes WHERE is_active = 1")
        completed_quizzes = self._scalar(
            "SELECT COUNT(DISTINCT quiz_id) AS count FROM quiz_attempts "
            "WHERE user_id = :user_id AND completed_at IS NOT NULL",
            params
        )
        total_games = self._scalar("SELECT COUNT(*) AS count FROM mini_games WHERE is_active = 1")
        completed_games = self._scalar(
            "SELECT COUNT(DISTINCT game_id) AS count FROM game_attempts "
            "WHERE user_id = :user_id AND completed_at IS NOT NULL",
            params
        )
        total_training = self._scalar("SELECT COUNT(*) AS count FROM training_modules WHERE is_active = 1")
        completed_training = self._scalar(
            "SELECT COUNT(*) AS count FROM training_progress "
            "WHERE user_id = :user_id AND status = 'completed'",
            params
        )

        recent_activity = []
        for row in self._query(RECENT_ACTIVITY_SQL, params):
            recent_activity.append({
                "type": row["type"],
                "title": row["title"],
                "date": row["date"],
                "action": describe_activity(row)
            })

        return {
            "policies": section(total_policies, acknowledged, "acknowledged"),
            "quizzes": section(total_quizzes, completed_quizzes),
            "games": section(total_games, completed_games),
            "training": section(total_training, completed_training),
            "recent_activity": recent_activity
        }

    def get_compliance(self, user_id: int, start_date: str = None, end_date: str = None) -> Dict[str, Any]:
        """按分类统计策略确认率与培训完成率"""
        ack_filter, ack_params = _date_filter("pa.acknowledged_at", start_date, end_date)
        policy_compliance = self._query(
            f"""
            SELECT p.category,
                   COUNT(p.id) AS total_policies,
                   COUNT(pa.id) AS acknowledged_policies,
                   ROUND(COUNT(pa.id) * 100.0 / COUNT(p.id), 2) AS compliance_rate
            FROM policies p
            LEFT JOIN policy_acknowledgments pa
                   ON p.id = pa.policy_id AND pa.user_id = :user_id{ack_filter}
            WHERE p.status != 'archived'
            GROUP BY p.category
            ORDER BY compliance_rate DESC, p.category
            """,
            {"user_id": user_id, **ack_params}
        )

        training_filter, training_params = _date_filter("tp.completed_at", start_date, end_date)
        training_compliance = self._query(
            f"""
            SELECT tm.category,
                   COUNT(tm.id) AS total_modules,
                   COUNT(CASE WHEN tp.status = 'completed' THEN 1 END) AS completed_modules,
                   ROUND(COUNT(CASE WHEN tp.status = 'completed' THEN 1 END) * 100.0 / COUNT(tm.id), 2)
                       AS completion_rate
            FROM training_modules tm
            LEFT JOIN training_progress tp
                   ON tm.id = tp.module_id AND tp.user_id = :user_id{training_filter}
            WHERE tm.is_active = 1
            GROUP BY tm.category
            ORDER BY completion_rate DESC, tm.category
            """,
            {"user_id": user_id, **training_params}
        )

        return {
            "policy_compliance": policy_compliance,
            "training_compliance": training_compliance,
            "period": _period(start_date, end_date)
        }

    def get_training_progress(self, user_id: int) -> Dict[str, Any]:
        """培训进度报表"""
        progress = self._query(
            """
            SELECT tm.title, tm.category, tm.content_type, tm.duration,
                   tp.status, tp.progress_percentage, tp.time_spent,
                   tp.started_at, tp.completed_at, r.name AS role_name
            FROM training_progress tp
            JOIN training_modules tm ON tp.module_id = tm.id
            LEFT JOIN roles r ON tm.role_id = r.id
            WHERE tp.user_id = :user_id
            ORDER BY tp.updated_at DESC, tp.id DESC
            """,
            {"user_id": user_id}
        )

        total = len(progress)
        completed = sum(1 for row in progress if row["status"] == "completed")
        return {
            "progress": progress,
            "summary": {
                "total_modules": total,
                "completed": completed,
                "in_progress": sum(1 for row in progress if row["status"] == "in_progress"),
                "not_started": sum(1 for row in progress if row["status"] == "not_started"),
                "overall_percentage": round(completed / total * 100) if total else 0,
                "total_time_spent": sum(row["time_spent"] or 0 for row in progress)
            }
        }

    def get_quiz_performance(self, user_id: int, start_date: str = None, end_date: str = None) -> Dict[str, Any]:
        """测验成绩报表

        Returns:
            Dict: performance/summary/by_category/period
        """
        date_filter, date_params = _date_filter("qa.completed_at", start_date, end_date)
        params = {"user_id": user_id, **date_params}

        performance = self._query(
            f"""
            SELECT q.title, q.category, q.difficulty, qa.score, qa.max_score,
                   ROUND(qa.score * 100.0 / qa.max_score, 2) AS percentage,
                   qa.passed, qa.time_taken, qa.completed_at
            FROM quiz_attempts qa
            JOIN quizzes q ON qa.quiz_id = q.id
            WHERE qa.user_id = :user_id AND qa.completed_at IS NOT NULL{date_filter}
            ORDER BY qa.completed_at DESC, qa.id DESC
            """,
            params
        )
        for row in performance:
            row["passed"] = bool(row["passed"])

        by_category = self._query(
            f"""
            SELECT q.category,
                   COUNT(*) AS attempts,
                   AVG(qa.score * 100.0 / qa.max_score) AS avg_percentage,
                   COUNT(CASE WHEN qa.passed = 1 THEN 1 END) AS passed_attempts
            FROM quiz_attempts qa
            JOIN quizzes q ON qa.quiz_id = q.id
            WHERE qa.user_id = :user_id AND qa.completed_at IS NOT NULL{date_filter}
            GROUP BY q.category
            ORDER BY avg_percentage DESC, q.category
            """,
            params
        )

        total = len(performance)
        passed = sum(1 for row in performance if row["passed"])
        average_score = sum(row["percentage"] or 0 for row in performance) / total if total else 0
        average_time = sum(row["time_taken"] or 0 for row in performance) / total if total else 0

        return {
            "performance": performance,
            "summary": {
                "total_attempts": total,
                "passed_attempts": passed,
                "pass_rate": round(passed / total * 100) if total else 0,
                "average_score": round(average_score, 2),
                "average_time": round(average_time)
            },
            "by_category": by_category,
            "period": _period(start_date, end_date)
        }

    def get_policy_acknowledgments(
        self,
        user_id: int,
        start_date: str = None,
        end_date: str = None
    ) -> Dict[str, Any]:
        """策略确认报表：已确认、待确认与合规率"""
        date_filter, date_params = _date_filter("pa.acknowledged_at", start_date, end_date)
        acknowledged = self._query(
            f"""
            SELECT p.title, p.category, p.priority, p.version,
                   pa.acknowledged_at, pa.ip_address, pa.user_agent
            FROM policy_acknowledgments pa
            JOIN policies p ON pa.policy_id = p.id
            WHERE pa.user_id = :user_id{date_filter}
            ORDER BY pa.acknowledged_at DESC, pa.id DESC
            """,
            {"user_id": user_id, **date_params}
        )
        pending = self._query(
            """
            SELECT p.id, p.title, p.category, p.priority, p.version, p.effective_date
            FROM policies p
            LEFT JOIN policy_acknowledgments pa ON p.id = pa.policy_id AND pa.user_id = :user_id
            WHERE p.status = 'published' AND pa.id IS NULL
            ORDER BY CASE p.priority
                         WHEN 'critical' THEN 4 WHEN 'high' THEN 3
                         WHEN 'medium' THEN 2 WHEN 'low' THEN 1 ELSE 0
                     END DESC,
                     p.effective_date ASC
            """,
            {"user_id": user_id}
        )

        total = len(acknowledged) + len(pending)
        return {
            "acknowledged": acknowledged,
            "pending": pending,
            "summary": {
                "total_acknowledged": len(acknowledged),
                "total_pending": len(pending),
                "compliance_rate": round(len(acknowledged) / total * 100, 2) if total else 0
            },
            "period": _period(start_date, end_date)
        }

    def build_export(
        self,
        user_id: int,
        report_type: Optional[str],
        export_format: Optional[str] = "json",
        start_date: str = None,
        end_date: str = None
    ) -> Dict[str, Any]:
        """生成导出内容

        Returns:
            Dict: ``{filename, format, data, content}``，content 仅在CSV格式时存在
        """
        if report_type not in REPORT_TYPES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid report type")
        export_format = export_format or "json"
        if export_format not in EXPORT_FORMATS:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid export format")

        if report_type == "compliance":
            data = self.get_compliance(user_id, start_date, end_date)
            rows = (
                [{"section": "policy", **row} for row in data["policy_compliance"]]
                + [{"section": "training", **row} for row in data["training_compliance"]]
            )
        elif report_type == "training_progress":
            data = self.get_training_progress(user_id)
            rows = data["progress"]
        elif report_type == "quiz_performance":
            data = self.get_quiz_performance(user_id, start_date, end_date)
            rows = data["performance"]
        else:
            data = self.get_policy_acknowledgments(user_id, start_date, end_date)
            rows = (
                [{"state": "acknowledged", **row} for row in data["acknowledged"]]
                + [{"state": "pending", **row} for row in data["pending"]]
            )

        filename = f"security_report_{report_type}_{date.today().isoformat()}.{export_format}"
        logger.info(
            "Report exported",
            extra={"user_id": user_id, "report_type": report_type, "format": export_format}
        )

        result = {"filename": filename, "format": export_format, "data": data}
        if export_format == "csv":
            result["content"] = rows_to_csv(rows)
        return result
