"""测验服务

服务端评分：答案与正确选项文本一致时计入该题分值，
通过判定使用百分比与 passing_score 比较。
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.logging import get_logger
from ..db.models.auth import Role
from ..db.models.quiz import Quiz, QuizQuestion
from ..db.repositories.quiz_repository import QuizRepository
from ..middleware.auth import RequestContext

logger = get_logger(__name__)

DEFAULT_PASSING_SCORE = 70


def percentage(score: int, max_score: int) -> int:
    """得分百分比，满分为0时返回0"""
    if not max_score:
        return 0
    return round(score / max_score * 100)


def is_answer_correct(question: QuizQuestion, submitted: Any) -> bool:
    """提交的答案是否命中任一正确选项

    Args:
        question: 题目
        submitted: 答案文本或答案文本列表
    """
    correct_texts = [answer.answer_text for answer in question.answers if answer.is_correct]
    if isinstance(submitted, list):
        return any(text in submitted for text in correct_texts)
    return submitted in correct_texts


def score_answers(questions: List[QuizQuestion], answers: Dict[str, Any]) -> Dict[str, int]:
    """按题目分值计算得分

    Args:
        questions: 题目列表
        answers: 题目ID（字符串或整数）到答案的映射

    Returns:
        Dict: ``{score, max_score}``
    """
    score = 0
    max_score = 0
    for question in questions:
        points = question.points or 0
        max_score += points
        submitted = answers.get(str(question.id), answers.get(question.id))
        if submitted and is_answer_correct(question, submitted):
            score += points
    return {"score": score, "max_score": max_score}


class QuizService:
    """测验服务类"""

    def __init__(self, db: Session):
        self.db = db
        self.quizzes = QuizRepository(db)

    def _get_active_or_404(self, quiz_id: int, detail: str = "Quiz not found") -> Quiz:
        quiz = self.quizzes.get_active(quiz_id)
        if quiz is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
        return quiz

    def get_quiz_detail(self, quiz_id: int, user_id: int) -> Dict[str, Any]:
        """测验详情：题目、选项与用户的历史作答"""
        quiz = self._get_active_or_404(quiz_id)
        role = self.db.get(Role, quiz.role_id) if quiz.role_id else None

        data = quiz.to_dict()
        data["role_name"] = role.name if role else None
        data["questions"] = [
            {**question.to_dict(), "answers": [answer.to_dict() for answer in question.answers]}
            for question in quiz.questions
        ]
        data["previous_attempts"] = [
            attempt.to_dict() for attempt in self.quizzes.get_attempts(user_id, quiz_id)
        ]
        return data

    def start_quiz(self, quiz_id: int, user_id: int) -> int:
        """开始测验，清除用户在该测验上未完成的作答

        Returns:
            int: 新作答记录ID
        """
        self._get_active_or_404(quiz_id, "Quiz not found or inactive")
        cleared = self.quizzes.delete_incomplete_attempts(user_id, quiz_id)
        if cleared:
            logger.info(
                "Cleared incomplete quiz attempts",
                extra={"user_id": user_id, "quiz_id": quiz_id, "count": cleared}
            )
        return self.quizzes.start_attempt(user_id, quiz_id).id

    def submit_quiz(
        self,
        quiz_id: int,
        user_id: int,
        attempt_id: Optional[int],
        answers: Optional[Dict[str, Any]],
        time_taken: Optional[int],
        client_score: Optional[int] = None,
        client_passed: Optional[bool] = None
    ) -> Dict[str, Any]:
        """提交作答并评分

        Returns:
            Dict: ``{score, max_score, percentage, passed, time_taken}``
        """
        attempt = None
        if attempt_id is not None:
            attempt = self.quizzes.get_open_attempt(attempt_id, user_id, quiz_id)
        if attempt is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or completed attempt")

        quiz = self.quizzes.get_by_id(quiz_id)
        answers = answers or {}
        result = score_answers(quiz.questions, answers)
        pct = percentage(result["score"], result["max_score"])
        passing_score = quiz.passing_score if quiz.passing_score is not None else DEFAULT_PASSING_SCORE
        passed = pct >= passing_score

        stored_answers = {"responses": answers}
        if client_score is not None or client_passed is not None:
            # 仅作记录，不参与评分
            stored_answers["client_result"] = {"score": client_score, "passed": client_passed}

        self.quizzes.complete_attempt(attempt, result["score"], result["max_score"], passed, time_taken, stored_answers)
        logger.info(
            "Quiz submitted",
            extra={"user_id": user_id, "quiz_id": quiz_id, "score": result["score"], "passed": passed}
        )

        return {
            "score": result["score"],
            "max_score": result["max_score"],
            "percentage": pct,
            "passed": passed,
            "time_taken": time_taken
        }

    def get_results(self, quiz_id: int, user_id: int) -> Dict[str, Any]:
        """用户在测验上的已完成作答"""
        attempts = self.quizzes.get_attempts(user_id, quiz_id, completed_only=True)
        if not attempts:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No completed attempts found")

        quiz = self.quizzes.get_by_id(quiz_id)
        return {
            "quiz": quiz.to_dict() if quiz else None,
            "attempts": [attempt.to_dict() for attempt in attempts],
            "best_score": max(attempt.score or 0 for attempt in attempts),
            "total_attempts": len(attempts)
        }

    def clear_incomplete(self, user_id: int) -> int:
        """清除用户全部未完成作答（仅开发环境）"""
        if not settings.is_development:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="This endpoint is only available in development mode"
            )
        return self.quizzes.delete_incomplete_attempts(user_id)

    def create_quiz(self, data: Dict[str, Any], current_user: RequestContext) -> Quiz:
        """创建测验及其题目

        标题和分类必填；生产环境下 role_id 也必填，其他环境缺省为调用者角色或1。
        """
        role_id = data.get("role_id")
        if not data.get("title") or not data.get("category") or (not role_id and settings.is_production):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Title, role_id, and category are required"
            )

        quiz_data = {
            "title": data["title"],
            "description": data.get("description"),
            "role_id": role_id or current_user.role_id or 1,
            "category": data["category"],
            "difficulty": data.get("difficulty") or "beginner",
            "time_limit": data.get("time_limit") or 0,
            "passing_score": data.get("passing_score") or DEFAULT_PASSING_SCORE
        }
        questions = data.get("questions") if isinstance(data.get("questions"), list) else []
        quiz = self.quizzes.create_with_questions(quiz_data, questions)
        logger.info("Quiz created", extra={"quiz_id": quiz.id, "created_by": current_user.id})
        return quiz

    def update_quiz(self, quiz_id: int, data: Dict[str, Any]) -> Quiz:
        """部分更新测验字段"""
        quiz = self.quizzes.get_by_id(quiz_id)
        if quiz is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
        return self.quizzes.update(quiz_id, **data)

    def delete_quiz(self, quiz_id: int) -> bool:
        """删除测验：已有作答时停用，否则物理删除

        Returns:
            bool: 是否为软删除
        """
        quiz = self.quizzes.get_by_id(quiz_id)
        if quiz is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")

        if self.quizzes.has_attempts(quiz_id):
            self.quizzes.deactivate(quiz)
            return True

        self.quizzes.delete(quiz_id)
        return False
