"""测验数据访问仓储"""

from typing import Any, Dict, List, Optional

from sqlalchemy import case, desc, func
from sqlalchemy.orm import Session, selectinload

from .base import BaseRepository
from ..base import utcnow
from ..models.auth import Role
from ..models.quiz import Quiz, QuizQuestion, QuizAnswer, QuizAttempt

DIFFICULTY_ORDER = case(
    {"beginner": 1, "intermediate": 2, "advanced": 3},
    value=Quiz.difficulty,
    else_=4
)


class QuizRepository(BaseRepository[Quiz]):
    """测验仓储类"""

    def __init__(self, session: Session):
        super().__init__(session, Quiz)

    def list_for_user(
        self,
        user_id: Optional[int],
        category: str = None,
        difficulty: str = None,
        role_id: int = None,
        search: str = None
    ) -> List[Dict[str, Any]]:
        """获取启用的测验及用户的最好成绩

        Returns:
            List[Dict]: 测验字典，附带 role_name/attempted/best_score/best_result/question_count
        """
        best = (
            self.session.query(
                QuizAttempt.quiz_id.label("quiz_id"),
                func.max(QuizAttempt.score).label("best_score"),
                func.max(case((QuizAttempt.passed.is_(True), 1), else_=0)).label("best_result")
            )
            .filter(QuizAttempt.user_id == user_id, QuizAttempt.completed_at.isnot(None))
            .group_by(QuizAttempt.quiz_id)
            .subquery()
        )
        question_counts = (
            self.session.query(
                QuizQuestion.quiz_id.label("quiz_id"),
                func.count(QuizQuestion.id).label("question_count")
            )
            .group_by(QuizQuestion.quiz_id)
            .subquery()
        )

        query = (
            self.session.query(
                Quiz,
                Role.name,
                best.c.quiz_id,
                best.c.best_score,
                best.c.best_result,
                question_counts.c.question_count
            )
            .outerjoin(Role, Role.id == Quiz.role_id)
            .outerjoin(best, best.c.quiz_id == Quiz.id)
            .outerjoin(question_counts, question_counts.c.quiz_id == Quiz.id)
            .filter(Quiz.is_active.is_(True))
        )

        if category:
            query = query.filter(Quiz.category == category)
        if difficulty:
            query = query.filter(Quiz.difficulty == difficulty)
        if role_id:
            query = query.filter(Quiz.role_id == role_id)
        if search:
            query = query.filter(self.search_condition(search, ["title", "description"]))

        query = query.order_by(DIFFICULTY_ORDER, desc(Quiz.created_at), desc(Quiz.id))

        results = []
        for quiz, role_name, attempted_quiz_id, best_score, best_result, question_count in query.all():
            data = quiz.to_dict()
            data.update({
                "role_name": role_name,
                "attempted": attempted_quiz_id is not None,
                "best_score": best_score,
                "best_result": bool(best_result) if best_result is not None else None,
                "question_count": question_count or 0
            })
            results.append(data)
        return results

    def get_active(self, quiz_id: int) -> Optional[Quiz]:
        """获取启用的测验（预加载题目与选项）"""
        return (
            self.session.query(Quiz)
            .options(selectinload(Quiz.questions).selectinload(QuizQuestion.answers))
            .filter(Quiz.id == quiz_id, Quiz.is_active.is_(True))
            .first()
        )

    def get_attempts(self, user_id: int, quiz_id: int, completed_only: bool = False) -> List[QuizAttempt]:
        """获取用户对测验的作答记录，最新在前"""
        query = self.session.query(QuizAttempt).filter(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id
        )
        if completed_only:
            query = query.filter(QuizAttempt.completed_at.isnot(None))
            return query.order_by(desc(QuizAttempt.completed_at), desc(QuizAttempt.id)).all()
        return query.order_by(desc(QuizAttempt.started_at), desc(QuizAttempt.id)).all()

    def get_open_attempt(self, attempt_id: int, user_id: int, quiz_id: int) -> Optional[QuizAttempt]:
        """获取未完成的作答记录"""
        return (
            self.session.query(QuizAttempt)
            .filter(
                QuizAttempt.id == attempt_id,
                QuizAttempt.user_id == user_id,
                QuizAttempt.quiz_id == quiz_id,
                QuizAttempt.completed_at.is_(None)
            )
            .first()
        )

    def delete_incomplete_attempts(self, user_id: int, quiz_id: int = None) -> int:
        """删除未完成的作答记录

        Args:
            user_id: 用户ID，为None时不按用户过滤
            quiz_id: 测验ID，为None时不按测验过滤

        Returns:
            int: 删除的数量
        """
        query = self.session.query(QuizAttempt).filter(QuizAttempt.completed_at.is_(None))
        if user_id is not None:
            query = query.filter(QuizAttempt.user_id == user_id)
        if quiz_id is not None:
            query = query.filter(QuizAttempt.quiz_id == quiz_id)
        count = query.delete(synchronize_session=False)
        self.commit()
        return count

    def start_attempt(self, user_id: int, quiz_id: int) -> QuizAttempt:
        """创建新的作答记录"""
        attempt = QuizAttempt(user_id=user_id, quiz_id=quiz_id, started_at=utcnow())
        self.session.add(attempt)
        self.commit()
        self.session.refresh(attempt)
        return attempt

    def complete_attempt(
        self,
        attempt: QuizAttempt,
        score: int,
        max_score: int,
        passed: bool,
        time_taken: Optional[int],
        answers: Dict[str, Any]
    ) -> QuizAttempt:
        """完成作答记录"""
        attempt.completed_at = utcnow()
        attempt.score = score
        attempt.max_score = max_score
        attempt.passed = passed
        attempt.time_taken = time_taken
        attempt.answers = answers
        self.commit()
        return attempt

    def create_with_questions(self, quiz_data: Dict[str, Any], questions: List[Dict[str, Any]]) -> Quiz:
        """在同一事务中创建测验、题目与选项

        Args:
            quiz_data: 测验字段
            questions: ``[{question_text, question_type, points, answers: [{answer_text, is_correct}]}]``

        Returns:
            Quiz: 创建的测验
        """
        quiz = Quiz(**quiz_data)
        for index, question in enumerate(questions):
            quiz_question = QuizQuestion(
                question_text=question.get("question_text") or "",
                question_type=question.get("question_type") or "multiple_choice",
                points=question.get("points") or 1,
                order_index=index
            )
            for answer_index, answer in enumerate(question.get("answers") or []):
                quiz_question.answers.append(QuizAnswer(
                    answer_text=answer.get("answer_text") or "",
                    is_correct=bool(answer.get("is_correct")),
                    order_index=answer_index
                ))
            quiz.questions.append(quiz_question)

        self.session.add(quiz)
        self.commit()
        self.session.refresh(quiz)
        return quiz

    def has_attempts(self, quiz_id: int) -> bool:
        """测验是否已有作答记录"""
        return self.session.query(QuizAttempt.id).filter(QuizAttempt.quiz_id == quiz_id).first() is not None

    def deactivate(self, quiz: Quiz) -> None:
        """停用测验（软删除）"""
        quiz.is_active = False
        self.commit()
