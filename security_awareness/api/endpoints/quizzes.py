"""测验API端点"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...db.connection import get_db
from ...db.repositories.quiz_repository import QuizRepository
from ...middleware.audit import audit_log
from ...middleware.auth import RequestContext, get_current_user
from ...schemas.content import QuizCreate, QuizSubmission, QuizUpdate
from ...services.quiz_service import QuizService
from ..deps import endpoint_errors, listing, success
from ..realtime import manager

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


@router.get("")
async def get_quizzes(
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
    role_id: Optional[int] = None,
    search: Optional[str] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """获取测验列表，按难度与创建时间排序"""
    with endpoint_errors("Failed to retrieve quizzes"):
        quizzes = QuizRepository(db).list_for_user(current_user.id, category, difficulty, role_id, search)
        return listing(quizzes)


# 必须在 /{id} 之前注册
@router.delete("/clear-incomplete", dependencies=[Depends(audit_log("CLEAR_INCOMPLETE_ATTEMPTS", "quiz"))])
async def clear_incomplete_attempts(
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """清除当前用户全部未完成作答（仅开发环境）"""
    with endpoint_errors("Failed to clear incomplete attempts"):
        cleared = QuizService(db).clear_incomplete(current_user.id)
        return success(message=f"Cleared {cleared} incomplete attempts", cleared_count=cleared)


@router.get("/{id}")
async def get_quiz(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve quiz"):
        return success(QuizService(db).get_quiz_detail(id, current_user.id))


@router.post("/{id}/start", dependencies=[Depends(audit_log("START_QUIZ", "quiz"))])
async def start_quiz(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to start quiz"):
        attempt_id = QuizService(db).start_quiz(id, current_user.id)
        return success(message="Quiz started successfully", attempt_id=attempt_id)


@router.post("/{id}/attempt", dependencies=[Depends(audit_log("SUBMIT_QUIZ", "quiz"))])
async def submit_quiz(
    id: int,
    payload: QuizSubmission,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """提交作答，服务端评分后通知同角色房间"""
    with endpoint_errors("Failed to submit quiz"):
        result = QuizService(db).submit_quiz(
            id,
            current_user.id,
            payload.attempt_id,
            payload.answers,
            payload.time_taken,
            client_score=payload.score,
            client_passed=payload.passed
        )
        await manager.emit_to_room(current_user.role, "quiz-update", {
            "quiz_id": id,
            "user_id": current_user.id,
            "username": current_user.username,
            "role": current_user.role,
            **result
        })
        return success(result, "Quiz submitted successfully")


@router.get("/{id}/results")
async def get_quiz_results(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve quiz results"):
        return success(QuizService(db).get_results(id, current_user.id))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audit_log("CREATE_QUIZ", "quiz"))]
)
async def create_quiz(
    payload: QuizCreate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """创建测验，可同时创建题目与选项"""
    with endpoint_errors("Failed to create quiz"):
        quiz = QuizService(db).create_quiz(payload.model_dump(), current_user)
        return success(message="Quiz created successfully", quiz_id=quiz.id)


@router.put("/{id}", dependencies=[Depends(audit_log("UPDATE_QUIZ", "quiz"))])
async def update_quiz(
    id: int,
    payload: QuizUpdate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to update quiz"):
        QuizService(db).update_quiz(id, payload.model_dump(exclude_none=True))
        return success(message="Quiz updated successfully")


@router.delete("/{id}", dependencies=[Depends(audit_log("DELETE_QUIZ", "quiz"))])
async def delete_quiz(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """删除测验：已有作答时停用"""
    with endpoint_errors("Failed to delete quiz"):
        soft = QuizService(db).delete_quiz(id)
        message = "Quiz deactivated successfully" if soft else "Quiz deleted successfully"
        return success(message=message)
