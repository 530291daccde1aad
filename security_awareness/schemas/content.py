"""策略、测验、游戏、培训与安全知识的请求模式"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class PolicyCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    version: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    effective_date: Optional[date] = None
    expiry_date: Optional[date] = None


class PolicyUpdate(PolicyCreate):
    pass


class PolicyAcknowledge(BaseModel):
    """确认请求；未提供时取自请求本身"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class QuizAnswerIn(BaseModel):
    answer_text: Optional[str] = None
    is_correct: bool = False


class QuizQuestionIn(BaseModel):
    question_text: Optional[str] = None
    question_type: Optional[str] = None
    points: Optional[int] = None
    answers: List[QuizAnswerIn] = []


class QuizCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    role_id: Optional[int] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    time_limit: Optional[int] = None
    passing_score: Optional[int] = None
    questions: List[QuizQuestionIn] = []


class QuizUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    role_id: Optional[int] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    time_limit: Optional[int] = None
    passing_score: Optional[int] = None
    is_active: Optional[bool] = None


class QuizSubmission(BaseModel):
    """测验提交；score/passed 为客户端本地结果，仅作记录"""
    attempt_id: Optional[int] = None
    answers: Dict[str, Any] = {}
    time_taken: Optional[int] = None
    score: Optional[int] = None
    passed: Optional[bool] = None


class GameCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    game_type: Optional[str] = None
    role_id: Optional[int] = None
    difficulty: Optional[str] = None
    instructions: Optional[str] = None
    game_data: Optional[Any] = None


class GameUpdate(GameCreate):
    is_active: Optional[bool] = None


class GameSubmission(BaseModel):
    attempt_id: Optional[int] = None
    score: Optional[int] = None
    max_score: Optional[int] = None
    time_taken: Optional[int] = None
    game_result: Optional[Any] = None


class TrainingCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    role_id: Optional[int] = None
    category: Optional[str] = None
    content_type: Optional[str] = None
    content_url: Optional[str] = None
    duration: Optional[int] = None
    prerequisites: Optional[List[int]] = None


class TrainingUpdate(TrainingCreate):
    is_active: Optional[bool] = None


class TrainingProgressUpdate(BaseModel):
    progress_percentage: Optional[int] = None
    time_spent: Optional[int] = None


class TrainingCompletion(BaseModel):
    final_progress: Optional[int] = None
    total_time_spent: Optional[int] = None


class FactCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    role_id: Optional[int] = None
    priority: Optional[str] = None


class FactUpdate(FactCreate):
    is_active: Optional[bool] = None


class ReportExport(BaseModel):
    report_type: Optional[str] = None
    format: Optional[str] = "json"
    start_date: Optional[str] = None
    end_date: Optional[str] = None

