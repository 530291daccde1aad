"""测验数据模型"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship

from ..base import BaseModel, utcnow

DIFFICULTIES = ("beginner", "intermediate", "advanced")
QUESTION_TYPES = ("multiple_choice", "true_false", "fill_blank")


class Quiz(BaseModel):
    """测验模型"""
    __tablename__ = "quizzes"

    title = Column(String(255), nullable=False, comment="标题")
    description = Column(Text, comment="描述")
    role_id = Column(Integer, ForeignKey("roles.id"), comment="目标角色ID")
    category = Column(String(100), nullable=False, index=True, comment="分类")
    difficulty = Column(String(20), default="beginner", comment="难度")
    time_limit = Column(Integer, default=0, comment="时间限制（分钟）")
    passing_score = Column(Integer, default=70, comment="及格分数")
    is_active = Column(Boolean, default=True, nullable=False, comment="是否启用")

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.order_index",
        cascade="all, delete-orphan"
    )
    attempts = relationship("QuizAttempt", back_populates="quiz", cascade="all, delete-orphan")


class QuizQuestion(BaseModel):
    """测验题目"""
    __tablename__ = "quiz_questions"

    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True, comment="测验ID")
    question_text = Column(Text, nullable=False, comment="题干")
    question_type = Column(String(20), default="multiple_choice", comment="题型")
    points = Column(Integer, default=1, comment="分值")
    order_index = Column(Integer, default=0, comment="排序")

    quiz = relationship("Quiz", back_populates="questions")
    answers = relationship(
        "QuizAnswer",
        back_populates="question",
        order_by="QuizAnswer.order_index",
        cascade="all, delete-orphan"
    )


class QuizAnswer(BaseModel):
    """题目选项"""
    __tablename__ = "quiz_answers"

    question_id = Column(Integer, ForeignKey("quiz_questions.id"), nullable=False, index=True, comment="题目ID")
    answer_text = Column(Text, nullable=False, comment="选项文本")
    is_correct = Column(Boolean, default=False, nullable=False, comment="是否正确")
    order_index = Column(Integer, default=0, comment="排序")

    question = relationship("QuizQuestion", back_populates="answers")


class QuizAttempt(BaseModel):
    """测验作答记录"""
    __tablename__ = "quiz_attempts"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="用户ID")
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True, comment="测验ID")
    started_at = Column(DateTime, default=utcnow, nullable=False, comment="开始时间")
    completed_at = Column(DateTime, comment="完成时间")
    score = Column(Integer, comment="得分")
    max_score = Column(Integer, comment="满分")
    passed = Column(Boolean, comment="是否通过")
    time_taken = Column(Integer, comment="用时（秒）")
    answers = Column(JSON, comment="提交的答案")

    quiz = relationship("Quiz", back_populates="attempts")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
