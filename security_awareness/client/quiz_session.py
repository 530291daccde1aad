"""客户端测验流程

加载测验定义并归一化题目格式，倒计时结束自动提交一次，
本地计算得分 ``round(正确数/题目数*100)`` 并与及格线比较后提交。

状态机::

    loading -> in_progress -> submitting -> scored
    loading -> errored

得分以客户端计算为准，服务端仅记录。
"""

import asyncio
import math
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from pydantic import BaseModel

from ..core.logging import get_logger
from .api_client import ApiClient, ApiError

logger = get_logger(__name__)

DEFAULT_PASSING_SCORE = 70
DEFAULT_TIME_LIMIT = 30
OPTION_KEYS = ("a", "b", "c", "d")
OPTION_LETTERS = ("A", "B", "C", "D")


class QuizState(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    SCORED = "scored"
    ERRORED = "errored"


TRANSITIONS = {
    QuizState.LOADING: {QuizState.IN_PROGRESS, QuizState.ERRORED},
    QuizState.IN_PROGRESS: {QuizState.SUBMITTING},
    QuizState.SUBMITTING: {QuizState.SCORED},
    QuizState.SCORED: set(),
    QuizState.ERRORED: set(),
}


class InvalidTransitionError(Exception):
    """非法的状态迁移"""

    def __init__(self, current: QuizState, target: QuizState):
        self.current = current
        self.target = target
        super().__init__(f"Illegal quiz state transition: {current.value} -> {target.value}")


class Question(BaseModel):
    id: Any = 0
    question: str = ""
    options: List[str] = []
    correctAnswer: int = 0
    explanation: str = ""


class QuizDefinition(BaseModel):
    id: Any
    title: str = "Quiz"
    description: str = ""
    questions: List[Question] = []
    passingScore: int = DEFAULT_PASSING_SCORE
    timeLimit: int = DEFAULT_TIME_LIMIT


class QuizResult(BaseModel):
    score: int
    passed: bool
    correct_count: int
    total_questions: int
    time_taken: int
    automatic: bool = False


def _first_present(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return default


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _correct_index(raw: Dict[str, Any]) -> int:
    if _is_int(raw.get("correctAnswer")):
        return raw["correctAnswer"]
    if _is_int(raw.get("correct_option_index")):
        return raw["correct_option_index"]
    letter = raw.get("correct_option")
    if isinstance(letter, str):
        return OPTION_LETTERS.index(letter) if letter in OPTION_LETTERS else -1
    return 0


def normalize_question(raw: Dict[str, Any]) -> Dict[str, Any]:
    """将不同来源的题目统一为 ``{id, question, options, correctAnswer, explanation}``

    已带 ``options`` 列表的题目原样保留。
    """
    if isinstance(raw.get("options"), list):
        return raw

    if isinstance(raw.get("answers"), list):
        # 接口自身返回的格式：answers[{answer_text, is_correct}]
        options = [answer.get("answer_text") or "" for answer in raw["answers"]]
        correct = next(
            (index for index, answer in enumerate(raw["answers"]) if answer.get("is_correct")),
            0
        )
    else:
        options = [
            value for value in (raw.get(f"option_{key}") for key in OPTION_KEYS)
            if isinstance(value, str) and value
        ]
        correct = _correct_index(raw)

    return {
        "id": _first_present(raw, "id", "question_id", default=0),
        "question": _first_present(raw, "question", "question_text", default=""),
        "options": options,
        "correctAnswer": correct,
        "explanation": raw.get("explanation") or ""
    }


def normalize_quiz(payload: Any, requested_id: Any) -> QuizDefinition:
    """归一化测验定义，``payload`` 可以是 ``{data: quiz}`` 或测验本身"""
    raw = payload.get("data", payload) if isinstance(payload, dict) else {}
    raw = raw if isinstance(raw, dict) else {}
    questions = raw.get("questions") if isinstance(raw.get("questions"), list) else []

    return QuizDefinition(
        id=_first_present(raw, "id", default=requested_id),
        title=_first_present(raw, "title", default="Quiz"),
        description=_first_present(raw, "description", default=""),
        questions=[normalize_question(question) for question in questions if isinstance(question, dict)],
        passingScore=_first_present(raw, "passingScore", "passing_score", default=DEFAULT_PASSING_SCORE),
        timeLimit=_first_present(raw, "timeLimit", "time_limit", default=DEFAULT_TIME_LIMIT)
    )


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_score(questions: List[Question], answers: Dict[int, int]) -> Dict[str, int]:
    """按题目下标比较选项下标，返回百分制得分与正确数"""
    correct = sum(
        1 for index, question in enumerate(questions)
        if answers.get(index) == question.correctAnswer
    )
    total = len(questions)
    score = round_half_up(correct / total * 100) if total else 0
    return {"score": score, "correct_count": correct, "total_questions": total}


class QuizSession:
    """一次测验作答过程"""

    def __init__(
        self,
        client: ApiClient,
        quiz_id: Any,
        *,
        tick_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.client = client
        self.quiz_id = quiz_id
        self.state = QuizState.LOADING
        self.quiz: Optional[QuizDefinition] = None
        self.attempt_id: Optional[int] = None
        self.answers: Dict[int, int] = {}
        self.time_left = 0
        self.result: Optional[QuizResult] = None
        self.error: Optional[Exception] = None
        self._tick_seconds = tick_seconds
        self._sleep = sleep
        self._timer: Optional[asyncio.Task] = None

    def _transition(self, target: QuizState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        logger.debug(
            "Quiz state changed",
            extra={"quiz_id": self.quiz_id, "from": self.state.value, "to": target.value}
        )
        self.state = target

    async def load(self) -> QuizDefinition:
        """获取并归一化测验定义，然后开始作答

        Raises:
            ApiError: 获取失败（会话进入 errored 状态）
        """
        try:
            payload = await self.client.quizzes.get(self.quiz_id)
        except (ApiError, httpx.HTTPError) as e:
            self.error = e
            self._transition(QuizState.ERRORED)
            logger.error("Failed to load quiz", extra={"quiz_id": self.quiz_id, "error": str(e)})
            raise

        self.quiz = normalize_quiz(payload, self.quiz_id)
        try:
            started = await self.client.quizzes.start(self.quiz_id)
            self.attempt_id = started.get("attempt_id")
        except (ApiError, httpx.HTTPError) as e:
            logger.warning("Failed to start quiz attempt", extra={"quiz_id": self.quiz_id, "error": str(e)})

        self.time_left = self.quiz.timeLimit * 60
        self._transition(QuizState.IN_PROGRESS)
        return self.quiz

    def select(self, question_index: int, option_index: int) -> None:
        """记录某题的选项"""
        if self.state != QuizState.IN_PROGRESS:
            return
        self.answers[question_index] = option_index

    def start_timer(self) -> asyncio.Task:
        """启动倒计时任务，归零时自动提交"""
        if self._timer is None:
            self._timer = asyncio.create_task(self._countdown())
        return self._timer

    async def _countdown(self) -> None:
        while self.state == QuizState.IN_PROGRESS:
            if self.time_left <= 0:
                await self._submit(automatic=True)
                return
            await self._sleep(self._tick_seconds)
            self.time_left -= 1

    async def submit(self) -> Optional[QuizResult]:
        """手动提交；非作答状态下忽略"""
        return await self._submit(automatic=False)

    async def _submit(self, automatic: bool) -> Optional[QuizResult]:
        if self.state != QuizState.IN_PROGRESS:
            return None
        self._transition(QuizState.SUBMITTING)

        if not automatic and self._timer is not None and not self._timer.done():
            self._timer.cancel()

        scored = compute_score(self.quiz.questions, self.answers)
        passed = scored["score"] >= (self.quiz.passingScore or DEFAULT_PASSING_SCORE)
        time_taken = max(self.quiz.timeLimit * 60 - self.time_left, 0)
        self.result = QuizResult(passed=passed, time_taken=time_taken, automatic=automatic, **scored)

        try:
            await self.client.quizzes.submit(self.quiz_id, self._submission_payload())
        except (ApiError, httpx.HTTPError) as e:
            logger.error(
                "Error submitting quiz",
                extra={"quiz_id": self.quiz_id, "error": str(e), "automatic": automatic}
            )

        self._transition(QuizState.SCORED)
        return self.result

    def _submission_payload(self) -> Dict[str, Any]:
        # 按题目ID提交选项文本，供服务端记录与评分
        responses = {}
        for index, option_index in self.answers.items():
            if 0 <= index < len(self.quiz.questions):
                question = self.quiz.questions[index]
                if 0 <= option_index < len(question.options):
                    responses[str(question.id)] = question.options[option_index]

        return {
            "quizId": self.quiz_id,
            "attempt_id": self.attempt_id,
            "score": self.result.score,
            "passed": self.result.passed,
            "answers": responses,
            "time_taken": self.result.time_taken
        }
