"""客户端测验流程单元测试"""

import asyncio
import json

import httpx
import pytest

from security_awareness.client.api_client import ApiClient, ApiError
from security_awareness.client.quiz_session import (
    InvalidTransitionError,
    Question,
    QuizSession,
    QuizState,
    compute_score,
    normalize_question,
    normalize_quiz,
    round_half_up
)


def api_quiz(time_limit=0, passing_score=70):
    return {
        "success": True,
        "data": {
            "id": 1,
            "title": "Phishing Basics",
            "description": "Spot the phish",
            "passing_score": passing_score,
            "time_limit": time_limit,
            "questions": [
                {
                    "id": 11,
                    "question_text": "Unexpected reset email?",
                    "answers": [
                        {"answer_text": "Click it", "is_correct": False},
                        {"answer_text": "Report it", "is_correct": True},
                    ]
                },
                {
                    "id": 12,
                    "question_text": "Spoofed sender?",
                    "answers": [
                        {"answer_text": "dynarnicbiz.com", "is_correct": True},
                        {"answer_text": "dynamicbiz.com", "is_correct": False},
                    ]
                },
            ]
        }
    }


class FakeBackend:
    """记录请求的模拟后端"""

    def __init__(self, quiz_payload=None, quiz_status=200, start_status=200):
        self.quiz_payload = quiz_payload or api_quiz()
        self.quiz_status = quiz_status
        self.start_status = start_status
        self.submissions = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == "/api/quizzes/1":
            return httpx.Response(self.quiz_status, json=self.quiz_payload)
        if request.method == "POST" and path == "/api/quizzes/1/start":
            return httpx.Response(self.start_status, json={"success": True, "attempt_id": 42})
        if request.method == "POST" and path == "/api/quizzes/1/attempt":
            self.submissions.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"error": "Route not found", "path": path})

    def client(self) -> ApiClient:
        return ApiClient("http://test/api", transport=httpx.MockTransport(self.handler))


async def fast_sleep(_seconds):
    await asyncio.sleep(0)


async def blocking_sleep(_seconds):
    await asyncio.Event().wait()


class TestNormalizeQuestion:
    """题目格式归一化测试"""

    def test_options_list_is_kept(self):
        """测试已是标准格式的题目原样保留"""
        raw = {"id": 1, "question": "Q", "options": ["a", "b"], "correctAnswer": 1, "explanation": ""}
        assert normalize_question(raw) is raw

    def test_api_answers_shape(self):
        """测试接口返回的 answers 格式"""
        normalized = normalize_question(api_quiz()["data"]["questions"][0])

        assert normalized["id"] == 11
        assert normalized["question"] == "Unexpected reset email?"
        assert normalized["options"] == ["Click it", "Report it"]
        assert normalized["correctAnswer"] == 1

    @pytest.mark.parametrize("extra,expected", [
        ({"correct_option": "C"}, 2),
        ({"correct_option": "Z"}, -1),
        ({"correct_option_index": 1}, 1),
        ({"correctAnswer": 3}, 3),
        ({}, 0),
    ])
    def test_lettered_options(self, extra, expected):
        """测试 option_a..option_d 格式与正确答案字段"""
        raw = {
            "question_id": 5,
            "question_text": "Which?",
            "option_a": "first",
            "option_b": "second",
            "option_c": "third",
            "option_d": "",
            **extra
        }
        normalized = normalize_question(raw)

        assert normalized["id"] == 5
        assert normalized["options"] == ["first", "second", "third"]
        assert normalized["correctAnswer"] == expected

    def test_normalize_quiz_defaults(self):
        """测试缺失字段的默认值"""
        quiz = normalize_quiz({"data": {"questions": "oops"}}, requested_id=9)

        assert quiz.id == 9
        assert quiz.title == "Quiz"
        assert quiz.questions == []
        assert quiz.passingScore == 70
        assert quiz.timeLimit == 30

    def test_normalize_quiz_without_envelope(self):
        """测试未包裹 data 的测验定义"""
        quiz = normalize_quiz({"id": 3, "title": "Bare", "timeLimit": 5, "passingScore": 80}, requested_id=3)
        assert (quiz.title, quiz.timeLimit, quiz.passingScore) == ("Bare", 5, 80)


class TestComputeScore:
    """客户端评分测试"""

    def test_round_half_up(self):
        """测试0.5向上取整"""
        assert round_half_up(12.5) == 13
        assert round_half_up(66.6666) == 67
        assert round_half_up(0.4) == 0

    def test_score_by_option_index(self):
        """测试按题目下标比较选项"""
        questions = [Question(options=["a", "b"], correctAnswer=1) for _ in range(8)]
        result = compute_score(questions, {0: 1, 1: 0})

        assert result == {"score": 13, "correct_count": 1, "total_questions": 8}

    def test_no_questions(self):
        """测试没有题目时得分为0"""
        assert compute_score([], {}) == {"score": 0, "correct_count": 0, "total_questions": 0}


class TestQuizSession:
    """测验状态机测试"""

    @pytest.mark.asyncio
    async def test_load_starts_attempt(self):
        """测试加载后进入作答状态并记录作答ID"""
        backend = FakeBackend(api_quiz(time_limit=2))
        async with backend.client() as client:
            session = QuizSession(client, 1)
            quiz = await session.load()

        assert session.state == QuizState.IN_PROGRESS
        assert session.attempt_id == 42
        assert session.time_left == 120
        assert len(quiz.questions) == 2

    @pytest.mark.asyncio
    async def test_load_failure_enters_errored(self):
        """测试获取失败进入 errored 状态"""
        backend = FakeBackend(quiz_payload={"error": "Quiz not found"}, quiz_status=404)
        async with backend.client() as client:
            session = QuizSession(client, 1)
            with pytest.raises(ApiError) as exc_info:
                await session.load()

        assert exc_info.value.status_code == 404
        assert session.state == QuizState.ERRORED
        assert await session.submit() is None

    @pytest.mark.asyncio
    async def test_start_failure_is_not_fatal(self):
        """测试开始作答失败时仍可作答"""
        backend = FakeBackend(api_quiz(time_limit=2), start_status=500)
        async with backend.client() as client:
            session = QuizSession(client, 1)
            await session.load()

        assert session.state == QuizState.IN_PROGRESS
        assert session.attempt_id is None

    @pytest.mark.asyncio
    async def test_manual_submit(self):
        """测试手动提交的评分与提交内容"""
        backend = FakeBackend(api_quiz(time_limit=2))
        async with backend.client() as client:
            session = QuizSession(client, 1)
            await session.load()
            session.select(0, 1)
            session.select(1, 1)
            result = await session.submit()

        assert session.state == QuizState.SCORED
        assert result.score == 50
        assert result.passed is False
        assert result.correct_count == 1
        assert result.automatic is False
        assert backend.submissions == [{
            "quizId": 1,
            "attempt_id": 42,
            "score": 50,
            "passed": False,
            "answers": {"11": "Report it", "12": "dynamicbiz.com"},
            "time_taken": 0
        }]

    @pytest.mark.asyncio
    async def test_zero_passing_score_falls_back_to_default(self):
        """测试及格线为0时按70判定"""
        backend = FakeBackend(api_quiz(time_limit=2, passing_score=0))
        async with backend.client() as client:
            session = QuizSession(client, 1)
            await session.load()
            session.select(0, 1)
            result = await session.submit()

        assert result.score == 50
        assert result.passed is False

    @pytest.mark.asyncio
    async def test_timer_auto_submits_once(self):
        """测试倒计时归零只自动提交一次"""
        backend = FakeBackend(api_quiz(time_limit=1))
        async with backend.client() as client:
            session = QuizSession(client, 1, sleep=fast_sleep)
            await session.load()
            session.select(0, 1)
            session.select(1, 0)
            await session.start_timer()

            assert session.state == QuizState.SCORED
            assert session.result.automatic is True
            assert session.result.passed is True
            assert session.result.time_taken == 60

            assert await session.submit() is None

        assert len(backend.submissions) == 1
        assert backend.submissions[0]["score"] == 100

    @pytest.mark.asyncio
    async def test_zero_time_limit_submits_immediately(self):
        """测试时限为0时立即自动提交"""
        backend = FakeBackend(api_quiz(time_limit=0))
        async with backend.client() as client:
            session = QuizSession(client, 1, sleep=fast_sleep)
            await session.load()
            await session.start_timer()

        assert session.state == QuizState.SCORED
        assert session.result.automatic is True
        assert session.result.score == 0
        assert len(backend.submissions) == 1

    @pytest.mark.asyncio
    async def test_manual_submit_cancels_timer(self):
        """测试手动提交取消倒计时"""
        backend = FakeBackend(api_quiz(time_limit=5))
        async with backend.client() as client:
            session = QuizSession(client, 1, sleep=blocking_sleep)
            await session.load()
            timer = session.start_timer()
            await asyncio.sleep(0)

            await session.submit()
            with pytest.raises(asyncio.CancelledError):
                await timer

        assert timer.cancelled()
        assert len(backend.submissions) == 1

    @pytest.mark.asyncio
    async def test_select_ignored_after_scoring(self):
        """测试提交后不再记录选项"""
        backend = FakeBackend(api_quiz(time_limit=2))
        async with backend.client() as client:
            session = QuizSession(client, 1)
            await session.load()
            await session.submit()
            session.select(0, 1)

        assert session.answers == {}

    def test_illegal_transition(self):
        """测试非法状态迁移"""
        session = QuizSession(client=None, quiz_id=1)
        with pytest.raises(InvalidTransitionError):
            session._transition(QuizState.SCORED)
