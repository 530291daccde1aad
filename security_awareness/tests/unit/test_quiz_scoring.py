"""服务端测验评分单元测试"""

from types import SimpleNamespace

import pytest

from security_awareness.services.quiz_service import is_answer_correct, percentage, score_answers


def make_question(question_id, points, correct, wrong=("Wrong",)):
    answers = [SimpleNamespace(answer_text=text, is_correct=True) for text in correct]
    answers += [SimpleNamespace(answer_text=text, is_correct=False) for text in wrong]
    return SimpleNamespace(id=question_id, points=points, answers=answers)


class TestPercentage:
    """百分比计算测试"""

    @pytest.mark.parametrize("score,max_score,expected", [
        (0, 0, 0),
        (5, 0, 0),
        (1, 2, 50),
        (2, 3, 67),
        (3, 3, 100),
    ])
    def test_percentage(self, score, max_score, expected):
        """测试取整与满分为0"""
        assert percentage(score, max_score) == expected


class TestScoreAnswers:
    """按分值评分测试"""

    def setup_method(self):
        """测试方法设置"""
        self.questions = [
            make_question(1, 2, ["Report it"]),
            make_question(2, 3, ["A", "B"]),
            make_question(3, None, ["Yes"]),
        ]

    def test_all_correct(self):
        """测试全部答对"""
        result = score_answers(self.questions, {"1": "Report it", "2": "B", "3": "Yes"})
        assert result == {"score": 5, "max_score": 5}

    def test_integer_keys_are_accepted(self):
        """测试整数题目ID作为键"""
        result = score_answers(self.questions, {1: "Report it"})
        assert result == {"score": 2, "max_score": 5}

    def test_unanswered_and_wrong(self):
        """测试未作答与答错不得分"""
        result = score_answers(self.questions, {"1": "Wrong"})
        assert result == {"score": 0, "max_score": 5}

    def test_list_answer_matches_any_correct_option(self):
        """测试多选答案命中任一正确选项"""
        question = self.questions[1]
        assert is_answer_correct(question, ["Wrong", "A"]) is True
        assert is_answer_correct(question, ["Wrong"]) is False
