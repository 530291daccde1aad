"""报表与偏好合并的单元测试"""

import pytest

from security_awareness.services.profile_service import DEFAULT_PREFERENCES, merge_preferences
from security_awareness.services.report_service import _date_filter, describe_activity, rows_to_csv


class TestReportHelpers:
    """报表辅助函数测试"""

    def test_rows_to_csv_uses_union_of_keys(self):
        """测试表头为所有行键的并集，缺失值留空"""
        content = rows_to_csv([
            {"state": "acknowledged", "title": "A"},
            {"state": "pending", "title": "B", "id": 2}
        ])

        assert content.splitlines() == ["state,title,id", "acknowledged,A,", "pending,B,2"]

    def test_rows_to_csv_quotes_values(self):
        """测试包含逗号的值被引用"""
        content = rows_to_csv([{"title": "Clean desk, clear screen"}])
        assert content.splitlines()[1] == '"Clean desk, clear screen"'

    def test_rows_to_csv_empty(self):
        assert rows_to_csv([]).strip() == ""

    @pytest.mark.parametrize("row, expected", [
        ({"type": "policy", "score": None, "max_score": None}, "Policy Acknowledged"),
        ({"type": "quiz", "score": 3, "max_score": 4}, "Quiz Completed - Score: 3/4"),
        ({"type": "game", "score": 0, "max_score": 10}, "Game Completed - Score: 0/10"),
        ({"type": "training", "max_score": None}, "Training Completed"),
    ])
    def test_describe_activity(self, row, expected):
        """测试活动描述"""
        assert describe_activity(row) == expected

    def test_date_filter_requires_both_dates(self):
        """测试只提供一个日期时不过滤"""
        assert _date_filter("qa.completed_at", "2024-01-01", None) == ("", {})

        clause, params = _date_filter("qa.completed_at", "2024-01-01", "2024-01-31")
        assert clause == " AND DATE(qa.completed_at) BETWEEN :start_date AND :end_date"
        assert params == {"start_date": "2024-01-01", "end_date": "2024-01-31"}


class TestMergePreferences:
    """偏好合并测试"""

    def test_nested_merge(self):
        merged = merge_preferences(DEFAULT_PREFERENCES, {"notifications": {"push": False}, "theme": "dark"})

        assert merged["notifications"] == {"email": True, "push": False, "sms": False}
        assert merged["theme"] == "dark"

    def test_defaults_are_not_mutated(self):
        """测试合并不修改默认值"""
        merge_preferences(DEFAULT_PREFERENCES, {"notifications": {"email": False}})
        assert DEFAULT_PREFERENCES["notifications"]["email"] is True

    def test_non_dict_value_replaces(self):
        merged = merge_preferences({"notifications": {"email": True}}, {"notifications": "off"})
        assert merged == {"notifications": "off"}
