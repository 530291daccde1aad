"""数据库管理器单元测试"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from security_awareness.db.connection import db_manager
from security_awareness.db.models.fact import SecurityFact


class TestExecuteQuery:
    """参数化查询测试"""

    def test_missing_params_bind_as_null(self):
        """测试未提供的命名参数按NULL绑定"""
        rows = db_manager.execute_query("SELECT :value IS NULL AS is_null, :other AS other", {"other": 5})
        assert rows == [{"is_null": 1, "other": 5}]

    def test_write_returns_affected_rows(self):
        result = db_manager.execute_query(
            "UPDATE security_facts SET priority = :priority WHERE category = :category",
            {"priority": "low", "category": "phishing"}
        )
        assert result["affected_rows"] == 1

    def test_error_is_logged_and_raised(self):
        """测试查询错误记录日志后重新抛出"""
        with patch("security_awareness.db.connection.logger") as mock_logger:
            with pytest.raises(OperationalError):
                db_manager.execute_query("SELECT * FROM no_such_table")

        mock_logger.error.assert_called_once()


class TestTransactions:
    """事务测试"""

    def test_execute_transaction(self, db_session):
        """测试多条语句在同一事务中执行"""
        results = db_manager.execute_transaction([
            ("UPDATE security_facts SET priority = 'low' WHERE id = :id", {"id": 1}),
            ("SELECT COUNT(*) AS total FROM security_facts WHERE priority = 'low'", None)
        ])

        assert results[0]["affected_rows"] == 1
        assert results[1] == [{"total": 2}]

    def test_execute_transaction_rolls_back(self, db_session):
        """测试任一语句失败时整体回滚"""
        with patch("security_awareness.db.connection.logger"):
            with pytest.raises(OperationalError):
                db_manager.execute_transaction([
                    ("UPDATE security_facts SET title = 'changed' WHERE id = 1", None),
                    ("UPDATE no_such_table SET x = 1", None)
                ])

        assert db_session.get(SecurityFact, 1).title == "Phishing is the top attack vector"

    def test_transaction_context_rolls_back(self, db_session):
        with pytest.raises(RuntimeError):
            with db_manager.transaction() as session:
                session.get(SecurityFact, 2).title = "changed"
                session.flush()
                raise RuntimeError("abort")

        assert db_session.get(SecurityFact, 2).title == "Use a password manager"


class TestConnectionCheck:
    """连接检查测试"""

    def test_connection_ok(self):
        assert db_manager.test_connection() is True

    def test_connection_failure_returns_false(self):
        """测试连接失败时返回False并记录错误"""
        error = OperationalError("SELECT 1", {}, Exception("server has gone away"))
        with patch.object(db_manager, "get_engine", side_effect=error), \
                patch("security_awareness.db.connection.logger") as mock_logger:
            assert db_manager.test_connection() is False

        mock_logger.error.assert_called_once()
