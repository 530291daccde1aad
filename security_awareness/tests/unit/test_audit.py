"""审计日志单元测试"""

from unittest.mock import patch

from security_awareness.db.models.auth import AuditLog
from security_awareness.db.repositories.audit_repository import AuditRepository
from security_awareness.middleware.audit import write_audit_log


class TestWriteAuditLog:
    """审计写入测试"""

    def test_writes_row(self, db_session):
        """测试写入一条审计记录"""
        write_audit_log(
            1,
            "CREATE_POLICY",
            "policy",
            None,
            {"method": "POST", "path": "/api/policies", "body": {"title": "New"}, "query": {}},
            "10.0.0.1",
            "pytest"
        )

        logs = db_session.query(AuditLog).filter(AuditLog.action == "CREATE_POLICY").all()
        assert len(logs) == 1
        assert logs[0].user_id == 1
        assert logs[0].resource_type == "policy"
        assert logs[0].details["body"] == {"title": "New"}
        assert logs[0].ip_address == "10.0.0.1"
        assert logs[0].user_agent == "pytest"

    def test_failure_is_logged_not_raised(self):
        """测试写入失败只记录错误"""
        with patch(
            "security_awareness.middleware.audit.AuditRepository.create_log",
            side_effect=RuntimeError("disk full")
        ), patch("security_awareness.middleware.audit.logger") as mock_logger:
            write_audit_log(1, "DELETE_GAME", "game", "3", {}, "127.0.0.1", None)

        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.kwargs["extra"]["action"] == "DELETE_GAME"


class TestAuditDependency:
    """审计依赖测试"""

    def test_route_writes_audit_row(self, client, auth_headers, db_session):
        """测试带审计的路由写入记录"""
        response = client.put("/api/facts/1", headers=auth_headers, json={"title": "Updated fact"})
        assert response.status_code == 200

        log = db_session.query(AuditLog).filter(AuditLog.action == "UPDATE_FACT").one()
        assert log.resource_type == "security_fact"
        assert log.resource_id == "1"
        assert log.details["method"] == "PUT"
        assert log.details["body"] == {"title": "Updated fact"}
        assert log.details["status_code"] == 200

    def test_failed_route_writes_audit_row_with_status(self, client, auth_headers, db_session):
        """测试路由返回错误时仍写入审计记录并带上状态码"""
        response = client.put("/api/facts/999", headers=auth_headers, json={"title": "Missing"})
        assert response.status_code == 404

        log = db_session.query(AuditLog).filter(AuditLog.action == "UPDATE_FACT").one()
        assert log.resource_id == "999"
        assert log.details["status_code"] == 404

    def test_unauthenticated_request_writes_no_audit_row(self, client, db_session, production_mode):
        """测试生产环境认证失败时依赖未执行，不写审计记录"""
        response = client.put("/api/facts/1", json={"title": "Anonymous"})
        assert response.status_code == 401

        assert db_session.query(AuditLog).count() == 0

    def test_list_for_resource(self, client, auth_headers, db_session):
        """测试按资源查询，最新的在前"""
        client.put("/api/facts/1", headers=auth_headers, json={"title": "First"})
        client.delete("/api/facts/1", headers=auth_headers)
        client.put("/api/facts/2", headers=auth_headers, json={"title": "Other"})

        logs = AuditRepository(db_session).list_for_resource("security_fact", 1)
        assert [log.action for log in logs] == ["DELETE_FACT", "UPDATE_FACT"]
        assert len(AuditRepository(db_session).list_for_resource("security_fact")) == 3
