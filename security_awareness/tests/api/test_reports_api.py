"""报表API测试"""

from datetime import date

import pytest

CORRECT_ANSWERS = {"1": "Report it to the security team", "2": "it-support@dynarnicbiz.com"}


def complete_quiz(client, headers, time_taken=30):
    attempt_id = client.post("/api/quizzes/1/start", headers=headers).json()["attempt_id"]
    client.post(
        "/api/quizzes/1/attempt",
        headers=headers,
        json={"attempt_id": attempt_id, "answers": CORRECT_ANSWERS, "time_taken": time_taken}
    )


class TestDashboard:
    """仪表盘测试"""

    def test_empty_dashboard(self, client, auth_headers):
        """测试无任何活动时的统计"""
        data = client.get("/api/reports/dashboard", headers=auth_headers).json()["data"]

        assert data["policies"] == {"total": 3, "acknowledged": 0, "pending": 3}
        assert data["quizzes"] == {"total": 1, "completed": 0, "pending": 1}
        assert data["games"] == {"total": 1, "completed": 0, "pending": 1}
        assert data["training"] == {"total": 2, "completed": 0, "pending": 2}
        assert data["recent_activity"] == []

    def test_recent_activity(self, client, auth_headers):
        """测试最近活动描述"""
        client.post("/api/policies/1/acknowledge", headers=auth_headers)
        complete_quiz(client, auth_headers)

        data = client.get("/api/reports/dashboard", headers=auth_headers).json()["data"]
        assert data["policies"]["acknowledged"] == 1
        assert data["quizzes"]["completed"] == 1

        actions = {item["type"]: item["action"] for item in data["recent_activity"]}
        assert actions == {"policy": "Policy Acknowledged", "quiz": "Quiz Completed - Score: 2/2"}


class TestReports:
    """各类报表测试"""

    def test_compliance(self, client, auth_headers):
        """测试按分类的合规率"""
        client.post("/api/policies/1/acknowledge", headers=auth_headers)
        data = client.get("/api/reports/compliance", headers=auth_headers).json()["data"]

        assert data["period"] == {"start_date": "all", "end_date": "all"}
        first = data["policy_compliance"][0]
        assert first["category"] == "access_control"
        assert first["acknowledged_policies"] == 1
        assert first["compliance_rate"] == 100
        assert {row["category"] for row in data["training_compliance"]} == {"fundamentals", "phishing"}

    def test_compliance_date_range_keeps_categories(self, client, auth_headers):
        """测试日期范围外的确认不计入，但分类仍然列出"""
        client.post("/api/policies/1/acknowledge", headers=auth_headers)
        data = client.get(
            "/api/reports/compliance",
            headers=auth_headers,
            params={"start_date": "2000-01-01", "end_date": "2000-01-31"}
        ).json()["data"]

        assert len(data["policy_compliance"]) == 3
        assert all(row["acknowledged_policies"] == 0 for row in data["policy_compliance"])
        assert data["period"] == {"start_date": "2000-01-01", "end_date": "2000-01-31"}

    def test_training_progress(self, client, auth_headers):
        """测试培训进度报表"""
        client.post("/api/training/1/start", headers=auth_headers)
        client.post("/api/training/1/complete", headers=auth_headers, json={"total_time_spent": 25})

        data = client.get("/api/reports/training-progress", headers=auth_headers).json()["data"]
        assert data["progress"][0]["title"] == "Security Awareness Fundamentals"
        assert data["summary"]["completed"] == 1
        assert data["summary"]["total_time_spent"] == 25

    def test_quiz_performance(self, client, auth_headers):
        """测试测验成绩报表"""
        complete_quiz(client, auth_headers, time_taken=40)
        data = client.get("/api/reports/quiz-performance", headers=auth_headers).json()["data"]

        assert data["performance"][0]["passed"] is True
        assert data["performance"][0]["percentage"] == 100
        assert data["summary"] == {
            "total_attempts": 1,
            "passed_attempts": 1,
            "pass_rate": 100,
            "average_score": 100,
            "average_time": 40
        }
        assert data["by_category"][0]["category"] == "phishing"

    def test_policy_acknowledgments(self, client, auth_headers):
        """测试策略确认报表"""
        client.post("/api/policies/2/acknowledge", headers=auth_headers)
        data = client.get("/api/reports/policy-acknowledgments", headers=auth_headers).json()["data"]

        assert [row["title"] for row in data["acknowledged"]] == ["Acceptable Use Policy"]
        assert [row["title"] for row in data["pending"]] == ["Password Security Policy"]
        assert data["summary"] == {"total_acknowledged": 1, "total_pending": 1, "compliance_rate": 50}


class TestExport:
    """导出测试"""

    def test_export_csv(self, client, auth_headers):
        """测试CSV附件"""
        client.post("/api/policies/1/acknowledge", headers=auth_headers)
        response = client.post(
            "/api/reports/export",
            headers=auth_headers,
            json={"report_type": "policy_acknowledgments", "format": "csv"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        filename = f"security_report_policy_acknowledgments_{date.today().isoformat()}.csv"
        assert response.headers["content-disposition"] == f'attachment; filename="{filename}"'

        lines = response.text.strip().splitlines()
        assert lines[0].startswith("state,title,category")
        assert lines[1].startswith("acknowledged,Password Security Policy")
        assert len(lines) == 3

    def test_export_json(self, client, auth_headers):
        """测试JSON导出"""
        response = client.post("/api/reports/export", headers=auth_headers, json={"report_type": "compliance"})

        body = response.json()
        assert body["message"] == "Report exported successfully"
        assert body["filename"].endswith(".json")
        assert "policy_compliance" in body["data"]

    @pytest.mark.parametrize("payload, error", [
        ({"report_type": "everything"}, "Invalid report type"),
        ({"report_type": "compliance", "format": "xlsx"}, "Invalid export format"),
    ])
    def test_export_rejects_invalid_input(self, client, auth_headers, payload, error):
        """测试无效的报表类型与格式"""
        response = client.post("/api/reports/export", headers=auth_headers, json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": error}
