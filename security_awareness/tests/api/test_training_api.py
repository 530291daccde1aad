"""培训模块API测试"""

from security_awareness.db.models.training import TrainingModule, TrainingProgress


class TestTrainingFlow:
    """培训流程测试"""

    def test_list_modules(self, client, auth_headers):
        """测试模块列表附带进度字段"""
        data = client.get("/api/training", headers=auth_headers).json()

        assert data["count"] == 2
        assert [module["category"] for module in data["data"]] == ["fundamentals", "phishing"]
        assert data["data"][0]["status"] is None
        assert data["data"][0]["role_name"] == "enduser"

    def test_module_detail_lists_prerequisites(self, client, auth_headers):
        """测试详情包含前置模块"""
        module = client.get("/api/training/2", headers=auth_headers).json()["data"]

        assert module["progress"] is None
        assert module["prerequisites"] == [
            {"id": 1, "title": "Security Awareness Fundamentals", "category": "fundamentals"}
        ]

    def test_prerequisites_must_be_completed(self, client, auth_headers):
        """测试前置模块未完成时不能开始"""
        response = client.post("/api/training/2/start", headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {
            "error": "Prerequisites not completed",
            "incomplete_prerequisites": [1]
        }

    def test_full_flow(self, client, auth_headers, db_session):
        """测试开始、更新进度、完成后可开始下一模块"""
        started = client.post("/api/training/1/start", headers=auth_headers)
        assert started.status_code == 200
        assert started.json()["message"] == "Training started successfully"
        assert started.json()["data"]["id"] == 1

        updated = client.put(
            "/api/training/1/progress",
            headers=auth_headers,
            json={"progress_percentage": 40, "time_spent": 8}
        )
        assert updated.json()["message"] == "Progress updated successfully"

        completed = client.post(
            "/api/training/1/complete",
            headers=auth_headers,
            json={"total_time_spent": 15}
        )
        assert completed.json()["message"] == "Training completed successfully"

        progress = db_session.query(TrainingProgress).filter(TrainingProgress.module_id == 1).one()
        assert progress.status == "completed"
        assert progress.progress_percentage == 100
        assert progress.time_spent == 15
        assert progress.completed_at is not None

        assert client.post("/api/training/2/start", headers=auth_headers).status_code == 200

    def test_complete_without_body(self, client, auth_headers):
        """测试完成请求可以不带请求体"""
        client.post("/api/training/1/start", headers=auth_headers)
        response = client.post("/api/training/1/complete", headers=auth_headers)
        assert response.status_code == 200

    def test_progress_requires_start(self, client, auth_headers):
        """测试未开始的模块不能更新进度"""
        response = client.put("/api/training/1/progress", headers=auth_headers, json={"progress_percentage": 10})
        assert response.status_code == 404
        assert response.json() == {"error": "Training progress not found"}

    def test_progress_summary(self, client, auth_headers):
        """测试进度汇总"""
        client.post("/api/training/1/start", headers=auth_headers)
        client.post("/api/training/1/complete", headers=auth_headers)

        data = client.get("/api/training/progress", headers=auth_headers).json()["data"]
        assert data["summary"] == {
            "total_modules": 1,
            "completed": 1,
            "in_progress": 0,
            "not_started": 0,
            "overall_percentage": 100
        }
        assert data["progress"][0]["title"] == "Security Awareness Fundamentals"


class TestTrainingManagement:
    """培训模块管理测试"""

    def test_create_module(self, client, auth_headers, db_session):
        """测试创建模块的默认值"""
        response = client.post(
            "/api/training",
            headers=auth_headers,
            json={"title": "Social Engineering", "category": "social"}
        )
        assert response.status_code == 201

        module = db_session.get(TrainingModule, response.json()["module_id"])
        assert module.content_type == "interactive"
        assert module.duration == 0
        assert module.prerequisites == []

    def test_create_module_requires_title_and_category(self, client, auth_headers):
        """测试必填字段"""
        response = client.post("/api/training", headers=auth_headers, json={"title": "No category"})
        assert response.status_code == 400
        assert response.json() == {"error": "Title and category are required"}

    def test_delete_module(self, client, auth_headers, db_session):
        """测试有学习记录时停用，无记录时删除"""
        client.post("/api/training/1/start", headers=auth_headers)

        soft = client.delete("/api/training/1", headers=auth_headers)
        assert soft.json()["message"] == "Training module deactivated successfully"
        assert db_session.get(TrainingModule, 1).is_active is False

        hard = client.delete("/api/training/2", headers=auth_headers)
        assert hard.json()["message"] == "Training module deleted successfully"
        assert db_session.get(TrainingModule, 2) is None

    def test_missing_module(self, client, auth_headers):
        """测试模块不存在"""
        assert client.get("/api/training/999", headers=auth_headers).status_code == 404
        assert client.put("/api/training/999", headers=auth_headers, json={"title": "x"}).status_code == 404
