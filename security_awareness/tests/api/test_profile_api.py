"""个人资料API测试"""

from security_awareness.db.models.auth import User


class TestProfile:
    """资料测试"""

    def test_get_profile(self, client, auth_headers):
        """测试资料附带角色信息且不含敏感字段"""
        data = client.get("/api/profile", headers=auth_headers).json()["data"]

        assert data["username"] == "admin"
        assert data["role_name"] == "admin"
        assert data["role_description"]
        assert "password_hash" not in data
        assert "mfa_secret" not in data

    def test_update_profile(self, client, auth_headers):
        """测试更新后返回最新资料"""
        response = client.put(
            "/api/profile",
            headers=auth_headers,
            json={"department": "Security", "email": "root@dynamicbiz.com"}
        )
        assert response.status_code == 200

        body = response.json()
        assert body["message"] == "Profile updated successfully"
        assert body["data"]["department"] == "Security"
        assert body["data"]["email"] == "root@dynamicbiz.com"
        assert body["data"]["first_name"] == "System"

    def test_update_profile_email_taken(self, client, auth_headers):
        """测试邮箱被其他用户占用"""
        client.post("/api/auth/register", json={
            "username": "jdoe",
            "email": "jdoe@dynamicbiz.com",
            "password": "a-long-password",
            "first_name": "Jane",
            "last_name": "Doe",
            "role_id": 4,
            "department": "Finance"
        })

        response = client.put("/api/profile", headers=auth_headers, json={"email": "jdoe@dynamicbiz.com"})
        assert response.status_code == 400
        assert response.json() == {"error": "Email already taken by another user"}


class TestPassword:
    """个人资料接口的修改密码测试"""

    def test_change_password(self, client, auth_headers):
        """测试修改成功，新密码没有长度限制"""
        response = client.put(
            "/api/profile/password",
            headers=auth_headers,
            json={"current_password": "admin123", "new_password": "short"}
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Password changed successfully"

        login = client.post("/api/auth/login", json={"username": "admin", "password": "short"})
        assert login.status_code == 200

    def test_wrong_current_password(self, client, auth_headers):
        """测试当前密码错误"""
        response = client.put(
            "/api/profile/password",
            headers=auth_headers,
            json={"current_password": "nope", "new_password": "whatever"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Current password is incorrect"}

    def test_missing_fields(self, client, auth_headers):
        """测试缺少字段"""
        response = client.put("/api/profile/password", headers=auth_headers, json={"new_password": "x"})
        assert response.status_code == 400

    def test_mfa_token_required_when_enabled(self, client, auth_headers, db_session):
        """测试启用MFA后需携带 x-mfa-token"""
        admin = db_session.get(User, 1)
        admin.mfa_enabled = True
        admin.mfa_secret = "JBSWY3DPEHPK3PXP"
        db_session.commit()

        payload = {"current_password": "admin123", "new_password": "rotated"}
        missing = client.put("/api/profile/password", headers=auth_headers, json=payload)
        assert missing.status_code == 401
        assert missing.json() == {"error": "MFA token required"}

        present = client.put(
            "/api/profile/password",
            headers={**auth_headers, "x-mfa-token": "123456"},
            json=payload
        )
        assert present.status_code == 200


class TestPreferences:
    """偏好设置测试"""

    def test_defaults(self, client, auth_headers):
        """测试默认偏好"""
        data = client.get("/api/profile/preferences", headers=auth_headers).json()["data"]
        assert data == {
            "notifications": {"email": True, "push": True, "sms": False},
            "theme": "light",
            "language": "en",
            "timezone": "UTC",
            "dashboard_layout": "default"
        }

    def test_update_merges_nested_values(self, client, auth_headers, db_session):
        """测试嵌套字段按键合并"""
        response = client.put(
            "/api/profile/preferences",
            headers=auth_headers,
            json={"theme": "dark", "notifications": {"sms": True}}
        )
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["theme"] == "dark"
        assert data["notifications"] == {"email": True, "push": True, "sms": True}

        client.put("/api/profile/preferences", headers=auth_headers, json={"language": "zh"})
        stored = client.get("/api/profile/preferences", headers=auth_headers).json()["data"]
        assert stored["theme"] == "dark"
        assert stored["language"] == "zh"

        assert db_session.get(User, 1).preferences == {
            "theme": "dark",
            "notifications": {"sms": True},
            "language": "zh"
        }

    def test_rejects_non_object(self, client, auth_headers):
        """测试请求体必须为对象"""
        response = client.put("/api/profile/preferences", headers=auth_headers, json=["dark"])
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid preferences format"}


class TestActivityAndStats:
    """活动历史与统计测试"""

    def test_activity(self, client, auth_headers):
        """测试登录与策略确认出现在活动历史中"""
        client.post("/api/policies/1/acknowledge", headers=auth_headers)

        data = client.get("/api/profile/activity", headers=auth_headers, params={"limit": 5}).json()["data"]
        assert data["total"] == 2
        assert data["limit"] == 5
        assert data["offset"] == 0
        assert {item["type"] for item in data["activities"]} == {"login", "policy_acknowledgment"}

    def test_activity_paging(self, client, auth_headers):
        """测试偏移量超过总数"""
        data = client.get("/api/profile/activity", headers=auth_headers, params={"offset": 10}).json()["data"]
        assert data["activities"] == []
        assert data["total"] == 1

    def test_stats(self, client, auth_headers):
        """测试各模块统计"""
        client.post("/api/policies/1/acknowledge", headers=auth_headers)
        data = client.get("/api/profile/stats", headers=auth_headers).json()["data"]

        assert data["policies"] == {"total_policies": 3, "acknowledged_policies": 1}
        assert data["quizzes"]["total_attempts"] == 0
        assert data["training"]["total_modules"] == 0


class TestMFA:
    """MFA开关测试"""

    def test_enable_requires_secret(self, client, auth_headers):
        """测试启用时必须提供密钥"""
        response = client.put("/api/profile/mfa", headers=auth_headers, json={"enable": True})
        assert response.status_code == 400
        assert response.json() == {"error": "MFA secret is required when enabling MFA"}

    def test_enable_and_disable(self, client, auth_headers, db_session):
        """测试启用后关闭需携带MFA令牌"""
        enabled = client.put(
            "/api/profile/mfa",
            headers=auth_headers,
            json={"enable": True, "secret": "JBSWY3DPEHPK3PXP"}
        )
        assert enabled.json() == {
            "success": True,
            "message": "MFA enabled successfully",
            "data": {"mfa_enabled": True}
        }
        assert db_session.get(User, 1).mfa_secret == "JBSWY3DPEHPK3PXP"

        assert client.put("/api/profile/mfa", headers=auth_headers, json={"enable": False}).status_code == 401

        disabled = client.put(
            "/api/profile/mfa",
            headers={**auth_headers, "x-mfa-token": "123456"},
            json={"enable": False}
        )
        assert disabled.json()["message"] == "MFA disabled successfully"
