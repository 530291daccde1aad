"""应用级行为测试：健康检查、错误格式与安全头"""

from datetime import timedelta

from security_awareness.core.security import create_access_token


class TestHealthAndErrors:
    """健康检查与错误响应测试"""

    def test_health_check(self, client):
        """测试健康检查端点"""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "OK"
        assert data["service"] == "DynamicBiz Security Awareness API"
        assert "timestamp" in data

    def test_unknown_route(self, client):
        """测试未知路由"""
        response = client.get("/api/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"error": "Route not found", "path": "/api/does-not-exist"}

    def test_validation_error_format(self, client, auth_headers):
        """测试请求验证失败的嵌套错误格式"""
        response = client.get("/api/policies/not-a-number", headers=auth_headers)
        assert response.status_code == 400

        error = response.json()["error"]
        assert error["message"] == "Validation failed"
        assert error["statusCode"] == 400
        assert error["path"] == "/api/policies/not-a-number"
        assert "timestamp" in error

    def test_security_and_request_headers(self, client):
        """测试安全响应头与请求ID"""
        response = client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-ID" in response.headers
        assert "X-Process-Time" in response.headers


class TestAuthentication:
    """认证依赖测试"""

    def test_demo_identity_in_development(self, client):
        """测试开发环境无令牌时使用演示身份"""
        response = client.get("/api/policies")
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_invalid_token_falls_back_to_demo(self, client):
        """测试开发环境无效令牌回退到演示身份"""
        response = client.get("/api/policies", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 200

    def test_expired_token_is_rejected(self, client):
        """测试过期令牌即使在开发环境也返回401"""
        token = create_access_token(1, "admin", expires_delta=timedelta(seconds=-5))
        response = client.get("/api/policies", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == {"error": "Token expired"}

    def test_expired_token_is_rejected_in_production(self, client, production_mode):
        """测试生产环境过期令牌返回401"""
        token = create_access_token(1, "admin", expires_delta=timedelta(seconds=-5))
        response = client.get("/api/policies", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == {"error": "Token expired"}

    def test_unknown_user(self, client):
        """测试令牌对应用户不存在"""
        token = create_access_token(999, "ghost")
        response = client.get("/api/policies", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token or user not found"}

    def test_missing_token_in_production(self, client, production_mode):
        """测试生产环境缺少令牌"""
        response = client.get("/api/policies")
        assert response.status_code == 401
        assert response.json() == {"error": "Access token required"}

    def test_invalid_token_in_production(self, client, production_mode):
        """测试生产环境无效令牌"""
        response = client.get("/api/policies", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 403
        assert response.json() == {"error": "Invalid token"}

    def test_missing_secret(self, client, auth_headers, monkeypatch):
        """测试未配置JWT密钥"""
        from security_awareness.core.config import settings

        monkeypatch.setattr(settings, "jwt_secret", None)
        response = client.get("/api/policies", headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {"error": "Server configuration error"}

    def test_require_auth_in_production(self, client, production_mode):
        """测试生产环境个人资料接口要求认证"""
        response = client.get("/api/profile")
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required"}


class TestAsyncClient:
    """异步客户端访问测试"""

    async def test_login_and_list_policies(self, async_client):
        """测试通过ASGI传输登录并访问受保护接口"""
        login = await async_client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
        assert login.status_code == 200

        token = login.json()["token"]
        response = await async_client.get("/api/policies", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["count"] == 3
