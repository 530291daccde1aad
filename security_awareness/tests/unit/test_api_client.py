"""API客户端单元测试"""

import httpx
import pytest

from security_awareness.client.api_client import ApiClient, ApiError, TokenStore, retry_delay


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def make_client(handler, **kwargs) -> ApiClient:
    return ApiClient("http://test/api", transport=httpx.MockTransport(handler), **kwargs)


class TestRetryDelay:
    """Retry-After 解析测试"""

    @pytest.mark.parametrize("headers,expected", [
        ({}, 1.0),
        ({"Retry-After": "2"}, 2.0),
        ({"Retry-After": "30"}, 5.0),
        ({"Retry-After": "-3"}, 0.0),
        ({"Retry-After": "soon"}, 1.0),
    ])
    def test_retry_delay(self, headers, expected):
        """测试默认值、上限与无效值"""
        assert retry_delay(httpx.Headers(headers)) == expected


class TestApiClient:
    """请求发送测试"""

    @pytest.mark.asyncio
    async def test_bearer_token_is_attached(self):
        """测试请求携带已存储的令牌"""
        seen = []

        def handler(request):
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={"success": True})

        async with make_client(handler, token_store=TokenStore("abc")) as client:
            await client.get("/policies")

        assert seen == ["Bearer abc"]

    @pytest.mark.asyncio
    async def test_rate_limited_request_is_retried(self):
        """测试429按 Retry-After 重发原请求"""
        responses = [
            httpx.Response(429, headers={"Retry-After": "10"}, json={"error": "Too many requests"}),
            httpx.Response(429, json={"error": "Too many requests"}),
            httpx.Response(200, json={"success": True, "data": []}),
        ]
        requests = []

        def handler(request):
            requests.append((request.method, request.url.path, request.content))
            return responses.pop(0)

        sleep = SleepRecorder()
        async with make_client(handler, sleep=sleep) as client:
            result = await client.post("/policies/1/acknowledge", {"ip_address": "10.0.0.1"})

        assert result == {"success": True, "data": []}
        assert sleep.delays == [5.0, 1.0]
        assert len(requests) == 3
        assert len({request for request in requests}) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_retries_are_bounded(self):
        """测试429重发次数有上限"""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, json={"error": "Too many requests from this IP, please try again later."})

        sleep = SleepRecorder()
        async with make_client(handler, sleep=sleep, max_rate_limit_retries=2) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.get("/facts")

        assert exc_info.value.status_code == 429
        assert len(calls) == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_unauthorized_clears_token(self):
        """测试401清除令牌"""
        def handler(request):
            return httpx.Response(401, json={"error": "Token expired"})

        tokens = TokenStore("stale")
        async with make_client(handler, token_store=tokens) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.get("/auth/profile")

        assert tokens.get() is None
        assert exc_info.value.message == "Token expired"

    @pytest.mark.asyncio
    async def test_nested_error_message(self):
        """测试嵌套错误体的消息"""
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "Validation failed", "statusCode": 400}})

        async with make_client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.post("/quizzes", {})

        assert exc_info.value.message == "Validation failed"

    @pytest.mark.asyncio
    async def test_none_params_are_dropped(self):
        """测试值为None的查询参数不发送"""
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200, json={"success": True})

        async with make_client(handler) as client:
            await client.quizzes.list(category="phishing", difficulty=None)

        assert seen == [{"category": "phishing"}]


class TestAuthApi:
    """认证辅助方法测试"""

    @pytest.mark.asyncio
    async def test_login_and_logout_manage_token(self):
        """测试登录保存令牌、登出清除令牌"""
        def handler(request):
            if request.url.path == "/api/auth/login":
                return httpx.Response(200, json={"message": "Login successful", "token": "jwt-token", "user": {}})
            return httpx.Response(200, json={"message": "Logout successful"})

        async with make_client(handler) as client:
            await client.auth.login("admin", "admin123")
            assert client.tokens.get() == "jwt-token"

            await client.auth.logout()
            assert client.tokens.get() is None

    @pytest.mark.asyncio
    async def test_logout_clears_token_on_failure(self):
        """测试登出请求失败也清除令牌"""
        def handler(request):
            return httpx.Response(500, json={"error": "boom"})

        async with make_client(handler, token_store=TokenStore("abc")) as client:
            with pytest.raises(ApiError):
                await client.auth.logout()

        assert client.tokens.get() is None
