"""安全意识平台 REST API 客户端

基于 httpx.AsyncClient：

- 每个请求自动携带令牌存储中的 Bearer 令牌；
- 429 按 ``Retry-After``（默认1秒，上限5秒）延迟后重发原请求；
- 401 清除已存储的令牌；
- 按业务领域分组的辅助方法，例如 ``client.quizzes.start(1)``。

>>> async with ApiClient() as client:
...     await client.auth.login("admin", "admin123")
...     quizzes = await client.quizzes.list(category="phishing")
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:3001/api"
DEFAULT_TIMEOUT = 10.0
DEFAULT_RETRY_AFTER = 1.0
MAX_RETRY_DELAY = 5.0
MAX_RATE_LIMIT_RETRIES = 3


class ApiError(Exception):
    """API返回错误状态码"""

    def __init__(self, status_code: int, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"API request failed with status {status_code}: {self.message}")

    @property
    def message(self) -> str:
        error = self.payload.get("error") if isinstance(self.payload, dict) else self.payload
        if isinstance(error, dict):
            return str(error.get("message"))
        return str(error)


class TokenStore:
    """内存中的令牌存储"""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: Optional[str]) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


def retry_delay(headers: httpx.Headers) -> float:
    """根据 Retry-After 计算重发延迟（秒），无效值按1秒处理"""
    try:
        delay = float(headers.get("retry-after", DEFAULT_RETRY_AFTER))
    except (TypeError, ValueError):
        delay = DEFAULT_RETRY_AFTER
    return min(max(delay, 0.0), MAX_RETRY_DELAY)


class ApiClient:
    """平台API客户端"""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        token_store: Optional[TokenStore] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_rate_limit_retries: int = MAX_RATE_LIMIT_RETRIES
    ):
        """创建客户端

        Args:
            base_url: API根地址
            token_store: 令牌存储，默认新建内存存储
            timeout: 请求超时（秒）
            transport: 自定义传输层，测试时可传入 ``httpx.MockTransport`` 或 ``httpx.ASGITransport``
            sleep: 429重发前的等待函数
            max_rate_limit_retries: 同一请求因429重发的最大次数
        """
        self.base_url = base_url.rstrip("/")
        self.tokens = token_store or TokenStore()
        self._sleep = sleep
        self._max_rate_limit_retries = max_rate_limit_retries
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"}
        )

        self.auth = _AuthApi(self)
        self.policies = _PoliciesApi(self)
        self.quizzes = _QuizzesApi(self)
        self.games = _GamesApi(self)
        self.training = _TrainingApi(self)
        self.reports = _ReportsApi(self)
        self.facts = _FactsApi(self)
        self.profile = _ProfileApi(self)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        token = self.tokens.get()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """发送请求并处理429重发与401清除令牌

        Returns:
            httpx.Response: 最终响应
        """
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        retries = 0
        while True:
            response = await self._client.request(
                method,
                self._url(path),
                json=json,
                params=params,
                headers={**self._headers(), **(headers or {})}
            )
            if response.status_code != 429 or retries >= self._max_rate_limit_retries:
                break

            delay = retry_delay(response.headers)
            retries += 1
            logger.warning(
                "Rate limited, retrying request",
                extra={"method": method, "path": path, "delay": delay, "attempt": retries}
            )
            await self._sleep(delay)

        if response.status_code == 401:
            self.tokens.clear()

        return response

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """发送请求并返回JSON响应体

        Raises:
            ApiError: 响应状态码 >= 400
        """
        response = await self.send(method, path, **kwargs)
        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        if response.status_code >= 400:
            raise ApiError(response.status_code, payload)
        return payload

    async def get(self, path: str, **params) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)


class _Namespace:
    def __init__(self, client: ApiClient):
        self._client = client


class _AuthApi(_Namespace):
    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """登录并保存令牌"""
        result = await self._client.post("/auth/login", {"username": username, "password": password})
        self._client.tokens.set(result.get("token"))
        return result

    async def register(self, **fields) -> Dict[str, Any]:
        return await self._client.post("/auth/register", fields)

    async def logout(self) -> Dict[str, Any]:
        try:
            return await self._client.post("/auth/logout")
        finally:
            self._client.tokens.clear()

    async def get_profile(self) -> Dict[str, Any]:
        return await self._client.get("/auth/profile")

    async def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        return await self._client.put(
            "/auth/change-password",
            {"currentPassword": current_password, "newPassword": new_password}
        )


class _PoliciesApi(_Namespace):
    async def list(self, **filters) -> Dict[str, Any]:
        return await self._client.get("/policies", **filters)

    async def stats(self) -> Dict[str, Any]:
        return await self._client.get("/policies/stats")

    async def get(self, policy_id: int) -> Dict[str, Any]:
        return await self._client.get(f"/policies/{policy_id}")

    async def acknowledge(self, policy_id: int) -> Dict[str, Any]:
        return await self._client.post(f"/policies/{policy_id}/acknowledge", {})


class _QuizzesApi(_Namespace):
    async def list(self, **filters) -> Dict[str, Any]:
        return await self._client.get("/quizzes", **filters)

    async def get(self, quiz_id: int) -> Dict[str, Any]:
        return await self._client.get(f"/quizzes/{quiz_id}")

    async def start(self, quiz_id: int) -> Dict[str, Any]:
        return await self._client.post(f"/quizzes/{quiz_id}/start")

    async def submit(self, quiz_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._client.post(f"/quizzes/{quiz_id}/attempt", payload)

    async def results(self, quiz_id: int) -> Dict[str, Any]:
        return await self._client.get(f"/quizzes/{quiz_id}/results")


class _GamesApi(_Namespace):
    async def list(self, **filters) -> Dict[str, Any]:
        return await self._client.get("/games", **filters)

    async def history(self, limit: int = 10, offset: int = 0) -> Dict[str, Any]:
        return await self._client.get("/games/history", limit=limit, offset=offset)

    async def get(self, game_id: int) -> Dict[str, Any]:
        return await self._client.get(f"/games/{game_id}")

    async def start(self, game_id: int) -> Dict[str, Any]:
        return await self._client.post(f"/games/{game_id}/start")

    async def submit(self, game_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._client.post(f"/games/{game_id}/attempt", payload)

    async def leaderboard(self, game_id: int) -> Dict[str, Any]:
        return await self._client.get(f"/games/{game_id}/leaderboard")


class _TrainingApi(_Namespace):
    async def list(self, **filters) -> Dict[str, Any]:
        return await self._client.get("/training", **filters)

    async def progress(self) -> Dict[str, Any]:
        return await self._client.get("/training/progress")

    async def get(self, module_id: int) -> Dict[str, Any]:
        return await self._client.get(f"/training/{module_id}")

    async def start(self, module_id: int) -> Dict[str, Any]:
        return await self._client.post(f"/training/{module_id}/start")

    async def update_progress(self, module_id: int, progress_percentage: int, time_spent: int = 0) -> Dict[str, Any]:
        return await self._client.put(
            f"/training/{module_id}/progress",
            {"progress_percentage": progress_percentage, "time_spent": time_spent}
        )

    async def complete(self, module_id: int, **fields) -> Dict[str, Any]:
        return await self._client.post(f"/training/{module_id}/complete", fields)


class _ReportsApi(_Namespace):
    async def dashboard(self) -> Dict[str, Any]:
        return await self._client.get("/reports/dashboard")

    async def compliance(self, **period) -> Dict[str, Any]:
        return await self._client.get("/reports/compliance", **period)

    async def training_progress(self) -> Dict[str, Any]:
        return await self._client.get("/reports/training-progress")

    async def quiz_performance(self, **period) -> Dict[str, Any]:
        return await self._client.get("/reports/quiz-performance", **period)

    async def policy_acknowledgments(self, **period) -> Dict[str, Any]:
        return await self._client.get("/reports/policy-acknowledgments", **period)

    async def export(self, report_type: str, export_format: str = "json", **period) -> httpx.Response:
        """导出报表；返回原始响应以便读取CSV附件"""
        return await self._client.send(
            "POST",
            "/reports/export",
            json={"report_type": report_type, "format": export_format, **period}
        )


class _FactsApi(_Namespace):
    async def list(self, **filters) -> Dict[str, Any]:
        return await self._client.get("/facts", **filters)

    async def random(self, **filters) -> Dict[str, Any]:
        return await self._client.get("/facts/random", **filters)

    async def categories(self) -> Dict[str, Any]:
        return await self._client.get("/facts/categories")

    async def by_category(self, category: str) -> Dict[str, Any]:
        return await self._client.get(f"/facts/category/{category}")

    async def get(self, fact_id: int) -> Dict[str, Any]:
        return await self._client.get(f"/facts/{fact_id}")


class _ProfileApi(_Namespace):
    async def get(self) -> Dict[str, Any]:
        return await self._client.get("/profile")

    async def update(self, **fields) -> Dict[str, Any]:
        return await self._client.put("/profile", fields)

    async def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        return await self._client.put(
            "/profile/password",
            {"current_password": current_password, "new_password": new_password}
        )

    async def preferences(self) -> Dict[str, Any]:
        return await self._client.get("/profile/preferences")

    async def update_preferences(self, preferences: Dict[str, Any]) -> Dict[str, Any]:
        return await self._client.put("/profile/preferences", preferences)

    async def activity(self, limit: int = 20, offset: int = 0) -> Dict[str, Any]:
        return await self._client.get("/profile/activity", limit=limit, offset=offset)

    async def toggle_mfa(self, enable: bool, secret: Optional[str] = None) -> Dict[str, Any]:
        return await self._client.put("/profile/mfa", {"enable": enable, "secret": secret})

    async def stats(self) -> Dict[str, Any]:
        return await self._client.get("/profile/stats")
