"""请求日志、性能与安全头中间件"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..core.config import settings
from ..core.logging import performance_logger, request_logger, security_logger


def get_client_ip(request: Request) -> str:
    """获取客户端IP地址

    依次检查 X-Forwarded-For、X-Real-IP，最后使用直连地址。
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # 取第一个IP（原始客户端IP）
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client is not None and request.client.host:
        return request.client.host

    return "unknown"


class PerformanceMiddleware(BaseHTTPMiddleware):
    """请求日志与耗时监控中间件"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.slow_request_threshold = settings.slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """记录请求行，附加请求ID与处理时间响应头

        Args:
            request: HTTP请求
            call_next: 下一个处理器

        Returns:
            Response: HTTP响应
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        method = request.method
        path = request.url.path
        client_ip = get_client_ip(request)

        request_logger.info(
            f"{method} {path} - {client_ip}",
            extra={"request_id": request_id, "event_type": "request_start"}
        )

        try:
            response = await call_next(request)
        except Exception as e:
            performance_logger.error(
                "Request failed",
                extra={
                    "error": str(e),
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "process_time": time.time() - start_time,
                    "client_ip": client_ip,
                    "event_type": "request_error"
                }
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        if process_time > self.slow_request_threshold:
            performance_logger.warning(
                "Request completed (slow)",
                extra={
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "process_time": process_time,
                    "threshold": self.slow_request_threshold,
                    "event_type": "slow_request"
                }
            )
        else:
            performance_logger.debug(
                "Request completed",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "process_time": process_time,
                    "event_type": "request_complete"
                }
            )

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """安全头中间件"""

    security_headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "X-XSS-Protection": "0",
        "X-DNS-Prefetch-Control": "off",
        "Referrer-Policy": "no-referrer",
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": "same-origin",
        "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
        "Content-Security-Policy": (
            "default-src 'self'; "
            "base-uri 'self'; "
            "img-src 'self' data:; "
            "object-src 'none'; "
            "frame-ancestors 'self';"
        )
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for header, value in self.security_headers.items():
            response.headers[header] = value
        return response


class DemoIdentityMiddleware(BaseHTTPMiddleware):
    """非生产环境下为每个请求附加演示身份"""

    def __init__(self, app: ASGIApp, identity_factory: Callable):
        super().__init__(app)
        self.identity_factory = identity_factory

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.is_production:
            request.state.demo_identity = self.identity_factory()
        else:
            security_logger.debug("Demo identity skipped in production")
        return await call_next(request)


__all__ = [
    "get_client_ip",
    "PerformanceMiddleware",
    "SecurityHeadersMiddleware",
    "DemoIdentityMiddleware"
]
