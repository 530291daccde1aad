"""中间件与请求级依赖"""

from .performance import (
    get_client_ip,
    PerformanceMiddleware,
    SecurityHeadersMiddleware,
    DemoIdentityMiddleware
)
from .auth import RequestContext, demo_identity, get_current_user, require_auth, require_mfa
from .audit import AuditMiddleware, audit_log

__all__ = [
    "get_client_ip",
    "PerformanceMiddleware",
    "SecurityHeadersMiddleware",
    "DemoIdentityMiddleware",
    "RequestContext",
    "demo_identity",
    "get_current_user",
    "require_auth",
    "require_mfa",
    "AuditMiddleware",
    "audit_log"
]
