"""审计日志依赖与中间件

路由依赖登记审计记录，中间件在响应发送后写入，写入失败只记录日志。
"""

import json
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Request, Response
from starlette.background import BackgroundTask
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.logging import get_logger
from ..db.connection import db_manager
from ..db.repositories.audit_repository import AuditRepository
from .auth import RequestContext, get_current_user
from .performance import get_client_ip

logger = get_logger(__name__)


def write_audit_log(
    user_id: int,
    action: str,
    resource_type: Optional[str],
    resource_id: Optional[str],
    details: Dict[str, Any],
    ip_address: Optional[str],
    user_agent: Optional[str]
) -> None:
    """写入一条审计记录，失败时记录错误且不抛出"""
    try:
        with db_manager.transaction() as session:
            AuditRepository(session).create_log(
                action=action,
                user_id=user_id,
                resource_type=resource_type,
                resource_id=resource_id,
                details=details,
                ip_address=ip_address,
                user_agent=user_agent
            )
    except Exception as e:
        logger.error(
            "Audit logging failed",
            extra={"action": action, "user_id": user_id, "error": str(e), "event_type": "audit_error"}
        )


async def _read_body(request: Request) -> Any:
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def audit_log(action: str, resource_type: Optional[str] = None) -> Callable:
    """创建审计依赖

    依赖只登记待写入的记录，由 :class:`AuditMiddleware` 在响应发送后写入，
    因此错误响应同样会留下审计记录。

    Args:
        action: 操作类型
        resource_type: 资源类型

    Returns:
        Callable: 路由依赖，资源ID取自路径参数 ``id``
    """
    async def dependency(
        request: Request,
        current_user: RequestContext = Depends(get_current_user)
    ) -> None:
        resource_id = request.path_params.get("id")
        request.state.audit_entry = {
            "user_id": current_user.id,
            "action": action,
            "resource_type": resource_type,
            "resource_id": str(resource_id) if resource_id is not None else None,
            "details": {
                "method": request.method,
                "path": request.url.path,
                "body": await _read_body(request),
                "query": dict(request.query_params)
            },
            "ip_address": get_client_ip(request),
            "user_agent": request.headers.get("user-agent")
        }

    return dependency


class AuditMiddleware(BaseHTTPMiddleware):
    """响应发送后写入路由登记的审计记录，与响应状态码无关"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        entry = getattr(request.state, "audit_entry", None)
        if entry is not None:
            entry["details"]["status_code"] = response.status_code
            response.background = BackgroundTask(write_audit_log, **entry)

        return response
