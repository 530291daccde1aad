"""路由共用的依赖与工具"""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

from ..core.exceptions import SecurityAwarenessException
from ..core.logging import get_logger

logger = get_logger("security_awareness.api")


@contextmanager
def endpoint_errors(message: str):
    """将未预期的异常转换为带业务信息的500响应

    HTTPException、领域异常与完整性错误原样抛出，交给全局处理器。
    """
    try:
        yield
    except (HTTPException, SecurityAwarenessException, IntegrityError):
        raise
    except Exception as e:
        logger.error(message, extra={"error": str(e), "error_type": type(e).__name__})
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


def success(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    """统一的成功响应体"""
    body: Dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def listing(rows: List[Any], **extra) -> Dict[str, Any]:
    """列表响应体：``{success, data, count}``"""
    return success(rows, count=len(rows), **extra)
