"""DynamicBiz 安全意识平台后端主应用"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

# 导入配置和核心模块
from .core.config import settings
from .core.exceptions import SecurityAwarenessException
from .core.logging import app_logger, security_logger, setup_logging
from .db.connection import db_manager

# 导入中间件
from .middleware.audit import AuditMiddleware
from .middleware.auth import demo_identity
from .middleware.performance import (
    DemoIdentityMiddleware,
    PerformanceMiddleware,
    SecurityHeadersMiddleware,
    get_client_ip
)

# 导入API路由
from .api.endpoints.auth import router as auth_router
from .api.endpoints.policies import router as policies_router
from .api.endpoints.quizzes import router as quizzes_router
from .api.endpoints.reports import router as reports_router
from .api.endpoints.facts import router as facts_router
from .api.endpoints.games import router as games_router
from .api.endpoints.training import router as training_router
from .api.endpoints.profile import router as profile_router
from .api.realtime import router as realtime_router

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    try:
        setup_logging()
        if not db_manager.test_connection():
            security_logger.warning("Starting without a reachable database", extra={"event_type": "startup"})
        db_manager.create_all_tables()

        security_logger.info(
            "DynamicBiz Security Awareness API started",
            extra={
                "version": settings.app_version,
                "environment": settings.node_env,
                "port": settings.port,
                "rate_limit": settings.get_rate_limit(),
                "event_type": "startup"
            }
        )
    except Exception as e:
        security_logger.error("Error during startup", extra={"error": str(e), "event_type": "startup_error"})
        raise

    yield

    security_logger.info("DynamicBiz Security Awareness API stopped", extra={"event_type": "shutdown"})


# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    description="DynamicBiz 安全意识培训平台后端API",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc"
)

# 创建限流器
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.get_rate_limit()],
    enabled=not settings.disable_rate_limit
)
app.state.limiter = limiter

# 注意：中间件是按照相反的顺序执行的，最后添加的最先执行
app.add_middleware(AuditMiddleware)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(DemoIdentityMiddleware, identity_factory=demo_identity)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(PerformanceMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"]
)


def _request_context(request: Request) -> dict:
    return {
        "request_id": getattr(request.state, "request_id", "unknown"),
        "method": request.method,
        "path": request.url.path,
        "client_ip": get_client_ip(request)
    }


def error_response(request: Request, status_code: int, message: str) -> JSONResponse:
    """兜底错误响应：``{error: {message, statusCode, timestamp, path}}``"""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "statusCode": status_code,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "path": request.url.path
            }
        }
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """限流异常处理器"""
    security_logger.warning(
        "Rate limit exceeded",
        extra={**_request_context(request), "limit": str(exc.detail), "event_type": "rate_limited"}
    )
    return JSONResponse(status_code=429, content={"error": RATE_LIMIT_MESSAGE})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP异常处理器

    路由抛出的异常保持 ``{error: message}`` 扁平格式，字典形式的 detail 原样返回。
    """
    context = _request_context(request)

    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"error": "Route not found", "path": request.url.path})

    if exc.status_code >= 500:
        security_logger.error(f"HTTP exception occurred: {exc.detail}", extra={**context, "status_code": exc.status_code})
    else:
        security_logger.warning(f"Client error: {exc.detail}", extra={**context, "status_code": exc.status_code})

    content = jsonable_encoder(exc.detail) if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求验证异常处理器"""
    security_logger.warning(
        "Request validation error",
        extra={**_request_context(request), "errors": jsonable_encoder(exc.errors())}
    )
    return error_response(request, 400, "Validation failed")


@app.exception_handler(SecurityAwarenessException)
async def domain_exception_handler(request: Request, exc: SecurityAwarenessException):
    """领域异常处理器"""
    security_logger.warning(
        f"Application error: {exc.message}",
        extra={**_request_context(request), "status_code": exc.status_code, "error_code": exc.error_code}
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """数据完整性异常处理器：唯一键冲突409，外键缺失400"""
    reason = str(exc.orig).lower()
    if "foreign key" in reason or "1452" in reason:
        status_code, message = 400, "Referenced record not found"
    elif "unique" in reason or "duplicate" in reason or "1062" in reason:
        status_code, message = 409, "Duplicate entry"
    else:
        status_code = 500
        message = "Internal server error" if settings.is_production else "Database integrity error"

    security_logger.error(
        f"Error {status_code}: {message}",
        extra={**_request_context(request), "error": str(exc.orig)}
    )
    return error_response(request, status_code, message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """兜底异常处理器，生产环境隐藏错误详情"""
    security_logger.error(
        f"Error 500: {exc}",
        extra={**_request_context(request), "error_type": type(exc).__name__},
        exc_info=True
    )
    message = "Internal server error" if settings.is_production else str(exc) or "Internal server error"
    return error_response(request, 500, message)


# 注册API路由
app.include_router(auth_router)
app.include_router(policies_router)
app.include_router(quizzes_router)
app.include_router(reports_router)
app.include_router(facts_router)
app.include_router(games_router)
app.include_router(training_router)
app.include_router(profile_router)
app.include_router(realtime_router)


# 健康检查
@app.get("/health", include_in_schema=False)
@limiter.exempt
async def health_check():
    """健康检查"""
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name
    }


if __name__ == "__main__":
    import uvicorn

    app_logger.info(
        f"DynamicBiz Security Awareness API server running on port {settings.port}",
        extra={"environment": settings.node_env}
    )
    uvicorn.run(
        "security_awareness.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
