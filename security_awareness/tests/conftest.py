"""pytest配置和fixtures"""

import os
import shutil
import tempfile
from typing import Dict, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

# 设置测试环境变量（必须在导入应用之前）
TEST_DB_DIR = tempfile.mkdtemp(prefix="security_awareness_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(TEST_DB_DIR, 'test.db')}"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["NODE_ENV"] = "development"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DISABLE_RATE_LIMIT"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"

from security_awareness.core.config import settings
from security_awareness.core.logging import setup_logging
from security_awareness.db.connection import db_manager
from security_awareness.db.scripts.init_database import ADMIN_PASSWORD, ADMIN_USERNAME, seed_database
from security_awareness.main import app

TEST_ROUNDS = 4

# 设置测试日志
setup_logging()


def pytest_sessionfinish(session, exitstatus):
    if db_manager.engine is not None:
        db_manager.engine.dispose()
    shutil.rmtree(TEST_DB_DIR, ignore_errors=True)


@pytest.fixture(scope="function", autouse=True)
def database() -> Generator[None, None, None]:
    """每个测试使用重建并写入示例数据的数据库"""
    db_manager.drop_all_tables()
    db_manager.create_all_tables()
    with db_manager.transaction() as session:
        seed_database(session, with_samples=True, rounds=TEST_ROUNDS)
    yield


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """直接访问测试数据库的会话"""
    session = db_manager.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def production_mode(monkeypatch):
    """切换到生产环境（关闭演示身份）"""
    monkeypatch.setattr(settings, "node_env", "production")
    yield settings


@pytest.fixture(scope="function")
def client() -> TestClient:
    """测试客户端"""
    return TestClient(app)


@pytest.fixture(scope="function")
def admin_token(client: TestClient) -> str:
    """默认管理员的访问令牌"""
    response = client.post(
        "/api/auth/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture(scope="function")
def auth_headers(admin_token: str) -> Dict[str, str]:
    """携带管理员令牌的请求头"""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest_asyncio.fixture(scope="function")
async def async_client():
    """异步测试客户端"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
