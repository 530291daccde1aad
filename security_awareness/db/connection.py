"""数据库连接管理

统一管理数据库连接池、会话和事务。
"""

from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterable, List, Optional, Tuple, Union

from sqlalchemy import create_engine, text, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from ..core.config import settings
from ..core.logging import get_logger

logger = get_logger(__name__)

QueryResult = Union[List[Dict[str, Any]], Dict[str, Any]]


class DatabaseManager:
    """数据库管理器

    持有单个连接池，提供会话、事务和参数化查询。
    """

    def __init__(self):
        self.engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None
        self._initialized = False

    def configure(self, url: str, **kwargs) -> None:
        """配置数据库连接

        Args:
            url: 数据库连接URL
            **kwargs: 额外的引擎参数
        """
        if self.engine is not None:
            self.engine.dispose()

        if url.startswith("sqlite"):
            # SQLite特殊配置
            kwargs.setdefault("connect_args", {"check_same_thread": False})
        else:
            kwargs.setdefault("pool_size", settings.db_pool_size)
            kwargs.setdefault("max_overflow", 0)
            kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("echo", False)

        self.engine = create_engine(url, **kwargs)
        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine
        )
        self._initialized = True

    def initialize(self) -> None:
        """按配置初始化默认数据库"""
        if self._initialized:
            return
        self.configure(settings.get_database_url())

    def get_engine(self) -> Engine:
        """获取数据库引擎"""
        self.initialize()
        return self.engine

    def get_session(self) -> Generator[Session, None, None]:
        """获取数据库会话

        Yields:
            Session: 数据库会话
        """
        self.initialize()
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """事务管理上下文

        成功时提交，任何异常时回滚并重新抛出。

        Yields:
            Session: 数据库会话（在事务中）
        """
        self.initialize()
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def execute_query(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        session: Optional[Session] = None
    ) -> QueryResult:
        """执行参数化查询

        语句中出现但未提供的命名参数按 NULL 绑定。

        Args:
            sql: 使用 ``:name`` 占位符的SQL
            params: 参数字典
            session: 可选的现有会话，未提供时使用独立连接并自动提交

        Returns:
            查询语句返回行字典列表，其他语句返回 ``{"affected_rows", "insert_id"}``
        """
        statement = text(sql)
        bound = dict.fromkeys(statement.compile().params)
        bound.update(params or {})

        try:
            if session is not None:
                result = session.execute(statement, bound)
                return _collect(result)

            with self.get_engine().begin() as connection:
                result = connection.execute(statement, bound)
                return _collect(result)
        except SQLAlchemyError as e:
            logger.error(
                "Database query error",
                extra={"sql": sql, "error": str(e), "event_type": "db_query_error"}
            )
            raise

    def execute_transaction(self, queries: Iterable[Tuple[str, Optional[Dict[str, Any]]]]) -> List[QueryResult]:
        """在单个事务中依次执行多条语句

        Args:
            queries: ``(sql, params)`` 序列

        Returns:
            List: 每条语句的结果
        """
        results = []
        with self.transaction() as session:
            for sql, params in queries:
                results.append(self.execute_query(sql, params, session=session))
        return results

    def test_connection(self) -> bool:
        """测试数据库连接"""
        try:
            with self.get_engine().connect() as connection:
                connection.execute(text("SELECT 1"))
            logger.info("Database connected successfully")
            return True
        except SQLAlchemyError as e:
            logger.error("Database connection failed", extra={"error": str(e)})
            return False

    def create_all_tables(self) -> None:
        """创建所有表"""
        from .base import Base
        from . import models  # noqa: F401  注册所有模型

        Base.metadata.create_all(bind=self.get_engine())

    def drop_all_tables(self) -> None:
        """删除所有表"""
        from .base import Base
        from . import models  # noqa: F401

        Base.metadata.drop_all(bind=self.get_engine())


def _collect(result) -> QueryResult:
    if result.returns_rows:
        return [dict(row) for row in result.mappings().all()]
    return {"affected_rows": result.rowcount, "insert_id": getattr(result, "lastrowid", None)}


# 全局数据库管理器实例
db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """FastAPI依赖：获取默认数据库会话

    Yields:
        Session: 数据库会话
    """
    yield from db_manager.get_session()
