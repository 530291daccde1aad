"""应用程序配置模块"""

from typing import Optional
from urllib.parse import quote_plus

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用程序设置

    字段名与环境变量同名（大小写不敏感），例如 ``db_host`` 读取 ``DB_HOST``。
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 应用基础配置
    app_name: str = "DynamicBiz Security Awareness API"
    app_version: str = "1.0.0"
    node_env: str = Field(default="development")

    # 服务器配置
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    frontend_url: str = Field(default="http://localhost:3000")

    # 数据库配置
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=3306)
    db_user: str = Field(default="dynamicbiz_user")
    db_password: str = Field(default="")
    db_name: str = Field(default="dynamicbiz_security")
    db_pool_size: int = Field(default=10)
    # 设置后覆盖 DB_* 组合出的 MySQL URL（本地与测试使用 SQLite）
    database_url: Optional[str] = Field(default=None)

    # 安全配置
    jwt_secret: Optional[str] = Field(default=None)
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_hours: int = Field(default=24)
    bcrypt_rounds: int = Field(default=12)

    # 限流配置
    rate_limit_window_ms: int = Field(default=15 * 60 * 1000)
    rate_limit_max_requests: int = Field(default=100)
    disable_rate_limit: bool = Field(default=False)

    # 日志配置
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    slow_request_threshold: float = Field(default=1.0)

    @property
    def is_production(self) -> bool:
        """是否为生产环境"""
        return self.node_env.lower() == "production"

    @property
    def is_development(self) -> bool:
        """是否为开发环境"""
        return self.node_env.lower() == "development"

    @property
    def allowed_origins(self) -> list:
        """CORS允许的源"""
        return [self.frontend_url]

    def get_database_url(self) -> str:
        """获取数据库连接URL

        Returns:
            str: DATABASE_URL 或由 DB_* 变量组合的 MySQL URL
        """
        if self.database_url:
            return self.database_url
        password = quote_plus(self.db_password)
        return (
            f"mysql+pymysql://{self.db_user}:{password}@{self.db_host}:{self.db_port}"
            f"/{self.db_name}?charset=utf8mb4"
        )

    def get_rate_limit(self) -> str:
        """获取slowapi格式的限流字符串"""
        if not self.is_production:
            return "1000/minute"
        window_seconds = max(1, self.rate_limit_window_ms // 1000)
        return f"{self.rate_limit_max_requests}/{window_seconds} second"


# 创建全局设置实例
settings = Settings()
