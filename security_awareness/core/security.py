"""密码哈希与访问令牌工具"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from .config import settings
from .exceptions import ConfigurationError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """哈希密码

    Args:
        password: 明文密码
        rounds: bcrypt轮数，默认读取 BCRYPT_ROUNDS

    Returns:
        str: bcrypt哈希
    """
    handler = pwd_context.handler("bcrypt").using(rounds=rounds or settings.bcrypt_rounds)
    return handler.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """验证密码"""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # 非bcrypt格式的历史哈希
        return False


def get_jwt_secret() -> str:
    """获取JWT密钥

    Raises:
        ConfigurationError: 未配置 JWT_SECRET
    """
    if not settings.jwt_secret:
        raise ConfigurationError("JWT_SECRET is not configured", config_key="JWT_SECRET")
    return settings.jwt_secret


def create_access_token(
    user_id: int,
    username: str,
    expires_delta: Optional[timedelta] = None,
    secret_key: Optional[str] = None
) -> str:
    """创建访问令牌

    载荷为 ``{userId, username, exp}``，默认有效期 JWT_EXPIRE_HOURS 小时。
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=settings.jwt_expire_hours))
    to_encode = {"userId": user_id, "username": username, "exp": expire}
    return jwt.encode(to_encode, secret_key or get_jwt_secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, secret_key: Optional[str] = None) -> Dict[str, Any]:
    """解码并验证访问令牌

    Raises:
        jose.ExpiredSignatureError: 令牌已过期
        jose.JWTError: 签名无效或格式错误
    """
    return jwt.decode(token, secret_key or get_jwt_secret(), algorithms=[settings.jwt_algorithm])
