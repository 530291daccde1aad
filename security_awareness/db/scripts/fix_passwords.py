#!/usr/bin/env python3
"""
用户密码重置脚本

重新生成密码哈希：admin 重置为 admin123，其他用户重置为 password123
（或 --password 指定的值），写入后逐个验证。

使用方法:
    python -m security_awareness.db.scripts.fix_passwords [--username=admin] [--password=xxx]
"""

import argparse
import sys
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ...core.logging import get_logger
from ..connection import db_manager
from ..models.auth import User
from .init_database import ADMIN_PASSWORD, ADMIN_USERNAME

logger = get_logger(__name__)

DEFAULT_PASSWORD = "password123"
FIX_ROUNDS = 10


def password_for(username: str, override: Optional[str] = None) -> str:
    """用户应重置成的密码"""
    if override:
        return override
    return ADMIN_PASSWORD if username == ADMIN_USERNAME else DEFAULT_PASSWORD


def fix_passwords(
    session: Session,
    username: Optional[str] = None,
    password: Optional[str] = None,
    rounds: int = FIX_ROUNDS
) -> Dict[str, bool]:
    """重置密码哈希并验证

    Returns:
        Dict[str, bool]: 用户名到验证结果的映射
    """
    query = session.query(User)
    if username:
        query = query.filter(User.username == username)

    results = {}
    for user in query.order_by(User.id).all():
        new_password = password_for(user.username, password)
        user.set_password(new_password, rounds)
        session.flush()
        results[user.username] = user.verify_password(new_password)
        logger.info(
            "Password reset",
            extra={"username": user.username, "verified": results[user.username]}
        )
    return results


def main(argv=None) -> bool:
    parser = argparse.ArgumentParser(description="重置用户密码哈希")
    parser.add_argument("--username", default=None, help="只重置指定用户")
    parser.add_argument("--password", default=None, help="统一使用的新密码")
    args = parser.parse_args(argv)

    try:
        with db_manager.transaction() as session:
            results = fix_passwords(session, args.username, args.password)
    except Exception as e:
        print(f"✗ 密码重置失败: {e}")
        return False

    if not results:
        print("✗ 未找到匹配的用户")
        return False

    for name, verified in results.items():
        mark = "✓" if verified else "✗"
        print(f"{mark} {name}: {password_for(name, args.password)}")
    return all(results.values())


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
