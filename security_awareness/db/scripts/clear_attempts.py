#!/usr/bin/env python3
"""
未完成测验作答清理脚本

删除 completed_at 为空的测验作答记录，开发调试时避免遗留的作答干扰新的测验。

使用方法:
    python -m security_awareness.db.scripts.clear_attempts [--user-id=1] [--dry-run]

参数:
    --user-id: 只清理指定用户的记录
    --dry-run: 只统计将要删除的记录数，不实际删除
"""

import argparse
import sys
from typing import Optional

from sqlalchemy.orm import Session

from ...core.logging import get_logger
from ..connection import db_manager
from ..models.quiz import QuizAttempt

logger = get_logger(__name__)


def clear_incomplete_attempts(session: Session, user_id: Optional[int] = None, dry_run: bool = False) -> int:
    """清理未完成的测验作答

    Args:
        session: 数据库会话
        user_id: 只清理该用户的记录，None 表示全部用户
        dry_run: 为True时只统计不删除

    Returns:
        int: 未完成（或已删除）的记录数
    """
    query = session.query(QuizAttempt).filter(QuizAttempt.completed_at.is_(None))
    if user_id is not None:
        query = query.filter(QuizAttempt.user_id == user_id)

    if dry_run:
        count = query.count()
        logger.info(f"[DRY RUN] Found {count} incomplete attempts", extra={"user_id": user_id})
        return count

    count = query.delete(synchronize_session=False)
    logger.info(f"Deleted {count} incomplete attempts", extra={"user_id": user_id})
    return count


def main(argv=None) -> bool:
    parser = argparse.ArgumentParser(description="清理未完成的测验作答")
    parser.add_argument("--user-id", type=int, default=None, help="只清理指定用户的记录")
    parser.add_argument("--dry-run", action="store_true", help="只统计，不删除")
    args = parser.parse_args(argv)

    try:
        with db_manager.transaction() as session:
            count = clear_incomplete_attempts(session, args.user_id, args.dry_run)
    except Exception as e:
        print(f"✗ 清理失败: {e}")
        return False

    if args.dry_run:
        print(f"发现 {count} 条未完成作答（未删除）")
    else:
        print(f"✓ 已删除 {count} 条未完成作答")
    return True


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
