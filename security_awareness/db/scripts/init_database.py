#!/usr/bin/env python3
"""
数据库初始化脚本
用于创建数据库表结构、基础角色、默认管理员账户和示例内容

使用方法:
    python -m security_awareness.db.scripts.init_database [--skip-samples]
"""

import argparse
import sys
from typing import Dict

from sqlalchemy.orm import Session

from ...core.config import settings
from ..connection import db_manager
from ..models.auth import Role, User
from ..models.fact import SecurityFact
from ..models.game import MiniGame
from ..models.policy import Policy
from ..models.training import TrainingModule
from ..repositories.quiz_repository import QuizRepository
from ..repositories.user_repository import UserRepository

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin123"

ROLES = (
    ("admin", "System administrator with full access"),
    ("manager", "Department manager overseeing team compliance"),
    ("auditor", "Compliance auditor with reporting access"),
    ("enduser", "Regular employee completing awareness training"),
)

SAMPLE_POLICIES = (
    {
        "title": "Password Security Policy",
        "content": "Passwords must be at least 12 characters and must never be shared or reused.",
        "category": "access_control",
        "priority": "critical",
        "status": "published",
    },
    {
        "title": "Acceptable Use Policy",
        "content": "Company devices are for business use. Report lost or stolen devices immediately.",
        "category": "general",
        "priority": "high",
        "status": "published",
    },
    {
        "title": "Remote Work Security Guidelines",
        "content": "Use the corporate VPN on untrusted networks and lock your screen when away.",
        "category": "remote_work",
        "priority": "medium",
        "status": "draft",
    },
)

SAMPLE_QUIZ = {
    "title": "Phishing Awareness Basics",
    "description": "Recognise the most common signs of a phishing email.",
    "category": "phishing",
    "difficulty": "beginner",
    "time_limit": 10,
    "passing_score": 70,
}

SAMPLE_QUESTIONS = (
    {
        "question_text": "What should you do with an unexpected email asking you to reset your password?",
        "points": 1,
        "answers": [
            {"answer_text": "Click the link and reset it", "is_correct": False},
            {"answer_text": "Report it to the security team", "is_correct": True},
            {"answer_text": "Forward it to colleagues", "is_correct": False},
        ],
    },
    {
        "question_text": "Which sender address is most likely spoofed?",
        "points": 1,
        "answers": [
            {"answer_text": "it-support@dynamicbiz.com", "is_correct": False},
            {"answer_text": "it-support@dynarnicbiz.com", "is_correct": True},
        ],
    },
)

SAMPLE_FACTS = (
    ("Phishing is the top attack vector", "Most breaches begin with a phishing email.", "phishing", "high"),
    ("Use a password manager", "Password managers make long unique passwords practical.", "passwords", "medium"),
    ("Lock your screen", "Press Win+L or Ctrl+Cmd+Q whenever you step away.", "physical", "low"),
)


def seed_roles(session: Session) -> Dict[str, Role]:
    """创建缺失的基础角色

    Returns:
        Dict[str, Role]: 角色名到角色的映射
    """
    roles = {role.name: role for role in session.query(Role).all()}
    for name, description in ROLES:
        if name not in roles:
            role = Role(name=name, description=description)
            session.add(role)
            roles[name] = role
    session.flush()
    return roles


def seed_admin(session: Session, roles: Dict[str, Role], rounds: int = None) -> User:
    """创建默认管理员账户（已存在时跳过）"""
    existing = session.query(User).filter(User.username == ADMIN_USERNAME).first()
    if existing:
        print(f"✓ 管理员用户 {ADMIN_USERNAME} 已存在")
        return existing

    admin = User(
        username=ADMIN_USERNAME,
        email="admin@dynamicbiz.com",
        first_name="System",
        last_name="Administrator",
        role_id=roles["admin"].id,
        department="IT"
    )
    admin.set_password(ADMIN_PASSWORD, rounds)
    session.add(admin)
    session.flush()
    print(f"✓ 管理员用户 {ADMIN_USERNAME} 创建成功 (ID: {admin.id})")
    return admin


def seed_sample_content(session: Session, roles: Dict[str, Role], admin: User) -> None:
    """写入示例策略、测验、游戏、培训模块与安全小知识；已有策略时跳过"""
    if session.query(Policy).count():
        print("✓ 示例内容已存在，跳过")
        return

    enduser_role_id = roles["enduser"].id
    for policy in SAMPLE_POLICIES:
        record = Policy(version="1.0", published_by=admin.id, **policy)
        if record.status == "published":
            record.publish(admin.id)
        session.add(record)

    session.add(MiniGame(
        title="Spot the Phish",
        description="Decide which messages in the inbox are phishing attempts.",
        game_type="phishing_simulator",
        role_id=enduser_role_id,
        difficulty="beginner",
        instructions="Flag every suspicious email before the timer runs out.",
        game_data={"emails": 10}
    ))

    basics = TrainingModule(
        title="Security Awareness Fundamentals",
        description="Core concepts every employee needs to know.",
        role_id=enduser_role_id,
        category="fundamentals",
        content_type="interactive",
        duration=20,
        prerequisites=[]
    )
    session.add(basics)
    session.flush()
    session.add(TrainingModule(
        title="Advanced Phishing Defence",
        description="Targeted attacks, business email compromise and reporting.",
        role_id=enduser_role_id,
        category="phishing",
        content_type="video",
        duration=30,
        prerequisites=[basics.id]
    ))

    for title, content, category, priority in SAMPLE_FACTS:
        session.add(SecurityFact(title=title, content=content, category=category, priority=priority))
    session.flush()

    QuizRepository(session).create_with_questions(
        {**SAMPLE_QUIZ, "role_id": enduser_role_id},
        [dict(question) for question in SAMPLE_QUESTIONS]
    )
    print("✓ 示例内容创建成功")


def seed_database(session: Session, with_samples: bool = True, rounds: int = None) -> User:
    """写入角色、管理员与（可选的）示例内容

    Returns:
        User: 管理员用户
    """
    roles = seed_roles(session)
    admin = seed_admin(session, roles, rounds)
    if with_samples:
        seed_sample_content(session, roles, admin)
    return admin


def verify_admin_user(session: Session) -> bool:
    """验证默认管理员可用默认密码登录"""
    user = UserRepository(session).get_active_by_username(ADMIN_USERNAME)
    if not user or not user.verify_password(ADMIN_PASSWORD):
        print(f"✗ 管理员用户 {ADMIN_USERNAME} 验证失败")
        return False
    print(f"✓ 管理员用户 {ADMIN_USERNAME} 验证成功")
    return True


def main(argv=None) -> bool:
    """
    主函数
    """
    parser = argparse.ArgumentParser(description="初始化安全意识平台数据库")
    parser.add_argument("--skip-samples", action="store_true", help="不写入示例内容")
    args = parser.parse_args(argv)

    print("=" * 50)
    print("DynamicBiz 安全意识平台数据库初始化")
    print("=" * 50)

    try:
        print("正在创建数据库表...")
        db_manager.create_all_tables()
        print("✓ 数据库表创建成功")

        with db_manager.transaction() as session:
            seed_database(session, with_samples=not args.skip_samples, rounds=settings.bcrypt_rounds)

        with db_manager.transaction() as session:
            if not verify_admin_user(session):
                return False
    except Exception as e:
        print(f"✗ 数据库初始化失败: {e}")
        return False

    print()
    print("=" * 50)
    print("数据库初始化完成!")
    print("=" * 50)
    print("默认账户信息:")
    print(f"  用户名: {ADMIN_USERNAME}")
    print(f"  密码: {ADMIN_PASSWORD}")
    print("  角色: admin")
    print("=" * 50)
    return True


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
