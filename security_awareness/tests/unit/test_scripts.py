"""维护脚本测试"""

from security_awareness.db.models.auth import Role, User
from security_awareness.db.models.policy import Policy
from security_awareness.db.models.quiz import QuizAttempt
from security_awareness.db.repositories.quiz_repository import QuizRepository
from security_awareness.db.scripts.clear_attempts import clear_incomplete_attempts
from security_awareness.db.scripts.fix_passwords import DEFAULT_PASSWORD, fix_passwords, password_for
from security_awareness.db.scripts.init_database import ADMIN_PASSWORD, seed_database, verify_admin_user


class TestInitDatabase:
    """数据库初始化测试"""

    def test_seed_is_idempotent(self, db_session):
        """测试重复初始化不产生重复数据"""
        seed_database(db_session, rounds=4)
        db_session.commit()

        assert db_session.query(Role).count() == 4
        assert db_session.query(User).count() == 1
        assert db_session.query(Policy).count() == 3

    def test_verify_admin_user(self, db_session):
        """测试默认管理员可用默认密码登录"""
        assert verify_admin_user(db_session) is True


class TestClearAttempts:
    """未完成作答清理测试"""

    def _open_attempts(self, session):
        repo = QuizRepository(session)
        repo.start_attempt(1, 1)
        repo.start_attempt(1, 1)
        finished = repo.start_attempt(1, 1)
        repo.complete_attempt(finished, 1, 2, False, 30, {"responses": {}})

    def test_dry_run_only_counts(self, db_session):
        """测试只统计不删除"""
        self._open_attempts(db_session)

        assert clear_incomplete_attempts(db_session, dry_run=True) == 2
        assert db_session.query(QuizAttempt).count() == 3

    def test_deletes_incomplete_for_user(self, db_session):
        """测试删除指定用户的未完成作答"""
        self._open_attempts(db_session)

        assert clear_incomplete_attempts(db_session, user_id=99) == 0
        assert clear_incomplete_attempts(db_session, user_id=1) == 2
        db_session.commit()

        remaining = db_session.query(QuizAttempt).all()
        assert len(remaining) == 1
        assert remaining[0].completed_at is not None


class TestFixPasswords:
    """密码重置测试"""

    def test_password_for(self):
        """测试重置目标密码"""
        assert password_for("admin") == ADMIN_PASSWORD
        assert password_for("alice") == DEFAULT_PASSWORD
        assert password_for("alice", "override-pass") == "override-pass"

    def test_fix_passwords(self, db_session):
        """测试重置并验证"""
        user = User(username="alice", email="alice@dynamicbiz.com", role_id=4)
        user.set_password("forgotten", 4)
        db_session.add(user)
        db_session.commit()

        results = fix_passwords(db_session, rounds=4)
        db_session.commit()

        assert results == {"admin": True, "alice": True}
        alice = db_session.query(User).filter(User.username == "alice").one()
        assert alice.verify_password(DEFAULT_PASSWORD) is True

    def test_fix_single_user_with_override(self, db_session):
        """测试只重置指定用户"""
        results = fix_passwords(db_session, username="admin", password="new-admin-pass", rounds=4)

        assert results == {"admin": True}

    def test_unknown_user(self, db_session):
        """测试用户不存在时返回空结果"""
        assert fix_passwords(db_session, username="ghost", rounds=4) == {}
