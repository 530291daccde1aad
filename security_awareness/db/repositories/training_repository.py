"""培训模块数据访问仓储"""

from typing import Any, Dict, List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session

from .base import BaseRepository
from ..base import serialize_value, utcnow
from ..models.auth import Role
from ..models.training import TrainingModule, TrainingProgress

PROGRESS_FIELDS = ("status", "progress_percentage", "time_spent", "started_at", "completed_at")


class TrainingRepository(BaseRepository[TrainingModule]):
    """培训模块仓储类"""

    def __init__(self, session: Session):
        super().__init__(session, TrainingModule)

    def list_for_user(
        self,
        user_id: Optional[int],
        category: str = None,
        role_id: int = None,
        content_type: str = None,
        search: str = None
    ) -> List[Dict[str, Any]]:
        """获取启用的培训模块，附带当前用户的进度字段"""
        query = (
            self.session.query(TrainingModule, Role.name, TrainingProgress)
            .outerjoin(Role, Role.id == TrainingModule.role_id)
            .outerjoin(
                TrainingProgress,
                (TrainingProgress.module_id == TrainingModule.id)
                & (TrainingProgress.user_id == user_id)
            )
            .filter(TrainingModule.is_active.is_(True))
        )

        if category:
            query = query.filter(TrainingModule.category == category)
        if role_id:
            query = query.filter(TrainingModule.role_id == role_id)
        if content_type:
            query = query.filter(TrainingModule.content_type == content_type)
        if search:
            query = query.filter(self.search_condition(search, ["title", "description"]))

        query = query.order_by(
            asc(TrainingModule.category),
            desc(TrainingModule.created_at),
            desc(TrainingModule.id)
        )

        results = []
        for module, role_name, progress in query.all():
            data = module.to_dict()
            data["role_name"] = role_name
            for field in PROGRESS_FIELDS:
                data[field] = serialize_value(getattr(progress, field)) if progress else None
            results.append(data)
        return results

    def get_active(self, module_id: int) -> Optional[TrainingModule]:
        """获取启用的培训模块"""
        return (
            self.session.query(TrainingModule)
            .filter(TrainingModule.id == module_id, TrainingModule.is_active.is_(True))
            .first()
        )

    def get_role_name(self, role_id: Optional[int]) -> Optional[str]:
        if role_id is None:
            return None
        role = self.session.query(Role).filter(Role.id == role_id).first()
        return role.name if role else None

    def get_progress(self, user_id: int, module_id: int) -> Optional[TrainingProgress]:
        """获取用户在模块上的进度记录"""
        return (
            self.session.query(TrainingProgress)
            .filter(TrainingProgress.user_id == user_id, TrainingProgress.module_id == module_id)
            .first()
        )

    def get_user_progress(self, user_id: int) -> List[Dict[str, Any]]:
        """获取用户全部进度记录，附带模块信息，最近更新在前"""
        rows = (
            self.session.query(
                TrainingProgress,
                TrainingModule.title,
                TrainingModule.category,
                TrainingModule.content_type,
                TrainingModule.duration,
                Role.name
            )
            .join(TrainingModule, TrainingModule.id == TrainingProgress.module_id)
            .outerjoin(Role, Role.id == TrainingModule.role_id)
            .filter(TrainingProgress.user_id == user_id)
            .order_by(desc(TrainingProgress.updated_at), desc(TrainingProgress.id))
            .all()
        )

        results = []
        for progress, title, category, content_type, duration, role_name in rows:
            data = progress.to_dict()
            data.update({
                "title": title,
                "category": category,
                "content_type": content_type,
                "duration": duration,
                "role_name": role_name
            })
            results.append(data)
        return results

    def get_prerequisite_modules(self, module: TrainingModule) -> List[Dict[str, Any]]:
        """获取前置模块的简要信息"""
        ids = module.prerequisite_ids
        if not ids:
            return []
        rows = (
            self.session.query(TrainingModule.id, TrainingModule.title, TrainingModule.category)
            .filter(TrainingModule.id.in_(ids))
            .order_by(asc(TrainingModule.id))
            .all()
        )
        return [{"id": row.id, "title": row.title, "category": row.category} for row in rows]

    def incomplete_prerequisites(self, user_id: int, module: TrainingModule) -> List[int]:
        """返回用户尚未完成的前置模块ID"""
        ids = module.prerequisite_ids
        if not ids:
            return []
        completed = {
            module_id
            for module_id, in self.session.query(TrainingProgress.module_id).filter(
                TrainingProgress.user_id == user_id,
                TrainingProgress.module_id.in_(ids),
                TrainingProgress.status == "completed"
            )
        }
        return [module_id for module_id in ids if module_id not in completed]

    def start(self, user_id: int, module_id: int) -> TrainingProgress:
        """开始培训：已有进度则重置为进行中，否则新建"""
        progress = self.get_progress(user_id, module_id)
        if progress is None:
            progress = TrainingProgress(user_id=user_id, module_id=module_id)
            self.session.add(progress)
        progress.status = "in_progress"
        progress.started_at = utcnow()
        self.commit()
        return progress

    def update_progress(
        self,
        progress: TrainingProgress,
        progress_percentage: Optional[int],
        time_spent: Optional[int]
    ) -> TrainingProgress:
        """更新进度百分比与用时，未提供的字段保持不变"""
        if progress_percentage is not None:
            progress.progress_percentage = progress_percentage
        if time_spent is not None:
            progress.time_spent = time_spent
        progress.updated_at = utcnow()
        self.commit()
        return progress

    def complete(
        self,
        progress: TrainingProgress,
        final_progress: Optional[int],
        total_time_spent: Optional[int]
    ) -> TrainingProgress:
        """完成培训"""
        progress.status = "completed"
        progress.progress_percentage = final_progress or 100
        progress.completed_at = utcnow()
        if total_time_spent is not None:
            progress.time_spent = total_time_spent
        self.commit()
        return progress

    def has_progress(self, module_id: int) -> bool:
        """模块是否已有学习记录"""
        return (
            self.session.query(TrainingProgress.id)
            .filter(TrainingProgress.module_id == module_id)
            .first()
        ) is not None

    def deactivate(self, module: TrainingModule) -> None:
        """停用模块（软删除）"""
        module.is_active = False
        self.commit()
