"""培训模块服务"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.logging import get_logger
from ..db.models.training import TrainingModule
from ..db.repositories.training_repository import TrainingRepository
from ..middleware.auth import RequestContext

logger = get_logger(__name__)


class TrainingService:
    """培训模块服务类"""

    def __init__(self, db: Session):
        self.db = db
        self.training = TrainingRepository(db)

    def _get_or_404(self, module_id: int) -> TrainingModule:
        module = self.training.get_by_id(module_id)
        if module is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Training module not found")
        return module

    def get_module_detail(self, module_id: int, user_id: int) -> Dict[str, Any]:
        """模块详情：用户进度与前置模块"""
        module = self.training.get_active(module_id)
        if module is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Training module not found")

        progress = self.training.get_progress(user_id, module_id)
        data = module.to_dict()
        data["role_name"] = self.training.get_role_name(module.role_id)
        data["progress"] = progress.to_dict() if progress else None
        data["prerequisites"] = self.training.get_prerequisite_modules(module)
        return data

    def get_progress_summary(self, user_id: int) -> Dict[str, Any]:
        """用户全部培训进度与汇总"""
        progress = self.training.get_user_progress(user_id)
        total = len(progress)
        completed = sum(1 for item in progress if item["status"] == "completed")
        in_progress = sum(1 for item in progress if item["status"] == "in_progress")
        not_started = sum(1 for item in progress if item["status"] == "not_started")

        return {
            "progress": progress,
            "summary": {
                "total_modules": total,
                "completed": completed,
                "in_progress": in_progress,
                "not_started": not_started,
                "overall_percentage": round(completed / total * 100) if total else 0
            }
        }

    def start_training(self, module_id: int, user_id: int) -> TrainingModule:
        """开始培训

        Raises:
            HTTPException: 模块不存在(404)或前置模块未完成(400)
        """
        module = self.training.get_active(module_id)
        if module is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Training module not found or inactive")

        incomplete = self.training.incomplete_prerequisites(user_id, module)
        if incomplete:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "Prerequisites not completed", "incomplete_prerequisites": incomplete}
            )

        self.training.start(user_id, module_id)
        logger.info("Training started", extra={"user_id": user_id, "module_id": module_id})
        return module

    def update_progress(
        self,
        module_id: int,
        user_id: int,
        progress_percentage: Optional[int],
        time_spent: Optional[int]
    ) -> None:
        progress = self.training.get_progress(user_id, module_id)
        if progress is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Training progress not found")
        self.training.update_progress(progress, progress_percentage, time_spent)

    def complete_training(
        self,
        module_id: int,
        user_id: int,
        final_progress: Optional[int],
        total_time_spent: Optional[int]
    ) -> None:
        progress = self.training.get_progress(user_id, module_id)
        if progress is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Training progress not found")
        self.training.complete(progress, final_progress, total_time_spent)
        logger.info("Training completed", extra={"user_id": user_id, "module_id": module_id})

    def create_module(self, data: Dict[str, Any], current_user: RequestContext) -> TrainingModule:
        """创建培训模块"""
        if not data.get("title") or not data.get("category"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and category are required")

        return self.training.create(
            title=data["title"],
            description=data.get("description"),
            role_id=data.get("role_id") or current_user.role_id or 1,
            category=data["category"],
            content_type=data.get("content_type") or "interactive",
            content_url=data.get("content_url"),
            duration=data.get("duration") or 0,
            prerequisites=data.get("prerequisites") or []
        )

    def update_module(self, module_id: int, data: Dict[str, Any]) -> TrainingModule:
        """部分更新培训模块"""
        self._get_or_404(module_id)
        return self.training.update(module_id, **data)

    def delete_module(self, module_id: int) -> bool:
        """删除模块：已有学习记录时停用，否则物理删除

        Returns:
            bool: 是否为软删除
        """
        module = self._get_or_404(module_id)
        if self.training.has_progress(module_id):
            self.training.deactivate(module)
            return True
        self.training.delete(module_id)
        return False
