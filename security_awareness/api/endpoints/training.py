"""培训模块API端点"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...db.connection import get_db
from ...db.repositories.training_repository import TrainingRepository
from ...middleware.audit import audit_log
from ...middleware.auth import RequestContext, get_current_user
from ...schemas.content import TrainingCompletion, TrainingCreate, TrainingProgressUpdate, TrainingUpdate
from ...services.training_service import TrainingService
from ..deps import endpoint_errors, listing, success

router = APIRouter(prefix="/api/training", tags=["training"])


@router.get("")
async def get_training_modules(
    category: Optional[str] = None,
    role_id: Optional[int] = None,
    content_type: Optional[str] = None,
    search: Optional[str] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """获取培训模块及当前用户进度"""
    with endpoint_errors("Failed to retrieve training modules"):
        modules = TrainingRepository(db).list_for_user(current_user.id, category, role_id, content_type, search)
        return listing(modules)


@router.get("/progress")
async def get_training_progress(
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve training progress"):
        return success(TrainingService(db).get_progress_summary(current_user.id))


@router.get("/{id}")
async def get_training_module(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve training module"):
        return success(TrainingService(db).get_module_detail(id, current_user.id))


@router.post("/{id}/start", dependencies=[Depends(audit_log("START_TRAINING", "training"))])
async def start_training(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """开始培训，前置模块需已完成"""
    with endpoint_errors("Failed to start training"):
        module = TrainingService(db).start_training(id, current_user.id)
        return success(module.to_dict(), "Training started successfully")


@router.put("/{id}/progress", dependencies=[Depends(audit_log("UPDATE_TRAINING_PROGRESS", "training"))])
async def update_training_progress(
    id: int,
    payload: TrainingProgressUpdate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to update training progress"):
        TrainingService(db).update_progress(
            id, current_user.id, payload.progress_percentage, payload.time_spent
        )
        return success(message="Progress updated successfully")


@router.post("/{id}/complete", dependencies=[Depends(audit_log("COMPLETE_TRAINING", "training"))])
async def complete_training(
    id: int,
    payload: Optional[TrainingCompletion] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to complete training"):
        payload = payload or TrainingCompletion()
        TrainingService(db).complete_training(
            id, current_user.id, payload.final_progress, payload.total_time_spent
        )
        return success(message="Training completed successfully")


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audit_log("CREATE_TRAINING", "training"))]
)
async def create_training_module(
    payload: TrainingCreate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to create training module"):
        module = TrainingService(db).create_module(payload.model_dump(), current_user)
        return success(message="Training module created successfully", module_id=module.id)


@router.put("/{id}", dependencies=[Depends(audit_log("UPDATE_TRAINING", "training"))])
async def update_training_module(
    id: int,
    payload: TrainingUpdate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to update training module"):
        TrainingService(db).update_module(id, payload.model_dump(exclude_none=True))
        return success(message="Training module updated successfully")


@router.delete("/{id}", dependencies=[Depends(audit_log("DELETE_TRAINING", "training"))])
async def delete_training_module(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to delete training module"):
        soft = TrainingService(db).delete_module(id)
        message = "Training module deactivated successfully" if soft else "Training module deleted successfully"
        return success(message=message)
