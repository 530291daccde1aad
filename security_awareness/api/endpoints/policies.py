"""安全策略API端点"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ...core.logging import get_logger
from ...db.base import utcnow
from ...db.connection import get_db
from ...db.repositories.policy_repository import PolicyRepository
from ...middleware.audit import audit_log
from ...middleware.auth import RequestContext, get_current_user
from ...middleware.performance import get_client_ip
from ...schemas.content import PolicyAcknowledge, PolicyCreate, PolicyUpdate
from ..deps import endpoint_errors, listing, success
from ..realtime import manager

logger = get_logger(__name__)

router = APIRouter(prefix="/api/policies", tags=["policies"])


@router.get("")
async def get_policies(
    category: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """获取策略列表，附带当前用户的确认状态"""
    with endpoint_errors("Failed to retrieve policies"):
        policies = PolicyRepository(db).list_for_user(current_user.id, category, status, priority, search)
        return listing(policies)


@router.get("/stats")
async def get_policy_stats(
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve policy statistics"):
        return success(PolicyRepository(db).get_stats(current_user.id))


@router.get("/{id}")
async def get_policy(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve policy"):
        policy = PolicyRepository(db).get_for_user(id, current_user.id)
        if policy is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Policy not found")
        return success(policy)


@router.post("/{id}/acknowledge", dependencies=[Depends(audit_log("ACKNOWLEDGE_POLICY", "policy"))])
async def acknowledge_policy(
    id: int,
    request: Request,
    payload: Optional[PolicyAcknowledge] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """确认已发布的策略并广播更新"""
    with endpoint_errors("Failed to acknowledge policy"):
        repo = PolicyRepository(db)
        policy = repo.get_published(id)
        if policy is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Policy not found or not published")

        if repo.get_acknowledgment(current_user.id, id) is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Policy already acknowledged")

        payload = payload or PolicyAcknowledge()
        repo.acknowledge(
            current_user.id,
            id,
            ip_address=payload.ip_address or get_client_ip(request),
            user_agent=payload.user_agent or request.headers.get("user-agent")
        )
        logger.info("Policy acknowledged", extra={"user_id": current_user.id, "policy_id": id})

        await manager.broadcast("policy-update", {
            "policy_id": id,
            "user_id": current_user.id,
            "username": current_user.username,
            "acknowledged": True
        })
        return success(message="Policy acknowledged successfully")


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audit_log("CREATE_POLICY", "policy"))]
)
async def create_policy(
    payload: PolicyCreate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """创建策略；版本、优先级和状态有默认值"""
    with endpoint_errors("Failed to create policy"):
        if not payload.title or not payload.content or not payload.category:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Title, content, and category are required"
            )

        policy = PolicyRepository(db).create(
            title=payload.title,
            content=payload.content,
            category=payload.category,
            version=payload.version or "1.0",
            priority=payload.priority or "medium",
            status=payload.status or "draft",
            effective_date=payload.effective_date,
            expiry_date=payload.expiry_date,
            published_by=current_user.id or 1,
            published_at=utcnow()
        )
        logger.info("Policy created", extra={"policy_id": policy.id, "created_by": current_user.id})
        return success(policy.to_dict(), "Policy created successfully")


@router.put("/{id}", dependencies=[Depends(audit_log("UPDATE_POLICY", "policy"))])
async def update_policy(
    id: int,
    payload: PolicyUpdate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """部分更新策略，首次更新时补齐发布者信息"""
    with endpoint_errors("Failed to update policy"):
        repo = PolicyRepository(db)
        policy = repo.get_by_id(id)
        if policy is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Policy not found")

        changes = payload.model_dump(exclude_none=True)
        if policy.published_by is None:
            changes["published_by"] = current_user.id
        if policy.published_at is None:
            changes["published_at"] = utcnow()

        policy = repo.update(id, **changes)
        return success(policy.to_dict(), "Policy updated successfully")


@router.delete("/{id}", dependencies=[Depends(audit_log("ARCHIVE_POLICY", "policy"))])
async def delete_policy(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to archive policy"):
        repo = PolicyRepository(db)
        policy = repo.get_by_id(id)
        if policy is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Policy not found")

        repo.archive(policy)
        logger.info("Policy archived", extra={"policy_id": id, "archived_by": current_user.id})
        return success(message="Policy archived successfully")
