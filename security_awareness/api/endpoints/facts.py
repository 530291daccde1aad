"""安全小知识API端点"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...db.connection import get_db
from ...db.models.fact import FACT_PRIORITIES
from ...db.repositories.fact_repository import FactRepository
from ...middleware.audit import audit_log
from ...middleware.auth import RequestContext, get_current_user
from ...schemas.content import FactCreate, FactUpdate
from ..deps import endpoint_errors, listing, success

router = APIRouter(prefix="/api/facts", tags=["facts"])

CATEGORY_LIMIT = 10


def _get_or_404(repo: FactRepository, fact_id: int):
    fact = repo.get_by_id(fact_id)
    if fact is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Security fact not found")
    return fact


@router.get("")
async def get_facts(
    category: Optional[str] = None,
    priority: Optional[str] = None,
    role_id: Optional[int] = None,
    search: Optional[str] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """获取启用的安全小知识，未限定角色的条目对所有角色可见"""
    with endpoint_errors("Failed to retrieve security facts"):
        return listing(FactRepository(db).list_active(category, role_id, priority, search))


@router.get("/random")
async def get_random_fact(
    category: Optional[str] = None,
    role_id: Optional[int] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve random security fact"):
        fact = FactRepository(db).get_random(category, role_id)
        if fact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No security facts found")
        return success(fact)


@router.get("/categories")
async def get_fact_categories(
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve fact categories"):
        return listing(FactRepository(db).get_categories())


@router.get("/category/{category}")
async def get_facts_by_category(
    category: str,
    role_id: Optional[int] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve security facts"):
        facts = FactRepository(db).list_active(category, role_id, limit=CATEGORY_LIMIT)
        return listing(facts, category=category)


@router.get("/{id}")
async def get_fact(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve security fact"):
        fact = FactRepository(db).get_active_detail(id)
        if fact is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Security fact not found")
        return success(fact)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audit_log("CREATE_FACT", "security_fact"))]
)
async def create_fact(
    payload: FactCreate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to create security fact"):
        if not payload.title or not payload.content or not payload.category:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Title, content, and category are required"
            )

        priority = payload.priority if payload.priority in FACT_PRIORITIES else "medium"
        fact = FactRepository(db).create(
            title=payload.title,
            content=payload.content,
            category=payload.category,
            role_id=payload.role_id,
            priority=priority
        )
        return success(message="Security fact created successfully", fact_id=fact.id)


@router.put("/{id}", dependencies=[Depends(audit_log("UPDATE_FACT", "security_fact"))])
async def update_fact(
    id: int,
    payload: FactUpdate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to update security fact"):
        repo = FactRepository(db)
        _get_or_404(repo, id)
        changes = payload.model_dump(exclude_none=True)
        if changes.get("priority") not in (None, *FACT_PRIORITIES):
            changes.pop("priority")
        repo.update(id, **changes)
        return success(message="Security fact updated successfully")


@router.delete("/{id}", dependencies=[Depends(audit_log("DELETE_FACT", "security_fact"))])
async def delete_fact(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to delete security fact"):
        repo = FactRepository(db)
        repo.deactivate(_get_or_404(repo, id))
        return success(message="Security fact deleted successfully")
