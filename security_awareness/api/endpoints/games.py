"""安全小游戏API端点"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...db.connection import get_db
from ...db.repositories.game_repository import GameRepository
from ...middleware.audit import audit_log
from ...middleware.auth import RequestContext, get_current_user
from ...schemas.content import GameCreate, GameSubmission, GameUpdate
from ...services.game_service import GameService
from ..deps import endpoint_errors, listing, success
from ..realtime import manager

router = APIRouter(prefix="/api/games", tags=["games"])


@router.get("")
async def get_games(
    game_type: Optional[str] = None,
    difficulty: Optional[str] = None,
    role_id: Optional[int] = None,
    search: Optional[str] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """获取游戏列表，附带最好成绩"""
    with endpoint_errors("Failed to retrieve games"):
        games = GameRepository(db).list_for_user(current_user.id, game_type, difficulty, role_id, search)
        return listing(games)


@router.get("/history")
async def get_game_history(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve game history"):
        attempts, total = GameRepository(db).get_history(current_user.id, limit, offset)
        return success({"attempts": attempts, "total": total, "limit": limit, "offset": offset})


@router.get("/{id}")
async def get_game(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve game"):
        return success(GameService(db).get_game_detail(id, current_user.id))


@router.post("/{id}/start", dependencies=[Depends(audit_log("START_GAME", "game"))])
async def start_game(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to start game"):
        started = GameService(db).start_game(id, current_user.id)
        return success(message="Game started successfully", **started)


@router.post("/{id}/attempt", dependencies=[Depends(audit_log("SUBMIT_GAME", "game"))])
async def submit_game(
    id: int,
    payload: GameSubmission,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """提交游戏结果并通知同角色房间"""
    with endpoint_errors("Failed to submit game"):
        result = GameService(db).submit_game(
            id,
            current_user.id,
            payload.attempt_id,
            payload.score,
            payload.max_score,
            payload.time_taken,
            payload.game_result
        )
        await manager.emit_to_room(current_user.role, "game-update", {
            "game_id": id,
            "user_id": current_user.id,
            "username": current_user.username,
            "role": current_user.role,
            **result
        })
        return success(result, "Game submitted successfully")


@router.get("/{id}/results")
async def get_game_results(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to retrieve game results"):
        return success(GameService(db).get_results(id, current_user.id))


@router.get("/{id}/leaderboard")
async def get_leaderboard(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """排行榜：前20名已完成记录"""
    with endpoint_errors("Failed to retrieve leaderboard"):
        return listing(GameRepository(db).get_leaderboard(id))


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(audit_log("CREATE_GAME", "game"))]
)
async def create_game(
    payload: GameCreate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to create game"):
        game = GameService(db).create_game(payload.model_dump(), current_user)
        return success(message="Game created successfully", game_id=game.id)


@router.put("/{id}", dependencies=[Depends(audit_log("UPDATE_GAME", "game"))])
async def update_game(
    id: int,
    payload: GameUpdate,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to update game"):
        GameService(db).update_game(id, payload.model_dump(exclude_none=True))
        return success(message="Game updated successfully")


@router.delete("/{id}", dependencies=[Depends(audit_log("DELETE_GAME", "game"))])
async def delete_game(
    id: int,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to delete game"):
        soft = GameService(db).delete_game(id)
        message = "Game deactivated successfully" if soft else "Game deleted successfully"
        return success(message=message)
