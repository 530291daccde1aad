"""实时事件通道

WebSocket 消息格式为 ``{"event": name, "data": payload}``，
按 ``role-{role}`` 房间定向广播测验、游戏与策略更新。
"""

import json
import uuid
from typing import Any, Dict, Iterable, Optional, Set

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from ..core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["realtime"])


def room_name(role: Any) -> str:
    return f"role-{role}"


def encode_event(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, default=str)


class ConnectionManager:
    """WebSocket连接与角色房间管理器"""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.rooms: Dict[str, Set[str]] = {}

    async def connect(self, websocket: WebSocket, connection_id: str) -> None:
        """接受WebSocket连接"""
        await websocket.accept()
        self.active_connections[connection_id] = websocket
        logger.info(f"User connected: {connection_id}", extra={"connection_id": connection_id})

    def disconnect(self, connection_id: str) -> None:
        """断开连接并移出所有房间"""
        self.active_connections.pop(connection_id, None)
        for room in list(self.rooms):
            self.rooms[room].discard(connection_id)
            if not self.rooms[room]:
                del self.rooms[room]
        logger.info(f"User disconnected: {connection_id}", extra={"connection_id": connection_id})

    def join(self, connection_id: str, role: Any) -> str:
        """加入角色房间

        Returns:
            str: 房间名
        """
        room = room_name(role)
        self.rooms.setdefault(room, set()).add(connection_id)
        logger.info(f"User {connection_id} joined role room: {role}", extra={"room": room})
        return room

    def leave(self, connection_id: str, role: Any) -> None:
        """离开角色房间"""
        room = room_name(role)
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room]

    def room_members(self, role: Any) -> Set[str]:
        return set(self.rooms.get(room_name(role), set()))

    async def _send_many(self, message: str, connection_ids: Iterable[str]) -> None:
        disconnected_connections = []
        for connection_id in connection_ids:
            websocket = self.active_connections.get(connection_id)
            if websocket is None:
                continue
            try:
                await websocket.send_text(message)
            except Exception as e:
                logger.error(f"Failed to send message to {connection_id}: {e}")
                disconnected_connections.append(connection_id)

        # 清理发送失败的连接
        for connection_id in disconnected_connections:
            self.disconnect(connection_id)

    async def send_personal_message(self, event: str, data: Any, connection_id: str) -> None:
        """发送给单个连接"""
        await self._send_many(encode_event(event, data), [connection_id])

    async def emit_to_room(self, role: Any, event: str, data: Any, exclude: Optional[str] = None) -> None:
        """发送给角色房间内除 exclude 外的连接"""
        members = [cid for cid in self.room_members(role) if cid != exclude]
        await self._send_many(encode_event(event, data), members)

    async def broadcast(self, event: str, data: Any, exclude: Optional[str] = None) -> None:
        """广播给除 exclude 外的所有连接"""
        targets = [cid for cid in list(self.active_connections) if cid != exclude]
        await self._send_many(encode_event(event, data), targets)

    async def handle_event(self, connection_id: str, event: Optional[str], data: Any) -> None:
        """处理客户端事件"""
        if event == "join-role":
            self.join(connection_id, data)
        elif event == "leave-role":
            self.leave(connection_id, data)
        elif event == "quiz-submitted":
            await self.emit_to_room(_role_of(data), "quiz-update", data, exclude=connection_id)
        elif event == "game-completed":
            await self.emit_to_room(_role_of(data), "game-update", data, exclude=connection_id)
        elif event == "policy-acknowledged":
            await self.broadcast("policy-update", data, exclude=connection_id)
        elif event == "ping":
            await self.send_personal_message("pong", data, connection_id)
        else:
            logger.warning(f"Unknown realtime event: {event}", extra={"connection_id": connection_id})


def _role_of(data: Any) -> Any:
    return data.get("role") if isinstance(data, dict) else None


manager = ConnectionManager()


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    connection_id: Optional[str] = Query(None, description="连接ID")
):
    """实时事件端点"""
    connection_id = connection_id or str(uuid.uuid4())
    await manager.connect(websocket, connection_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await manager.send_personal_message("error", {"message": "Invalid JSON format"}, connection_id)
                continue

            if not isinstance(message, dict):
                await manager.send_personal_message("error", {"message": "Invalid message format"}, connection_id)
                continue

            await manager.handle_event(connection_id, message.get("event"), message.get("data"))

    except WebSocketDisconnect:
        manager.disconnect(connection_id)
    except Exception as e:
        # 例如二进制帧：receive_text 抛出 KeyError
        logger.error(f"WebSocket error: {e}", extra={"connection_id": connection_id, "error_type": type(e).__name__})
        manager.disconnect(connection_id)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
