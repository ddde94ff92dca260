from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query, status, HTTPException
from stickroom.db import db, redis_client
from stickroom.utils import decode_external_id
import logging

router = APIRouter()
active_connections: dict[str, WebSocket] = {}

logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = Query(...)):
    # 初回接続時にトークン検証
    try:
        uid = decode_external_id(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    active_connections[uid] = websocket

    try:
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict):
                continue

            event_type = data.get("type")
            room_id = data.get("room_id")

            # ping/pong
            if event_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            # 入室／退室
            if event_type in ("enter_room", "leave_room") and room_id:
                if event_type == "enter_room":
                    await redis_client.sadd(f"presence:{room_id}", uid)
                else:
                    await redis_client.srem(f"presence:{room_id}", uid)

                await broadcast_event_to_room(room_id, {
                    "type": f"user_{'entered' if event_type == 'enter_room' else 'left'}",
                    "room_id": room_id,
                    "uid": uid,
                })

    except WebSocketDisconnect:
        # 切断時はすべての presence:* から削除
        async for key in redis_client.scan_iter("presence:*"):
            await redis_client.srem(key, uid)

    finally:
        if active_connections.get(uid) is websocket:
            del active_connections[uid]


async def send_event(uid: str, event: dict):
    ws = active_connections.get(uid)
    if not ws:
        return
    try:
        await ws.send_json(event)
    except Exception as e:
        logger.debug("Dropping connection for %s: %s", uid, e)
        if active_connections.get(uid) is ws:
            del active_connections[uid]


async def broadcast_event_to_room(room_id: str, event: dict):
    """room_id の全メンバーに対して send_event を実行"""
    room = await db.rooms.find_one({"id": room_id}, {"member_ids": 1})
    if not room:
        return

    for member_id in room.get("member_ids", []):
        await send_event(member_id, event)
