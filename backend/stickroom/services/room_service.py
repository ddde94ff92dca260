from stickroom.repositories.room_repo import RoomRepository
from stickroom.repositories.item_repo import ItemRepository
from stickroom.repositories.item_type_repo import ItemTypeRepository
from stickroom.services.gateway import RoomGateway
from stickroom.errors import AuthorizationError, NotFoundError, ValidationError
from stickroom.ws import broadcast_event_to_room
from datetime import datetime, timezone
import logging
import uuid

logger = logging.getLogger(__name__)

ROOM_NAME_MAX = 50


def new_action(action_type: str, performed_by: dict, details: str, user_id: str = None) -> dict:
    return {
        "id": f"action_{uuid.uuid4().hex[:12]}",
        "type": action_type,
        "user_id": user_id,
        "performed_by": performed_by,
        "timestamp": datetime.now(timezone.utc),
        "details": details,
    }


def _check_name(name) -> str:
    name = (name or "").strip()
    if not (1 <= len(name) <= ROOM_NAME_MAX):
        raise ValidationError(f"Room name must be 1-{ROOM_NAME_MAX} characters")
    return name


class RoomService:
    def __init__(
        self,
        room_repo: RoomRepository,
        item_repo: ItemRepository,
        item_type_repo: ItemTypeRepository,
        gateway: RoomGateway,
        notify=broadcast_event_to_room,
    ):
        self.room_repo = room_repo
        self.item_repo = item_repo
        self.item_type_repo = item_type_repo
        self.gateway = gateway
        self.notify = notify

    async def _owned_room(self, room_id: str, uid: str, action: str) -> dict:
        room = await self.get_room(room_id)
        if room["owner"]["uid"] != uid:
            raise AuthorizationError(f"Only room owner can {action}")
        return room

    async def create_room(self, uid: str, data: dict) -> str:
        name = _check_name(data.get("name"))
        item_type_id = data.get("item_type_id")
        if not item_type_id or not await self.item_type_repo.get_by_id(item_type_id):
            raise NotFoundError("Item type not found")

        owner = await self.gateway.user_ref(uid)
        room_id = uuid.uuid4().hex
        await self.room_repo.create({
            "id": room_id,
            "name": name,
            "description": data.get("description"),
            "owner": owner,
            "created_at": datetime.now(timezone.utc),
            "member_ids": [],
            "item_type_id": item_type_id,
            "history": [new_action("room_updated", owner, "Room created")],
        })

        # オーナーは自動で参加
        await self.gateway.add_member(uid, room_id)
        await self.item_repo.ensure(uid, room_id)
        logger.info("Room %s created by %s", room_id, uid)
        return room_id

    async def get_room(self, room_id: str, include_history: bool = True) -> dict:
        room = await self.room_repo.get_by_id(room_id, include_history)
        if not room:
            raise NotFoundError("Room not found")
        return room

    async def list_user_rooms(self, uid: str):
        return await self.room_repo.list_rooms_for_user(uid)

    async def update_room(self, room_id: str, updates: dict, current_uid: str):
        room = await self._owned_room(room_id, current_uid, "update the room")
        allowed = {k: v for k, v in updates.items() if k in ("name", "description")}
        if "name" in allowed:
            allowed["name"] = _check_name(allowed["name"])
        if not allowed:
            return False

        ok = await self.room_repo.update(room_id, allowed)
        performer = await self.gateway.user_ref(current_uid)
        await self.room_repo.append_history(
            room_id, new_action("room_updated", performer, "Room details updated")
        )
        await self.notify(room_id, {"type": "room_updated", "room_id": room_id})
        return ok

    async def delete_room(self, room_id: str, current_uid: str):
        room = await self._owned_room(room_id, current_uid, "delete the room")
        # 削除前に通知（削除後はメンバーが引けない）
        await self.notify(room_id, {"type": "room_deleted", "room_id": room_id})
        await self.item_repo.delete_by_room(room_id)
        for member_id in room.get("member_ids", []):
            await self.gateway.remove_member(member_id, room_id)
        await self.room_repo.delete(room_id)
        logger.info("Room %s deleted by %s", room_id, current_uid)
        return True

    async def join_room(self, room_id: str, uid: str) -> bool:
        """Add `uid` to the room; False when they were already in it."""
        room = await self.get_room(room_id, include_history=False)
        if room["owner"]["uid"] == uid or uid in room.get("member_ids", []):
            return False

        await self.gateway.add_member(uid, room_id)
        await self.item_repo.ensure(uid, room_id)
        performer = await self.gateway.user_ref(uid)
        await self.room_repo.append_history(
            room_id,
            new_action("user_joined", performer, f"{performer['display_name']} joined the room", uid),
        )
        await self.notify(room_id, {"type": "member_joined", "room_id": room_id, "uid": uid})
        logger.info("User %s joined room %s", uid, room_id)
        return True

    async def leave_room(self, room_id: str, uid: str):
        room = await self.get_room(room_id, include_history=False)
        if room["owner"]["uid"] == uid:
            raise ValidationError("Room owner cannot leave the room; delete it instead")
        if uid not in room.get("member_ids", []):
            raise NotFoundError("User is not in the room")

        await self.gateway.remove_member(uid, room_id)
        await self.item_repo.delete(uid, room_id)
        performer = await self.gateway.user_ref(uid)
        await self.room_repo.append_history(
            room_id,
            new_action("user_left", performer, f"{performer['display_name']} left the room", uid),
        )
        await self.notify(room_id, {"type": "member_left", "room_id": room_id, "uid": uid})
        return True

    async def kick_member(self, room_id: str, target_uid: str, current_uid: str):
        room = await self._owned_room(room_id, current_uid, "kick users")
        if target_uid == current_uid:
            raise ValidationError("Room owner cannot kick themselves")
        if target_uid not in room.get("member_ids", []):
            raise NotFoundError("User is not in the room")

        await self.gateway.remove_member(target_uid, room_id)
        await self.item_repo.delete(target_uid, room_id)

        performer = await self.gateway.user_ref(current_uid)
        kicked = await self.gateway.user_ref(target_uid)
        await self.room_repo.append_history(
            room_id,
            new_action(
                "user_left",
                performer,
                f"{kicked['display_name']} was kicked by {performer['display_name']}",
                target_uid,
            ),
        )
        await self.notify(room_id, {"type": "member_left", "room_id": room_id, "uid": target_uid})
        return True
