"""Room and membership lookups used by the invitation, room and item services.

Each call is independently atomic at best; nothing here spans a transaction.
Store failures surface as `GatewayError` and are not retried.
"""

from typing import Optional

from stickroom.db import backend_call
from stickroom.repositories.room_repo import RoomRepository
from stickroom.services.user_service import UserService


class RoomGateway:
    def __init__(self, room_repo: RoomRepository, user_service: UserService):
        self.room_repo = room_repo
        self.user_service = user_service

    @backend_call
    async def get_room(self, room_id: str) -> Optional[dict]:
        return await self.room_repo.get_by_id(room_id, include_history=False)

    @backend_call
    async def is_member(self, user_id: str, room_id: str) -> bool:
        room = await self.room_repo.get_by_id(room_id, include_history=False)
        return bool(room) and user_id in room.get("member_ids", [])

    @backend_call
    async def add_member(self, user_id: str, room_id: str) -> None:
        await self.room_repo.add_member(room_id, user_id)
        await self.user_service.add_room_to_user(user_id, room_id)

    @backend_call
    async def remove_member(self, user_id: str, room_id: str) -> None:
        await self.room_repo.remove_member(room_id, user_id)
        await self.user_service.remove_room_from_user(user_id, room_id)

    @backend_call
    async def get_user_profile(self, user_id: str) -> Optional[dict]:
        return await self.user_service.get_user(user_id)

    async def user_ref(self, user_id: str) -> dict:
        profile = await self.get_user_profile(user_id)
        display_name = (profile or {}).get("display_name") or user_id
        return {"uid": user_id, "display_name": display_name}
