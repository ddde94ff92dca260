from motor.motor_asyncio import AsyncIOMotorDatabase
from stickroom.db import backend_call
from typing import Optional, List


class InvitationRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.room_invitations

    @backend_call
    async def create(self, data: dict) -> str:
        await self.collection.insert_one(data)
        data.pop("_id", None)
        return data["id"]

    @backend_call
    async def get_by_id(self, invitation_id: str) -> Optional[dict]:
        return await self.collection.find_one({"id": invitation_id}, {"_id": 0})

    @backend_call
    async def find_active_by_token(self, token: str) -> Optional[dict]:
        return await self.collection.find_one(
            {"token": token, "is_active": True}, {"_id": 0}
        )

    @backend_call
    async def list_active_by_room(self, room_id: str) -> List[dict]:
        cursor = self.collection.find({"room_id": room_id, "is_active": True}, {"_id": 0})
        return await cursor.to_list(length=100)

    @backend_call
    async def list_active(self) -> List[dict]:
        cursor = self.collection.find({"is_active": True}, {"_id": 0})
        return await cursor.to_list(length=1000)

    @backend_call
    async def deactivate(self, invitation_id: str) -> None:
        # 一方向: 再有効化はしない
        await self.collection.update_one(
            {"id": invitation_id}, {"$set": {"is_active": False}}
        )

    @backend_call
    async def increment_used(self, invitation_id: str) -> None:
        await self.collection.update_one(
            {"id": invitation_id}, {"$inc": {"used_count": 1}}
        )
