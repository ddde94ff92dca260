from motor.motor_asyncio import AsyncIOMotorDatabase
from stickroom.db import backend_call
from typing import Optional, List
from datetime import datetime, timezone


class ItemTypeRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.item_types

    @backend_call
    async def list_generic(self) -> List[dict]:
        cursor = self.collection.find({"is_generic": True}, {"_id": 0}).sort("created_at", 1)
        return await cursor.to_list(length=100)

    @backend_call
    async def list_by_creator(self, uid: str) -> List[dict]:
        cursor = self.collection.find({"created_by": uid}, {"_id": 0}).sort("created_at", -1)
        return await cursor.to_list(length=100)

    @backend_call
    async def get_by_id(self, type_id: str) -> Optional[dict]:
        return await self.collection.find_one({"id": type_id}, {"_id": 0})

    @backend_call
    async def create(self, data: dict) -> str:
        now = datetime.now(timezone.utc)
        data.setdefault("created_at", now)
        data.setdefault("updated_at", now)
        await self.collection.insert_one(data)
        return data["id"]
