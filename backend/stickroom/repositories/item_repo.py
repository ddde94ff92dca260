from motor.motor_asyncio import AsyncIOMotorDatabase
from stickroom.db import backend_call
from typing import Optional, List
from datetime import datetime, timezone
import uuid


class ItemRepository:
    """One document per (user, room) holding that user's item events."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.user_room_items

    @backend_call
    async def get(self, user_id: str, room_id: str) -> Optional[dict]:
        return await self.collection.find_one(
            {"user_id": user_id, "room_id": room_id}, {"_id": 0}
        )

    @backend_call
    async def ensure(self, user_id: str, room_id: str) -> dict:
        existing = await self.get(user_id, room_id)
        if existing:
            return existing
        doc = {
            "id": uuid.uuid4().hex,
            "user_id": user_id,
            "room_id": room_id,
            "items": [],
            "created_at": datetime.now(timezone.utc),
        }
        await self.collection.insert_one(doc)
        doc.pop("_id", None)
        return doc

    @backend_call
    async def push_item(self, doc_id: str, item: dict) -> bool:
        # 既存のイベントは書き換えない（追記のみ）
        result = await self.collection.update_one(
            {"id": doc_id},
            {
                "$push": {"items": item},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
        return result.modified_count == 1

    @backend_call
    async def list_by_room(self, room_id: str) -> List[dict]:
        cursor = self.collection.find({"room_id": room_id}, {"_id": 0}).sort("created_at", 1)
        return await cursor.to_list(length=1000)

    @backend_call
    async def delete(self, user_id: str, room_id: str) -> bool:
        result = await self.collection.delete_one({"user_id": user_id, "room_id": room_id})
        return result.deleted_count == 1

    @backend_call
    async def delete_by_room(self, room_id: str) -> int:
        result = await self.collection.delete_many({"room_id": room_id})
        return result.deleted_count
