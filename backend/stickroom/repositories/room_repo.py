from motor.motor_asyncio import AsyncIOMotorDatabase
from stickroom.db import backend_call
from typing import Optional, List
from datetime import datetime, timezone


def _clean(doc: Optional[dict]) -> Optional[dict]:
    # ObjectId を取り除く
    if doc is not None:
        doc.pop("_id", None)
        doc.setdefault("history", [])
        doc.setdefault("member_ids", [])
    return doc


class RoomRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.rooms

    @backend_call
    async def exists(self, room_id: str) -> bool:
        doc = await self.collection.find_one({"id": room_id}, {"_id": 1})
        return doc is not None

    @backend_call
    async def create(self, data: dict) -> str:
        data.setdefault("created_at", datetime.now(timezone.utc))
        data.setdefault("history", [])
        data.setdefault("member_ids", [])
        await self.collection.insert_one(data)
        return data["id"]

    @backend_call
    async def get_by_id(self, room_id: str, include_history: bool = True) -> Optional[dict]:
        projection = None if include_history else {"history": 0}
        doc = await self.collection.find_one({"id": room_id}, projection)
        return _clean(doc)

    @backend_call
    async def update(self, room_id: str, updates: dict) -> bool:
        updates = {**updates, "updated_at": datetime.now(timezone.utc)}
        result = await self.collection.update_one({"id": room_id}, {"$set": updates})
        return result.modified_count == 1

    @backend_call
    async def delete(self, room_id: str) -> bool:
        result = await self.collection.delete_one({"id": room_id})
        return result.deleted_count == 1

    @backend_call
    async def list_rooms_for_user(self, uid: str) -> List[dict]:
        cursor = self.collection.find({"member_ids": uid}, {"history": 0})
        docs = await cursor.to_list(length=100)
        return [_clean(d) for d in docs]

    @backend_call
    async def add_member(self, room_id: str, uid: str) -> bool:
        result = await self.collection.update_one(
            {"id": room_id},
            {
                "$addToSet": {"member_ids": uid},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
        return result.modified_count == 1

    @backend_call
    async def remove_member(self, room_id: str, uid: str) -> bool:
        result = await self.collection.update_one(
            {"id": room_id},
            {
                "$pull": {"member_ids": uid},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
        return result.modified_count == 1

    @backend_call
    async def append_history(self, room_id: str, action: dict) -> None:
        await self.collection.update_one(
            {"id": room_id},
            {
                "$push": {"history": action},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
