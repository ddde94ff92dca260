from motor.motor_asyncio import AsyncIOMotorDatabase
from stickroom.db import backend_call
from typing import Optional, List
from datetime import datetime, timezone


class UserRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db.users

    @backend_call
    async def get_by_uid(self, uid: str) -> Optional[dict]:
        return await self.collection.find_one({"uid": uid}, {"_id": 0})

    @backend_call
    async def get_many(self, uids: List[str]) -> List[dict]:
        cursor = self.collection.find({"uid": {"$in": uids}}, {"_id": 0})
        return await cursor.to_list(length=len(uids))

    @backend_call
    async def create(self, data: dict) -> str:
        data["created_at"] = datetime.now(timezone.utc)
        data.setdefault("joined_rooms", [])
        await self.collection.insert_one(data)
        return data["uid"]

    @backend_call
    async def update_profile(self, uid: str, updates: dict) -> bool:
        result = await self.collection.update_one(
            {"uid": uid},
            {"$set": {**updates, "updated_at": datetime.now(timezone.utc)}},
        )
        return result.matched_count == 1

    @backend_call
    async def add_room(self, uid: str, room_id: str) -> None:
        # ドキュメントが無ければ作る
        await self.collection.update_one(
            {"uid": uid},
            {
                "$addToSet": {"joined_rooms": room_id},
                "$set": {"updated_at": datetime.now(timezone.utc)},
                "$setOnInsert": {
                    "uid": uid,
                    "display_name": uid,
                    "created_at": datetime.now(timezone.utc),
                },
            },
            upsert=True,
        )

    @backend_call
    async def remove_room(self, uid: str, room_id: str) -> None:
        await self.collection.update_one(
            {"uid": uid},
            {
                "$pull": {"joined_rooms": room_id},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
