import logging
from typing import Dict, List, Optional

from stickroom.cache import MemoryCache
from stickroom.errors import NotFoundError
from stickroom.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

USER_CACHE_TTL = 5 * 60


def _cache_key(uid: str) -> str:
    return f"user_{uid}"


class UserService:
    def __init__(self, repo: UserRepository, cache: MemoryCache):
        self.repo = repo
        self.cache = cache

    # uid = 認証プロバイダの sub
    async def ensure_user(self, uid: str, user_data: dict) -> dict:
        exists = await self.repo.get_by_uid(uid)
        if exists:
            return exists
        data = {k: v for k, v in user_data.items() if k != "joined_rooms"}
        data["uid"] = uid
        await self.repo.create(data)
        self.cache.clear(_cache_key(uid))
        logger.info("Registered user %s", uid)
        return await self.repo.get_by_uid(uid)

    async def get_user(self, uid: str) -> Optional[dict]:
        return await self.cache.get_or_fetch(
            _cache_key(uid), lambda: self.repo.get_by_uid(uid), USER_CACHE_TTL
        )

    async def require_user(self, uid: str) -> dict:
        user = await self.get_user(uid)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def get_users_by_ids(self, uids: List[str]) -> Dict[str, dict]:
        users: Dict[str, dict] = {}
        uncached = []
        for uid in uids:
            cached = self.cache.get(_cache_key(uid))
            if cached is not None:
                users[uid] = cached
            else:
                uncached.append(uid)

        if uncached:
            for user in await self.repo.get_many(uncached):
                users[user["uid"]] = user
                self.cache.set(_cache_key(user["uid"]), user, USER_CACHE_TTL)
        return users

    async def add_room_to_user(self, uid: str, room_id: str) -> None:
        await self.repo.add_room(uid, room_id)
        self.cache.clear(_cache_key(uid))

    async def remove_room_from_user(self, uid: str, room_id: str) -> None:
        await self.repo.remove_room(uid, room_id)
        self.cache.clear(_cache_key(uid))

    async def update_profile(self, uid: str, updates: dict) -> bool:
        if "joined_rooms" in updates:
            logger.warning(
                "update_profile: joined_rooms cannot be updated directly (uid=%s)", uid
            )
            updates = {k: v for k, v in updates.items() if k != "joined_rooms"}
        ok = await self.repo.update_profile(uid, updates)
        if not ok:
            raise NotFoundError("User not found")
        self.cache.clear(_cache_key(uid))
        return ok
