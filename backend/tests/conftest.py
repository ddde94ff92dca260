import copy
import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from pymongo.errors import PyMongoError

# 設定はインポート時に読まれるので先に環境変数を用意する
os.environ.setdefault("AUTH_PROVIDER", "supabase")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")

from stickroom.cache import MemoryCache
from stickroom.services.gateway import RoomGateway
from stickroom.services.invitation_service import InvitationService
from stickroom.services.item_service import ItemService
from stickroom.services.item_type_service import ItemTypeService
from stickroom.services.room_service import RoomService
from stickroom.services.user_service import UserService


T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Fixed time that the test moves forward explicitly."""

    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class TickingClock(Clock):
    """Moves forward one minute on every read."""

    def __call__(self):
        current = self.now
        self.now += timedelta(minutes=1)
        return current


# ---- In-memory repositories ----

class FakeRoomRepo:
    def __init__(self):
        self.rooms = {}

    async def exists(self, room_id):
        return room_id in self.rooms

    async def create(self, data):
        data.setdefault("history", [])
        data.setdefault("member_ids", [])
        self.rooms[data["id"]] = copy.deepcopy(data)
        return data["id"]

    async def get_by_id(self, room_id, include_history=True):
        room = copy.deepcopy(self.rooms.get(room_id))
        if room is not None and not include_history:
            room.pop("history", None)
        return room

    async def update(self, room_id, updates):
        if room_id not in self.rooms:
            return False
        self.rooms[room_id].update(updates)
        return True

    async def delete(self, room_id):
        return self.rooms.pop(room_id, None) is not None

    async def list_rooms_for_user(self, uid):
        return [copy.deepcopy(r) for r in self.rooms.values() if uid in r["member_ids"]]

    async def add_member(self, room_id, uid):
        members = self.rooms[room_id]["member_ids"]
        if uid not in members:
            members.append(uid)
            return True
        return False

    async def remove_member(self, room_id, uid):
        members = self.rooms[room_id]["member_ids"]
        if uid in members:
            members.remove(uid)
            return True
        return False

    async def append_history(self, room_id, action):
        self.rooms[room_id]["history"].append(copy.deepcopy(action))


class FakeUserRepo:
    def __init__(self):
        self.users = {}

    async def get_by_uid(self, uid):
        return copy.deepcopy(self.users.get(uid))

    async def get_many(self, uids):
        return [copy.deepcopy(self.users[u]) for u in uids if u in self.users]

    async def create(self, data):
        data = {**data, "created_at": T0}
        data.setdefault("joined_rooms", [])
        self.users[data["uid"]] = data
        return data["uid"]

    async def update_profile(self, uid, updates):
        if uid not in self.users:
            return False
        self.users[uid].update(updates)
        return True

    async def add_room(self, uid, room_id):
        user = self.users.setdefault(
            uid, {"uid": uid, "display_name": uid, "joined_rooms": [], "created_at": T0}
        )
        if room_id not in user["joined_rooms"]:
            user["joined_rooms"].append(room_id)

    async def remove_room(self, uid, room_id):
        user = self.users.get(uid)
        if user and room_id in user["joined_rooms"]:
            user["joined_rooms"].remove(room_id)


class FakeItemTypeRepo:
    def __init__(self):
        self.types = {}

    async def list_generic(self):
        found = [t for t in self.types.values() if t.get("is_generic")]
        return copy.deepcopy(sorted(found, key=lambda t: t["created_at"]))

    async def list_by_creator(self, uid):
        found = [t for t in self.types.values() if t.get("created_by") == uid]
        return copy.deepcopy(sorted(found, key=lambda t: t["created_at"], reverse=True))

    async def get_by_id(self, type_id):
        return copy.deepcopy(self.types.get(type_id))

    async def create(self, data):
        self.types[data["id"]] = copy.deepcopy(data)
        return data["id"]


class FakeItemRepo:
    def __init__(self):
        self.docs = {}

    async def get(self, user_id, room_id):
        return copy.deepcopy(self.docs.get((user_id, room_id)))

    async def ensure(self, user_id, room_id):
        key = (user_id, room_id)
        if key not in self.docs:
            self.docs[key] = {
                "id": f"{user_id}:{room_id}",
                "user_id": user_id,
                "room_id": room_id,
                "items": [],
                "created_at": T0,
            }
        return copy.deepcopy(self.docs[key])

    async def push_item(self, doc_id, item):
        for doc in self.docs.values():
            if doc["id"] == doc_id:
                doc["items"].append(copy.deepcopy(item))
                return True
        return False

    async def list_by_room(self, room_id):
        return [copy.deepcopy(d) for d in self.docs.values() if d["room_id"] == room_id]

    async def delete(self, user_id, room_id):
        return self.docs.pop((user_id, room_id), None) is not None

    async def delete_by_room(self, room_id):
        keys = [k for k in self.docs if k[1] == room_id]
        for key in keys:
            del self.docs[key]
        return len(keys)


class FakeInvitationRepo:
    def __init__(self):
        self.invitations = {}

    async def create(self, data):
        self.invitations[data["id"]] = copy.deepcopy(data)
        return data["id"]

    async def get_by_id(self, invitation_id):
        return copy.deepcopy(self.invitations.get(invitation_id))

    async def find_active_by_token(self, token):
        for inv in self.invitations.values():
            if inv["token"] == token and inv["is_active"]:
                return copy.deepcopy(inv)
        return None

    async def list_active_by_room(self, room_id):
        return [
            copy.deepcopy(i) for i in self.invitations.values()
            if i["room_id"] == room_id and i["is_active"]
        ]

    async def list_active(self):
        return [copy.deepcopy(i) for i in self.invitations.values() if i["is_active"]]

    async def deactivate(self, invitation_id):
        self.invitations[invitation_id]["is_active"] = False

    async def increment_used(self, invitation_id):
        self.invitations[invitation_id]["used_count"] += 1

    def by_token(self, token):
        return next(i for i in self.invitations.values() if i["token"] == token)


class DownCollection:
    """A motor collection whose every call fails like an unreachable server."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise PyMongoError("down")
        return fail


class EventRecorder:
    def __init__(self):
        self.events = []

    async def __call__(self, room_id, event):
        self.events.append((room_id, event))

    def types(self):
        return [e["type"] for _, e in self.events]


GENERIC_TYPE = {
    "id": "drinks",
    "name": "Drinks",
    "description": None,
    "options": [
        {"id": "beer", "name": "Beer", "emoji": "🍺", "points": 5},
        {"id": "wine", "name": "Wine", "emoji": "🍷", "points": 3},
    ],
    "created_by": None,
    "is_generic": True,
    "created_at": T0,
    "updated_at": T0,
}


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def world(clock):
    room_repo = FakeRoomRepo()
    user_repo = FakeUserRepo()
    item_type_repo = FakeItemTypeRepo()
    item_repo = FakeItemRepo()
    invitation_repo = FakeInvitationRepo()
    events = EventRecorder()

    item_type_repo.types["drinks"] = copy.deepcopy(GENERIC_TYPE)
    for uid, name in (("alice", "Alice"), ("bob", "Bob"), ("carol", "Carol")):
        user_repo.users[uid] = {
            "uid": uid, "display_name": name, "joined_rooms": [], "created_at": T0,
        }

    cache = MemoryCache()
    user_service = UserService(user_repo, cache)
    gateway = RoomGateway(room_repo, user_service)
    tokens = iter(f"token{i:011d}" for i in range(1000))
    rooms = RoomService(room_repo, item_repo, item_type_repo, gateway, notify=events)

    return SimpleNamespace(
        clock=clock,
        cache=cache,
        events=events,
        room_repo=room_repo,
        user_repo=user_repo,
        item_type_repo=item_type_repo,
        item_repo=item_repo,
        invitation_repo=invitation_repo,
        user_service=user_service,
        gateway=gateway,
        rooms=rooms,
        items=ItemService(item_repo, item_type_repo, room_repo, gateway, notify=events),
        item_types=ItemTypeService(item_type_repo),
        invitations=InvitationService(
            invitation_repo, gateway, rooms, token_factory=lambda: next(tokens), clock=clock
        ),
    )
