import asyncio
from types import SimpleNamespace

import pytest

from conftest import DownCollection
from stickroom.errors import AuthorizationError, GatewayError, NotFoundError, ValidationError
from stickroom.repositories.invitation_repo import InvitationRepository
from stickroom.repositories.item_repo import ItemRepository
from stickroom.repositories.room_repo import RoomRepository


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def room_id(world):
    room_id = run(world.rooms.create_room("alice", {"name": "Friday", "item_type_id": "drinks"}))
    run(world.gateway.add_member("bob", room_id))
    return room_id


def test_create_room_makes_owner_a_member(world):
    room_id = run(world.rooms.create_room("alice", {"name": " Friday ", "item_type_id": "drinks"}))

    room = run(world.rooms.get_room(room_id))
    assert room["name"] == "Friday"
    assert room["owner"] == {"uid": "alice", "display_name": "Alice"}
    assert room["member_ids"] == ["alice"]
    assert room["history"][0]["type"] == "room_updated"
    assert ("alice", room_id) in world.item_repo.docs
    assert room_id in world.user_repo.users["alice"]["joined_rooms"]


def test_create_room_validates_input(world):
    with pytest.raises(ValidationError):
        run(world.rooms.create_room("alice", {"name": "", "item_type_id": "drinks"}))
    with pytest.raises(NotFoundError):
        run(world.rooms.create_room("alice", {"name": "x", "item_type_id": "nope"}))


def test_only_owner_updates_room(world, room_id):
    with pytest.raises(AuthorizationError):
        run(world.rooms.update_room(room_id, {"name": "Mine"}, "bob"))

    run(world.rooms.update_room(room_id, {"name": "Saturday", "owner": "bob"}, "alice"))

    room = world.room_repo.rooms[room_id]
    assert room["name"] == "Saturday"
    assert room["owner"]["uid"] == "alice"
    assert "room_updated" in world.events.types()


def test_member_adds_own_items(world, room_id):
    item = run(world.items.add_item("bob", room_id, "beer", count=2, comment="cheers"))

    assert item.count == 2 and not item.is_removed
    stored = run(world.items.get_user_items("bob", room_id))
    assert [i.id for i in stored] == [item.id]
    assert world.room_repo.rooms[room_id]["history"][-1]["type"] == "item_added"
    assert world.events.events[-1] == (
        room_id, {"type": "items_updated", "room_id": room_id, "uid": "bob"}
    )


def test_add_item_rules(world, room_id):
    with pytest.raises(AuthorizationError):
        run(world.items.add_item("alice", room_id, "beer", performed_by="bob"))
    with pytest.raises(AuthorizationError):
        run(world.items.add_item("carol", room_id, "beer"))
    with pytest.raises(NotFoundError):
        run(world.items.add_item("carol", room_id, "beer", performed_by="alice"))
    with pytest.raises(ValidationError):
        run(world.items.add_item("bob", room_id, "whisky"))
    with pytest.raises(ValidationError):
        run(world.items.add_item("bob", room_id, "beer", count=0))
    with pytest.raises(ValidationError):
        run(world.items.add_item("bob", room_id, "beer", comment="x" * 201))

    # オーナーは他人の分も記録できる
    run(world.items.add_item("bob", room_id, "wine", performed_by="alice"))
    assert len(run(world.items.get_user_items("bob", room_id))) == 1


def test_owner_sets_score_with_adjustment_events(world, room_id):
    run(world.items.add_item("bob", room_id, "beer", count=5))
    run(world.items.add_item("bob", room_id, "beer", count=1, is_removed=True))

    down = run(world.items.set_user_score("bob", room_id, "beer", 2, "alice"))
    assert down.is_removed and down.count == 2
    assert down.comment == "Score adjusted by owner to 2"

    up = run(world.items.set_user_score("bob", room_id, "beer", 6, "alice"))
    assert not up.is_removed and up.count == 4

    assert run(world.items.set_user_score("bob", room_id, "beer", 6, "alice")) is None

    scores = run(world.items.room_scores(room_id, "alice"))
    bob = next(s for s in scores if s["user_id"] == "bob")
    assert [(a.option_id, a.count) for a in bob["items"]] == [("beer", 6)]
    assert bob["total_points"] == 30


def test_set_score_rules(world, room_id):
    with pytest.raises(AuthorizationError):
        run(world.items.set_user_score("bob", room_id, "beer", 1, "bob"))
    with pytest.raises(ValidationError):
        run(world.items.set_user_score("bob", room_id, "beer", -1, "alice"))
    with pytest.raises(NotFoundError):
        run(world.items.set_user_score("carol", room_id, "beer", 1, "alice"))


def test_room_scores_sorted_by_points(world, room_id):
    run(world.items.add_item("alice", room_id, "wine", count=1))
    run(world.items.add_item("bob", room_id, "beer", count=2))

    scores = run(world.items.room_scores(room_id, "alice"))

    assert [(s["user_id"], s["total_points"]) for s in scores] == [("bob", 10), ("alice", 3)]


def test_kick_rules(world, room_id):
    with pytest.raises(AuthorizationError):
        run(world.rooms.kick_member(room_id, "alice", "bob"))
    with pytest.raises(ValidationError):
        run(world.rooms.kick_member(room_id, "alice", "alice"))
    with pytest.raises(NotFoundError):
        run(world.rooms.kick_member(room_id, "carol", "alice"))

    run(world.items.add_item("bob", room_id, "beer"))
    run(world.rooms.kick_member(room_id, "bob", "alice"))

    assert world.room_repo.rooms[room_id]["member_ids"] == ["alice"]
    assert ("bob", room_id) not in world.item_repo.docs
    assert "was kicked by Alice" in world.room_repo.rooms[room_id]["history"][-1]["details"]


def test_leave_room(world, room_id):
    with pytest.raises(ValidationError):
        run(world.rooms.leave_room(room_id, "alice"))

    run(world.rooms.leave_room(room_id, "bob"))

    assert not run(world.gateway.is_member("bob", room_id))
    assert room_id not in world.user_repo.users["bob"]["joined_rooms"]
    with pytest.raises(NotFoundError):
        run(world.rooms.leave_room(room_id, "bob"))


def test_delete_room_cleans_up(world, room_id):
    run(world.items.add_item("bob", room_id, "beer"))

    with pytest.raises(AuthorizationError):
        run(world.rooms.delete_room(room_id, "bob"))

    run(world.rooms.delete_room(room_id, "alice"))

    assert room_id not in world.room_repo.rooms
    assert world.item_repo.docs == {}
    assert room_id not in world.user_repo.users["bob"]["joined_rooms"]
    assert world.events.types()[-1] == "room_deleted"
    with pytest.raises(NotFoundError):
        run(world.rooms.get_room(room_id))


def test_list_user_rooms(world, room_id):
    assert [r["id"] for r in run(world.rooms.list_user_rooms("bob"))] == [room_id]
    assert run(world.rooms.list_user_rooms("carol")) == []


def test_item_types_catalog(world):
    type_id = run(world.item_types.create_custom(
        {"name": "Snacks", "options": [{"name": "Chips", "emoji": "🥔", "points": 1}]},
        "bob",
    ))

    created = run(world.item_types.get_type(type_id))
    assert created["is_generic"] is False
    assert created["options"][0]["id"].startswith("opt_")

    assert [t["id"] for t in run(world.item_types.list_available("bob"))] == ["drinks", type_id]
    assert [t["id"] for t in run(world.item_types.list_available("alice"))] == ["drinks"]

    with pytest.raises(ValidationError):
        run(world.item_types.create_custom({"name": "Empty", "options": []}, "bob"))
    with pytest.raises(ValidationError):
        run(world.item_types.create_custom(
            {"name": "Bad", "options": [{"name": "x", "points": "many"}]}, "bob"
        ))
    with pytest.raises(NotFoundError):
        run(world.item_types.get_type("missing"))


def test_outsiders_cannot_view_items_or_scores(world, room_id):
    with pytest.raises(AuthorizationError):
        run(world.items.get_room_items(room_id, "carol"))
    with pytest.raises(AuthorizationError):
        run(world.items.room_scores(room_id, "carol"))

    assert len(run(world.items.get_room_items(room_id, "bob"))) == 1


def test_store_failures_surface_as_gateway_errors():
    down = SimpleNamespace(
        rooms=DownCollection(),
        user_room_items=DownCollection(),
        room_invitations=DownCollection(),
    )

    with pytest.raises(GatewayError):
        run(RoomRepository(down).append_history("r1", {"type": "user_joined"}))
    with pytest.raises(GatewayError):
        run(ItemRepository(down).push_item("doc1", {"option_id": "beer"}))
    with pytest.raises(GatewayError):
        run(InvitationRepository(down).increment_used("inv1"))
