# stickroom/services/item_service.py

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError as SchemaError

from stickroom.errors import AuthorizationError, NotFoundError, ValidationError
from stickroom.models import AggregatedItem, Item, ItemType
from stickroom.repositories.item_repo import ItemRepository
from stickroom.repositories.item_type_repo import ItemTypeRepository
from stickroom.repositories.room_repo import RoomRepository
from stickroom.services.gateway import RoomGateway
from stickroom.services.room_service import new_action
from stickroom.ws import broadcast_event_to_room

logger = logging.getLogger(__name__)


def aggregate(items: Iterable[Item], item_type: ItemType) -> List[AggregatedItem]:
    """Fold add/remove events into net totals per option.

    Removals subtract, so partial sums may go negative while folding; only
    options whose final count is positive are returned. Events whose option
    is no longer in the type's catalog are ignored. Output order is not
    meaningful.
    """
    options = {opt.id: opt for opt in item_type.options}
    totals: Dict[str, Tuple[int, int]] = {}

    for item in items:
        option = options.get(item.option_id)
        if option is None:
            continue
        delta = -item.count if item.is_removed else item.count
        count, points = totals.get(item.option_id, (0, 0))
        totals[item.option_id] = (count + delta, points + delta * option.points)

    return [
        AggregatedItem(
            option_id=option_id,
            option=options[option_id],
            count=count,
            total_points=points,
        )
        for option_id, (count, points) in totals.items()
        if count > 0
    ]


def _to_items(raw: Iterable[dict]) -> List[Item]:
    return [Item.model_validate(i) for i in raw]


class ItemService:
    def __init__(
        self,
        item_repo: ItemRepository,
        item_type_repo: ItemTypeRepository,
        room_repo: RoomRepository,
        gateway: RoomGateway,
        notify=broadcast_event_to_room,
    ):
        self.item_repo = item_repo
        self.item_type_repo = item_type_repo
        self.room_repo = room_repo
        self.gateway = gateway
        self.notify = notify

    async def _room(self, room_id: str) -> dict:
        room = await self.gateway.get_room(room_id)
        if not room:
            raise NotFoundError("Room not found")
        return room

    async def _item_type(self, room: dict) -> ItemType:
        raw = await self.item_type_repo.get_by_id(room["item_type_id"])
        if not raw:
            raise NotFoundError("Item type not found")
        return ItemType.model_validate(raw)

    async def get_user_items(self, user_id: str, room_id: str) -> List[Item]:
        doc = await self.item_repo.get(user_id, room_id)
        return _to_items(doc["items"]) if doc else []

    async def _member_room(self, room_id: str, uid: str) -> dict:
        room = await self._room(room_id)
        if room["owner"]["uid"] != uid and uid not in room.get("member_ids", []):
            raise AuthorizationError("Only room members can view items")
        return room

    async def get_room_items(self, room_id: str, requesting_uid: str) -> List[dict]:
        await self._member_room(room_id, requesting_uid)
        return await self.item_repo.list_by_room(room_id)

    async def add_item(
        self,
        user_id: str,
        room_id: str,
        option_id: str,
        count: int = 1,
        performed_by: Optional[str] = None,
        is_removed: bool = False,
        comment: Optional[str] = None,
    ) -> Item:
        performed_by = performed_by or user_id
        room = await self._room(room_id)

        # 他人のアイテムを触れるのはオーナーだけ
        if performed_by != user_id and room["owner"]["uid"] != performed_by:
            raise AuthorizationError("Only room owner can modify other users' items")
        if user_id not in room.get("member_ids", []):
            if performed_by == user_id:
                raise AuthorizationError("Only room members can add items")
            raise NotFoundError("User is not in the room")

        item_type = await self._item_type(room)
        if not any(opt.id == option_id for opt in item_type.options):
            raise ValidationError("Unknown option for this room's item type")

        try:
            item = Item(
                id=f"item_{uuid.uuid4().hex[:12]}",
                option_id=option_id,
                count=count,
                created_at=datetime.now(timezone.utc),
                is_removed=is_removed,
                comment=comment,
            )
        except SchemaError as e:
            raise ValidationError(str(e)) from e

        await self._append(room_id, user_id, performed_by, item)
        return item

    async def set_user_score(
        self,
        target_uid: str,
        room_id: str,
        option_id: str,
        new_score: int,
        performed_by: str,
    ) -> Optional[Item]:
        room = await self._room(room_id)
        if room["owner"]["uid"] != performed_by:
            raise AuthorizationError("Only room owner can set user scores")
        if new_score < 0:
            raise ValidationError("Score cannot be negative")

        doc = await self.item_repo.get(target_uid, room_id)
        if not doc:
            raise NotFoundError("User not found in room")

        item_type = await self._item_type(room)
        if not any(opt.id == option_id for opt in item_type.options):
            raise ValidationError("Unknown option for this room's item type")

        current = next(
            (a.count for a in aggregate(_to_items(doc["items"]), item_type) if a.option_id == option_id),
            0,
        )
        difference = new_score - current
        if difference == 0:
            return None

        # 差分を追加 or 取り消しイベントとして記録する
        item = Item(
            id=f"adjustment_{uuid.uuid4().hex[:12]}",
            option_id=option_id,
            count=abs(difference),
            created_at=datetime.now(timezone.utc),
            is_removed=difference < 0,
            comment=f"Score adjusted by owner to {new_score}",
        )
        await self._append(room_id, target_uid, performed_by, item)
        return item

    async def _append(self, room_id: str, user_id: str, performed_by: str, item: Item) -> None:
        doc = await self.item_repo.ensure(user_id, room_id)
        await self.item_repo.push_item(doc["id"], item.model_dump())

        performer = await self.gateway.user_ref(performed_by)
        action_type = "item_removed" if item.is_removed else "item_added"
        verb = "removed" if item.is_removed else "added"
        await self.room_repo.append_history(
            room_id,
            new_action(
                action_type,
                performer,
                f"{performer['display_name']} {verb} {item.count} x {item.option_id}",
                user_id,
            ),
        )
        await self.notify(room_id, {
            "type": "items_updated",
            "room_id": room_id,
            "uid": user_id,
        })
        logger.info("Item %s recorded for %s in room %s", item.id, user_id, room_id)

    async def room_scores(self, room_id: str, requesting_uid: str) -> List[dict]:
        room = await self._member_room(room_id, requesting_uid)
        item_type = await self._item_type(room)
        scores = []
        for doc in await self.item_repo.list_by_room(room_id):
            aggregated = aggregate(_to_items(doc.get("items", [])), item_type)
            scores.append({
                "user_id": doc["user_id"],
                "items": aggregated,
                "total_points": sum(a.total_points for a in aggregated),
            })
        scores.sort(key=lambda s: s["total_points"], reverse=True)
        return scores
