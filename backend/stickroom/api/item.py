# stickroom/api/item.py

from fastapi import APIRouter, Depends
from typing import List

from stickroom.api.room import get_gateway
from stickroom.db import get_db
from stickroom.repositories.item_repo import ItemRepository
from stickroom.repositories.item_type_repo import ItemTypeRepository
from stickroom.repositories.room_repo import RoomRepository
from stickroom.schemas import (
    ItemCreate,
    ItemTypeCreate,
    ItemTypeResponse,
    ScoreResponse,
    ScoreUpdate,
    UserItemsResponse,
)
from stickroom.services.item_service import ItemService
from stickroom.services.item_type_service import ItemTypeService
from stickroom.utils import get_current_uid
from stickroom.models import Item

router = APIRouter()


# ---- Dependency factories ----

def get_item_type_service(db=Depends(get_db)) -> ItemTypeService:
    return ItemTypeService(ItemTypeRepository(db))

def get_item_service(db=Depends(get_db), gateway=Depends(get_gateway)) -> ItemService:
    return ItemService(
        item_repo=ItemRepository(db),
        item_type_repo=ItemTypeRepository(db),
        room_repo=RoomRepository(db),
        gateway=gateway,
    )


# ---- Item type endpoints ----

@router.get("/item-types", response_model=List[ItemTypeResponse])
async def list_item_types(
    current_uid: str = Depends(get_current_uid),
    service: ItemTypeService = Depends(get_item_type_service),
):
    return await service.list_available(current_uid)

@router.get("/item-types/{type_id}", response_model=ItemTypeResponse)
async def get_item_type(
    type_id: str,
    service: ItemTypeService = Depends(get_item_type_service),
):
    return await service.get_type(type_id)

@router.post("/item-types", response_model=dict)
async def create_item_type(
    data: ItemTypeCreate,
    current_uid: str = Depends(get_current_uid),
    service: ItemTypeService = Depends(get_item_type_service),
):
    type_id = await service.create_custom(data.model_dump(), current_uid)
    return {"item_type_id": type_id}


# ---- Item endpoints ----

@router.get("/rooms/{room_id}/items", response_model=List[UserItemsResponse])
async def room_items(
    room_id: str,
    current_uid: str = Depends(get_current_uid),
    service: ItemService = Depends(get_item_service),
):
    return await service.get_room_items(room_id, current_uid)

@router.post("/rooms/{room_id}/items", response_model=Item)
async def add_item(
    room_id: str,
    data: ItemCreate,
    current_uid: str = Depends(get_current_uid),
    service: ItemService = Depends(get_item_service),
):
    return await service.add_item(
        user_id=data.user_id or current_uid,
        room_id=room_id,
        option_id=data.option_id,
        count=data.count,
        performed_by=current_uid,
        is_removed=data.is_removed,
        comment=data.comment,
    )

@router.get("/rooms/{room_id}/scores", response_model=List[ScoreResponse])
async def room_scores(
    room_id: str,
    current_uid: str = Depends(get_current_uid),
    service: ItemService = Depends(get_item_service),
):
    return await service.room_scores(room_id, current_uid)

@router.put("/rooms/{room_id}/scores")
async def set_score(
    room_id: str,
    data: ScoreUpdate,
    current_uid: str = Depends(get_current_uid),
    service: ItemService = Depends(get_item_service),
):
    adjustment = await service.set_user_score(
        data.user_id, room_id, data.option_id, data.score, current_uid
    )
    return {"ok": True, "adjusted": adjustment is not None}
