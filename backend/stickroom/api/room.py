from fastapi import APIRouter, Depends
from stickroom.services.room_service import RoomService
from stickroom.services.gateway import RoomGateway
from stickroom.repositories.room_repo import RoomRepository
from stickroom.repositories.item_repo import ItemRepository
from stickroom.repositories.item_type_repo import ItemTypeRepository
from stickroom.api.user import get_user_service
from stickroom.db import get_db, get_redis
from stickroom.schemas import RoomCreate, RoomResponse, RoomUpdate, KickBody
from typing import List
from stickroom.utils import get_current_uid

router = APIRouter()


def get_gateway(db=Depends(get_db), user_service=Depends(get_user_service)):
    return RoomGateway(RoomRepository(db), user_service)

def get_room_service(db=Depends(get_db), gateway=Depends(get_gateway)):
    return RoomService(RoomRepository(db), ItemRepository(db), ItemTypeRepository(db), gateway)

@router.post("/rooms", response_model=dict)
async def create_room(
    data: RoomCreate,
    current_uid: str = Depends(get_current_uid),
    service: RoomService = Depends(get_room_service),
):
    room_id = await service.create_room(current_uid, data.model_dump())
    return {"room_id": room_id}

@router.get("/rooms", response_model=List[RoomResponse])
async def list_rooms(
    current_uid: str = Depends(get_current_uid),
    service: RoomService = Depends(get_room_service),
):
    return await service.list_user_rooms(current_uid)

@router.get("/rooms/{room_id}/presence", response_model=List[str])
async def get_presence(
    room_id: str,
    current_uid: str = Depends(get_current_uid),
    redis=Depends(get_redis),
):
    members = await redis.smembers(f"presence:{room_id}")
    return list(members)

@router.get("/rooms/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: str,
    current_uid: str = Depends(get_current_uid),
    service: RoomService = Depends(get_room_service),
):
    return await service.get_room(room_id)

@router.put("/rooms/{room_id}")
async def update_room(
    room_id: str,
    updates: RoomUpdate,
    current_uid: str = Depends(get_current_uid),
    service: RoomService = Depends(get_room_service),
):
    await service.update_room(room_id, updates.model_dump(exclude_unset=True), current_uid)
    return {"ok": True}

@router.delete("/rooms/{room_id}")
async def delete_room(
    room_id: str,
    current_uid: str = Depends(get_current_uid),
    service: RoomService = Depends(get_room_service),
):
    await service.delete_room(room_id, current_uid)
    return {"ok": True}

@router.post("/rooms/{room_id}/leave")
async def leave_room(
    room_id: str,
    current_uid: str = Depends(get_current_uid),
    service: RoomService = Depends(get_room_service)
):
    await service.leave_room(room_id, current_uid)
    return {"ok": True}

@router.post("/rooms/{room_id}/kick")
async def kick_member(
    room_id: str,
    body: KickBody,
    current_uid: str = Depends(get_current_uid),
    service: RoomService = Depends(get_room_service)
):
    await service.kick_member(room_id, body.user_id, current_uid)
    return {"ok": True}
