from fastapi import APIRouter, Depends
from stickroom.services.user_service import UserService
from stickroom.repositories.user_repo import UserRepository
from stickroom.db import get_db
from stickroom.cache import get_cache
from stickroom.schemas import UserCreate, UserUpdate, UserResponse
from stickroom.utils import get_current_uid, get_current_external_id

router = APIRouter()


def get_user_service(db=Depends(get_db), cache=Depends(get_cache)):
    return UserService(UserRepository(db), cache)

@router.post("/users/me", response_model=UserResponse)
async def register_me(
    user: UserCreate,
    external_id: str = Depends(get_current_external_id),
    service: UserService = Depends(get_user_service)
):
    return await service.ensure_user(external_id, user.model_dump())

@router.get("/users/me", response_model=UserResponse)
async def get_me(
    current_uid: str = Depends(get_current_uid),
    service: UserService = Depends(get_user_service)
):
    return await service.require_user(current_uid)

@router.put("/users/me", response_model=dict)
async def update_me(
    data: UserUpdate,
    current_uid: str = Depends(get_current_uid),
    service: UserService = Depends(get_user_service)
):
    await service.update_profile(current_uid, data.model_dump(exclude_unset=True))
    return {"ok": True}
