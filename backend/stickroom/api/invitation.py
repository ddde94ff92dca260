from fastapi import APIRouter, Depends
from typing import List

from stickroom.api.room import get_gateway, get_room_service
from stickroom.config import INVITATION_DEFAULT_HOURS
from stickroom.db import get_db
from stickroom.repositories.invitation_repo import InvitationRepository
from stickroom.schemas import (
    InvitationCreate,
    InvitationLinkResponse,
    InvitationResponse,
    RedeemResponse,
)
from stickroom.services.invitation_service import InvitationService
from stickroom.utils import get_current_uid

router = APIRouter()


def get_invitation_service(
    db=Depends(get_db),
    gateway=Depends(get_gateway),
    rooms=Depends(get_room_service),
):
    return InvitationService(InvitationRepository(db), gateway, rooms)

@router.post("/rooms/{room_id}/invitations", response_model=InvitationLinkResponse)
async def create_invitation(
    room_id: str,
    data: InvitationCreate,
    current_uid: str = Depends(get_current_uid),
    service: InvitationService = Depends(get_invitation_service),
):
    hours = INVITATION_DEFAULT_HOURS if data.expires_in_hours is None else data.expires_in_hours
    return await service.create(
        room_id,
        current_uid,
        expires_in_hours=hours,
        max_uses=data.max_uses,
    )

@router.get("/rooms/{room_id}/invitations", response_model=List[InvitationResponse])
async def list_invitations(
    room_id: str,
    current_uid: str = Depends(get_current_uid),
    service: InvitationService = Depends(get_invitation_service),
):
    return await service.list_room_invitations(room_id, current_uid)

@router.post("/invitations/{token}/redeem", response_model=RedeemResponse)
async def redeem_invitation(
    token: str,
    current_uid: str = Depends(get_current_uid),
    service: InvitationService = Depends(get_invitation_service),
):
    return await service.redeem(token, current_uid)

@router.delete("/invitations/{invitation_id}")
async def deactivate_invitation(
    invitation_id: str,
    current_uid: str = Depends(get_current_uid),
    service: InvitationService = Depends(get_invitation_service),
):
    await service.deactivate(invitation_id, current_uid)
    return {"ok": True}
