# stickroom/services/invitation_service.py

import logging
import random
import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from stickroom.config import APP_BASE_PATH, APP_ORIGIN, INVITATION_DEFAULT_HOURS
from stickroom.errors import (
    AuthorizationError,
    ExpiredError,
    NotFoundError,
    UsageLimitError,
    ValidationError,
)
from stickroom.repositories.invitation_repo import InvitationRepository
from stickroom.services.gateway import RoomGateway
from stickroom.services.room_service import RoomService

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 16


def generate_invitation_token() -> str:
    """16-character invitation token.

    Uses the OS randomness source. If the platform has none, falls back to
    the `random` module, which is NOT cryptographically secure: tokens made
    that way are guessable in principle. Collisions are never checked.
    """
    try:
        return secrets.token_hex(TOKEN_LENGTH // 2)
    except NotImplementedError:
        logger.warning("No secure random source available; using non-cryptographic invitation token")
        chars = string.ascii_lowercase + string.digits
        return "".join(random.choices(chars, k=TOKEN_LENGTH))


def build_invitation_url(token: str, origin: str = APP_ORIGIN, base_path: str = APP_BASE_PATH) -> str:
    return f"{origin}{base_path}?invite={token}"


def _as_utc(value: datetime) -> datetime:
    # Mongo は naive な UTC datetime を返す
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InvitationService:
    def __init__(
        self,
        repo: InvitationRepository,
        gateway: RoomGateway,
        rooms: RoomService,
        token_factory: Callable[[], str] = generate_invitation_token,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repo = repo
        self.gateway = gateway
        self.rooms = rooms
        self.token_factory = token_factory
        self.clock = clock

    async def _room(self, room_id: str) -> dict:
        room = await self.gateway.get_room(room_id)
        if not room:
            raise NotFoundError("Room not found")
        return room

    async def create(
        self,
        room_id: str,
        requesting_uid: str,
        expires_in_hours: int = INVITATION_DEFAULT_HOURS,
        max_uses: Optional[int] = None,
    ) -> dict:
        room = await self._room(room_id)
        is_owner = room["owner"]["uid"] == requesting_uid
        if not is_owner and not await self.gateway.is_member(requesting_uid, room_id):
            raise AuthorizationError("Only room members can create invitations")

        if expires_in_hours <= 0:
            raise ValidationError("expires_in_hours must be positive")
        if max_uses is not None and max_uses < 1:
            raise ValidationError("max_uses must be at least 1")

        now = self.clock()
        expires_at = now + timedelta(hours=expires_in_hours)
        token = self.token_factory()

        invitation = {
            "id": uuid.uuid4().hex,
            "token": token,
            "room_id": room_id,
            "room_name": room["name"],
            "created_by": await self.gateway.user_ref(requesting_uid),
            "created_at": now,
            "expires_at": expires_at,
            "used_count": 0,
            "is_active": True,
        }
        # max_uses は指定時のみ保存
        if max_uses is not None:
            invitation["max_uses"] = max_uses

        await self.repo.create(invitation)
        logger.info("Invitation created for room %s by %s", room_id, requesting_uid)

        return {
            "token": token,
            "url": build_invitation_url(token),
            "expires_at": expires_at,
            "max_uses": max_uses,
        }

    async def redeem(self, token: str, uid: str) -> dict:
        invitation = await self.repo.find_active_by_token(token)
        if not invitation:
            raise NotFoundError("Invalid or expired invitation link")

        # 失敗する場合でも無効化は先に書き込む
        if self.clock() > _as_utc(invitation["expires_at"]):
            await self.repo.deactivate(invitation["id"])
            raise ExpiredError("This invitation link has expired")

        max_uses = invitation.get("max_uses")
        if max_uses is not None and invitation["used_count"] >= max_uses:
            await self.repo.deactivate(invitation["id"])
            raise UsageLimitError("This invitation link has reached its usage limit")

        room_id = invitation["room_id"]
        if await self.rooms.join_room(room_id, uid):
            logger.info("User %s joined room %s via invitation", uid, room_id)

        # 既にメンバーでもクリック数としてカウントする
        await self.repo.increment_used(invitation["id"])

        return {"room_id": room_id, "room_name": invitation["room_name"]}

    async def list_room_invitations(self, room_id: str, uid: str) -> List[dict]:
        room = await self._room(room_id)
        if room["owner"]["uid"] != uid:
            raise AuthorizationError("Only room owner can view invitations")
        return await self.repo.list_active_by_room(room_id)

    async def deactivate(self, invitation_id: str, uid: str) -> None:
        invitation = await self.repo.get_by_id(invitation_id)
        if not invitation:
            raise NotFoundError("Invitation not found")
        room = await self.gateway.get_room(invitation["room_id"])
        if not room or room["owner"]["uid"] != uid:
            raise AuthorizationError("Only room owner can deactivate invitations")
        await self.repo.deactivate(invitation_id)

    async def cleanup_expired(self) -> int:
        now = self.clock()
        deactivated = 0
        try:
            for invitation in await self.repo.list_active():
                if _as_utc(invitation["expires_at"]) < now:
                    await self.repo.deactivate(invitation["id"])
                    deactivated += 1
        except Exception as e:
            logger.error("Failed to cleanup expired invitations: %s", e)
        return deactivated
