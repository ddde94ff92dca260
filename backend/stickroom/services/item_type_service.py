import uuid
from datetime import datetime, timezone
from typing import List, Optional

from stickroom.errors import NotFoundError, ValidationError
from stickroom.repositories.item_type_repo import ItemTypeRepository


def generate_option_id() -> str:
    return f"opt_{uuid.uuid4().hex[:12]}"


class ItemTypeService:
    def __init__(self, repo: ItemTypeRepository):
        self.repo = repo

    # 汎用タイプ（古い順）+ ユーザー独自タイプ（新しい順）
    async def list_available(self, uid: Optional[str] = None) -> List[dict]:
        types = await self.repo.list_generic()
        if uid:
            types += await self.repo.list_by_creator(uid)
        return types

    async def get_type(self, type_id: str) -> dict:
        item_type = await self.repo.get_by_id(type_id)
        if not item_type:
            raise NotFoundError("Item type not found")
        return item_type

    async def create_custom(self, data: dict, uid: str) -> str:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Item type name is required")
        options = data.get("options") or []
        if not options:
            raise ValidationError("Item type needs at least one option")

        prepared = []
        for opt in options:
            opt_name = (opt.get("name") or "").strip()
            if not opt_name:
                raise ValidationError("Option name is required")
            points = opt.get("points")
            if isinstance(points, bool) or not isinstance(points, int):
                raise ValidationError("Option points must be an integer")
            prepared.append({
                "id": generate_option_id(),
                "name": opt_name,
                "emoji": opt.get("emoji") or "",
                "points": points,
            })

        now = datetime.now(timezone.utc)
        return await self.repo.create({
            "id": uuid.uuid4().hex,
            "name": name,
            "description": data.get("description"),
            "options": prepared,
            "created_by": uid,
            "is_generic": False,
            "created_at": now,
            "updated_at": now,
        })
