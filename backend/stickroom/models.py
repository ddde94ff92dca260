from pydantic import BaseModel, Field, EmailStr, field_validator, model_validator
from typing import List, Literal, Optional
from datetime import datetime

# --- User ---
class UserRef(BaseModel):
    uid: str
    display_name: str

class UserProfile(BaseModel):
    uid: str                   # 認証プロバイダの sub
    display_name: str
    email: Optional[EmailStr] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    joined_rooms: List[str] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

# --- ItemType ---
class ItemOption(BaseModel):
    id: str
    name: str
    emoji: str = ""
    points: int

class ItemType(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    options: List[ItemOption]
    created_by: Optional[str] = None
    is_generic: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

# --- Item (append-only event) ---
class Item(BaseModel):
    id: Optional[str] = None
    option_id: str
    count: int = Field(ge=1)
    created_at: datetime
    is_removed: bool = False
    comment: Optional[str] = Field(default=None, max_length=200)

class UserRoomItems(BaseModel):
    id: str
    user_id: str
    room_id: str
    items: List[Item] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

# 集計結果（永続化しない）
class AggregatedItem(BaseModel):
    option_id: str
    option: ItemOption
    count: int
    total_points: int

# --- Room ---
ActionType = Literal["item_added", "item_removed", "user_joined", "user_left", "room_updated"]

class ActionHistory(BaseModel):
    id: str
    type: ActionType
    user_id: Optional[str] = None
    performed_by: UserRef
    timestamp: datetime
    details: Optional[str] = None

class RoomModel(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    owner: UserRef
    created_at: datetime
    updated_at: Optional[datetime] = None
    history: List[ActionHistory] = []
    member_ids: List[str] = []
    item_type_id: str

# --- Invitation ---
class Invitation(BaseModel):
    id: str
    token: str
    room_id: str
    room_name: str
    created_by: UserRef
    created_at: datetime
    expires_at: datetime
    max_uses: Optional[int] = None
    used_count: int = Field(default=0, ge=0)
    is_active: bool = True

# --- Session (端末ローカル) ---
def _check_iso(value: str) -> str:
    # fromisoformat で読めない文字列は拒否
    datetime.fromisoformat(value)
    return value

class JoinedRoomRef(BaseModel):
    name: str = Field(min_length=1)
    secret_key: str = Field(min_length=1)
    joined_at: str
    last_visited: Optional[str] = None

    @field_validator("name", "secret_key")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("joined_at")
    @classmethod
    def joined_at_is_iso(cls, v: str) -> str:
        return _check_iso(v)

    @field_validator("last_visited")
    @classmethod
    def last_visited_is_iso(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_iso(v)

class UserSession(BaseModel):
    joined_rooms: List[JoinedRoomRef] = []
    current_room_name: Optional[str] = None

    @model_validator(mode="after")
    def current_room_is_joined(self):
        if self.current_room_name is not None and not any(
            r.name == self.current_room_name for r in self.joined_rooms
        ):
            raise ValueError("current_room_name does not match a joined room")
        return self
