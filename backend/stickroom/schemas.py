# stickroom/schemas.py

from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime

from stickroom.models import AggregatedItem, ActionHistory, Item, ItemOption, UserRef

# --- User ---
class UserCreate(BaseModel):
    display_name: str
    email: Optional[EmailStr] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None

class UserUpdate(BaseModel):
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None

class UserResponse(BaseModel):
    uid: str
    display_name: str
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    joined_rooms: List[str] = []
    created_at: datetime

# --- ItemType ---
class ItemOptionInput(BaseModel):
    name: str
    emoji: str = ""
    points: int

class ItemTypeCreate(BaseModel):
    name: str
    description: Optional[str] = None
    options: List[ItemOptionInput]

class ItemTypeResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    options: List[ItemOption]
    created_by: Optional[str] = None
    is_generic: bool

# --- Room ---
class RoomCreate(BaseModel):
    name: str
    description: Optional[str] = None
    item_type_id: str

class RoomUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

class RoomResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    owner: UserRef
    created_at: datetime
    updated_at: Optional[datetime] = None
    member_ids: List[str]
    item_type_id: str
    history: List[ActionHistory] = []

class KickBody(BaseModel):
    user_id: str

# --- Items ---
class ItemCreate(BaseModel):
    option_id: str
    count: int = Field(default=1, ge=1)
    comment: Optional[str] = Field(default=None, max_length=200)
    is_removed: bool = False
    user_id: Optional[str] = None    # 省略時は自分

class ScoreUpdate(BaseModel):
    user_id: str
    option_id: str
    score: int = Field(ge=0)

class UserItemsResponse(BaseModel):
    id: str
    user_id: str
    room_id: str
    items: List[Item]
    created_at: datetime
    updated_at: Optional[datetime] = None

class ScoreResponse(BaseModel):
    user_id: str
    items: List[AggregatedItem]
    total_points: int

# --- Invitation ---
class InvitationCreate(BaseModel):
    expires_in_hours: Optional[int] = None    # 範囲チェックはサービス側
    max_uses: Optional[int] = None

class InvitationLinkResponse(BaseModel):
    token: str
    url: str
    expires_at: datetime
    max_uses: Optional[int] = None

class InvitationResponse(BaseModel):
    id: str
    token: str
    room_id: str
    room_name: str
    created_by: UserRef
    created_at: datetime
    expires_at: datetime
    max_uses: Optional[int] = None
    used_count: int
    is_active: bool

class RedeemResponse(BaseModel):
    room_id: str
    room_name: str
