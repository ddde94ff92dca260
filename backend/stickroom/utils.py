import logging
from fastapi import Request, HTTPException, status, Depends
from jose import jwt
from stickroom.config import AUTH_PROVIDER, SUPABASE_JWT_SECRET, FIREBASE_PROJECT_ID
from stickroom.db import get_db

# Firebase 用
from google.oauth2 import id_token
from google.auth.transport.requests import Request as GoogleRequest

logger = logging.getLogger(__name__)


def decode_external_id(token: str) -> str:
    """Verify a provider token and return its subject (our uid)."""
    if AUTH_PROVIDER == "supabase":
        try:
            payload = jwt.decode(
                token,
                SUPABASE_JWT_SECRET,
                algorithms=["HS256"],
                audience="authenticated"
            )
            external_id = payload.get("sub")
        except Exception as e:
            logger.error("Supabase JWT decode error: %s", e)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid Supabase token"
            )

    elif AUTH_PROVIDER == "firebase":
        try:
            id_info = id_token.verify_firebase_token(
                token,
                GoogleRequest(),
                audience=FIREBASE_PROJECT_ID
            )
            # Token によっては "user_id"、または "sub" にユーザー UID が入っている
            external_id = id_info.get("user_id") or id_info.get("sub")
        except Exception as e:
            logger.error("Firebase token verify error: %s", e)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid Firebase token"
            )
    else:
        logger.error("Unknown AUTH_PROVIDER: %s", AUTH_PROVIDER)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Invalid AUTH_PROVIDER setting")

    if not external_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not retrieve external_id from token"
        )
    return external_id


def _bearer_token(request: Request) -> str:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        logger.warning("Authorization header missing or invalid")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return auth.split()[1]


async def get_current_external_id(request: Request) -> str:
    return decode_external_id(_bearer_token(request))


async def get_current_uid(
    request: Request,
    db=Depends(get_db)
) -> str:
    uid = decode_external_id(_bearer_token(request))
    user = await db.users.find_one({"uid": uid}, {"_id": 1})
    if not user:
        logger.warning("User not found: uid=%s", uid)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not registered"
        )
    return uid
