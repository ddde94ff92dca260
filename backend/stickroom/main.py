import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stickroom.api import user, room, item, invitation
from stickroom.cache import memory_cache, run_sweeper
from stickroom.config import ALLOWED_ORIGINS, CACHE_SWEEP_INTERVAL, LOG_LEVEL
from stickroom.errors import StickRoomError
from stickroom import ws

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 期限切れキャッシュの掃除
    sweeper = asyncio.create_task(run_sweeper(memory_cache, CACHE_SWEEP_INTERVAL))
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass


app = FastAPI(lifespan=lifespan)

# CORS
app.add_middleware(
      CORSMiddleware,
      allow_origins=ALLOWED_ORIGINS,
      allow_credentials=True,
      allow_methods=["*"],
      allow_headers=["*"],
)


@app.exception_handler(StickRoomError)
async def stickroom_error_handler(request: Request, exc: StickRoomError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


app.include_router(user.router, prefix="/api", tags=["user"])
app.include_router(room.router, prefix="/api", tags=["room"])
app.include_router(item.router, prefix="/api", tags=["item"])
app.include_router(invitation.router, prefix="/api", tags=["invitation"])
app.include_router(ws.router)
