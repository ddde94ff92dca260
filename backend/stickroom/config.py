import os

from dotenv import load_dotenv
load_dotenv()  # .envファイルを自動で読み込む

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://stickroom_mongo:27017")
REDIS_URI = os.getenv("REDIS_URI", "redis://stickroom_redis:6379/0")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "stickroom")
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# 認証プロバイダ種別（supabase or firebase）
AUTH_PROVIDER = os.getenv("AUTH_PROVIDER", "supabase")

SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", None)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", None)

if AUTH_PROVIDER == "supabase" and not SUPABASE_JWT_SECRET:
    raise RuntimeError("SUPABASE_JWT_SECRET is required for Supabase auth")
if AUTH_PROVIDER == "firebase" and not FIREBASE_PROJECT_ID:
    raise RuntimeError("FIREBASE_PROJECT_ID is required for Firebase auth")

# 招待リンク: <origin><base-path>?invite=<token>
APP_ORIGIN = os.getenv("APP_ORIGIN", "http://localhost:5173")
APP_BASE_PATH = os.getenv("APP_BASE_PATH", "/")
INVITATION_DEFAULT_HOURS = int(os.getenv("INVITATION_DEFAULT_HOURS", "168"))

# プロセス内キャッシュ（秒）
CACHE_DEFAULT_TTL = int(os.getenv("CACHE_DEFAULT_TTL", "300"))
CACHE_SWEEP_INTERVAL = int(os.getenv("CACHE_SWEEP_INTERVAL", "600"))
