import os
from urllib.parse import quote_plus

from dotenv import load_dotenv

# Loads the .env at the project root
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    return [part.strip().lower() for part in os.getenv(name, default).split(",") if part.strip()]


ENV = os.getenv("ENV", os.getenv("NODE_ENV", "dev"))
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}


def build_database_url() -> str:
    """DATABASE_URL wins; otherwise compose a postgres URL from the DB_* variables."""
    url = os.getenv("DATABASE_URL", "").strip()
    if url:
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        return url

    host = os.getenv("DB_HOST", "").strip()
    if not host:
        return "sqlite:///./restaurants.db"

    user = quote_plus(os.getenv("DB_USER", "postgres"))
    password = quote_plus(os.getenv("DB_PASSWORD", ""))
    name = os.getenv("DB_NAME", "menudb")
    port = os.getenv("DB_PORT", "5432")
    credentials = f"{user}:{password}" if password else user
    return f"postgresql://{credentials}@{host}:{port}/{name}"


DATABASE_URL = build_database_url()
DB_SSL_REQUIRED = _env_flag("DB_SSL", "1" if IS_PROD else "0")

# Tenant resolution
RESERVED_SUBDOMAINS = set(_env_list("RESERVED_SUBDOMAINS", "www,api,localhost"))
DEFAULT_RESTAURANT_SLUG = os.getenv("DEFAULT_RESTAURANT_SLUG", "default").strip().lower()
PUBLIC_PATH_PREFIXES = tuple(
    os.getenv("PUBLIC_PATH_PREFIXES", "/api/public,/api/auth").replace(" ", "").split(",")
)

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ]

# Auth (JWT)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", os.getenv("JWT_SECRET", "dev-secret-change-me"))
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", str(60 * 24 * 7)))

# Platform admin (restaurant creation outside tenant resolution)
PLATFORM_ADMIN_TOKEN = os.getenv("PLATFORM_ADMIN_TOKEN", "").strip()

# Object storage (S3 compatible: Backblaze B2, Cloudflare R2)
STORAGE_ENDPOINT_URL = os.getenv("STORAGE_ENDPOINT_URL", "").strip()
STORAGE_ACCESS_KEY_ID = os.getenv("STORAGE_ACCESS_KEY_ID", "").strip()
STORAGE_SECRET_ACCESS_KEY = os.getenv("STORAGE_SECRET_ACCESS_KEY", "").strip()
STORAGE_BUCKET_NAME = os.getenv("STORAGE_BUCKET_NAME", "").strip()
STORAGE_PUBLIC_URL = os.getenv("STORAGE_PUBLIC_URL", "").strip().rstrip("/")
STORAGE_REGION = os.getenv("STORAGE_REGION", "auto").strip()
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

# DNS (Cloudflare)
CLOUDFLARE_API_TOKEN = os.getenv("CLOUDFLARE_API_TOKEN", "").strip()
CLOUDFLARE_ZONE_ID = os.getenv("CLOUDFLARE_ZONE_ID", "").strip()
CLOUDFLARE_API_BASE = os.getenv("CLOUDFLARE_API_BASE", "https://api.cloudflare.com/client/v4").rstrip("/")
BASE_DOMAIN = os.getenv("BASE_DOMAIN", "yourdomain.com").strip().lower()
ENABLE_DNS_AUTOCREATE = _env_flag("ENABLE_DNS_AUTOCREATE")

# Email
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY", "").strip()
EMAIL_FROM = os.getenv("EMAIL_FROM", "noreply@yourdomain.com").strip()
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "").strip()

# Generated URLs
CLIENT_APP_URL = os.getenv("CLIENT_APP_URL", "http://localhost:3000").rstrip("/")
ADMIN_APP_URL = os.getenv("ADMIN_APP_URL", "http://localhost:3001").rstrip("/")
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000/api").rstrip("/")
