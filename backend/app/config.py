import os
from typing import List
from urllib.parse import quote


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _truthy(raw: str) -> bool:
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    def _split_csv(self, raw: str, *, default: List[str]) -> List[str]:
        parts = [p.strip() for p in (raw or "").split(",")]
        return [p for p in parts if p] or default

    def _build_db_url(self) -> str:
        explicit = (os.getenv("DATABASE_URL") or "").strip()
        if explicit:
            return explicit
        host = (os.getenv("POSTGRES_HOST") or "localhost").strip() or "localhost"
        port = _env_int("POSTGRES_PORT", 5432)
        name = (os.getenv("POSTGRES_DB") or "minimarket").strip() or "minimarket"
        user = (os.getenv("POSTGRES_USER") or "").strip()
        password = os.getenv("POSTGRES_PASSWORD") or ""
        auth = ""
        if user:
            auth = quote(user, safe="")
            if password:
                auth += ":" + quote(password, safe="")
            auth += "@"
        url = f"postgresql://{auth}{host}:{port}/{name}"
        if _truthy(os.getenv("POSTGRES_SSL", "")):
            url += "?sslmode=require"
        return url

    def __init__(self) -> None:
        self.env = (os.getenv("APP_ENV") or "local").strip().lower() or "local"
        self.db_url = self._build_db_url()
        # False when neither DATABASE_URL nor any POSTGRES_* connection variable is set.
        self.db_configured = any(
            (os.getenv(name) or "").strip() for name in ("DATABASE_URL", "POSTGRES_HOST", "POSTGRES_DB", "POSTGRES_USER")
        )
        self.db_pool_min = _env_int("DB_POOL_MIN_SIZE", 1)
        self.db_pool_max = _env_int("DB_POOL_MAX_SIZE", 10)
        self.db_pool_timeout = _env_float("DB_POOL_TIMEOUT", 30.0)
        self.db_ping_timeout = _env_float("DB_PING_TIMEOUT", 2.0)

        self.jwt_secret = (os.getenv("JWT_SECRET") or "").strip()
        self.jwt_expires_hours = _env_int("JWT_EXPIRES_HOURS", 24)
        self.jwt_issuer = "minimarket-don-ale"
        self.jwt_audience = "minimarket-users"

        self.uploads_dir = (os.getenv("UPLOADS_DIR") or "/app/public/uploads").strip() or "/app/public/uploads"

        self.escpos_url = (os.getenv("ESCPOS_PLUGIN_URL") or "http://localhost:8000").strip().rstrip("/") or "http://localhost:8000"
        self.escpos_timeout = _env_float("ESCPOS_TIMEOUT_SECONDS", 30.0)
        self.escpos_health_timeout = _env_float("ESCPOS_HEALTH_TIMEOUT_SECONDS", 4.0)

        # Sellers work in one shop; "today" for vendor reports is this zone's calendar day.
        self.timezone = (os.getenv("APP_TIMEZONE") or "America/Santiago").strip() or "America/Santiago"

        # Comma-separated list of allowed CORS origins for the browser frontend.
        self.cors_origins = self._split_csv(
            os.getenv("CORS_ORIGINS", "").strip(),
            default=["http://localhost:3000", "http://127.0.0.1:3000"],
        )
        self.api_version = os.getenv("APP_VERSION", "0.1.0").strip() or "0.1.0"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def exposes_errors(self) -> bool:
        return self.env in {"local", "dev"}


settings = Settings()
