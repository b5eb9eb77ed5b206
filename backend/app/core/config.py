# backend/app/core/config.py

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """
    asyncpg does NOT accept sslmode or channel_binding as connect kwargs.
    If these appear in the URL query, SQLAlchemy can end up passing them to
    asyncpg.connect(), causing:
      TypeError: connect() got an unexpected keyword argument 'sslmode'
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = parse_qsl(parts.query, keep_blank_values=True)
    filtered = [(k, v) for (k, v) in params if k not in {"sslmode", "channel_binding"}]
    new_query = urlencode(filtered, doseq=True)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, new_query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # Use: development | staging | production
    ENVIRONMENT: str = "development"

    # -----------------------------
    # DB
    # -----------------------------
    DATABASE_URL_ASYNC: str
    DATABASE_URL_SYNC: str = ""

    # -----------------------------
    # JWT
    # -----------------------------
    # Keep a dev default, but enforce stronger requirements outside dev.
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # -----------------------------
    # Logging
    # -----------------------------
    LOG_LEVEL: str = "INFO"
    # Empty string disables the rotating file sink (stderr only)
    LOG_FILE: str = "logs/storefront.log"

    # -----------------------------
    # Storefront / accounts
    # -----------------------------
    FRONTEND_URL: str = "http://localhost:3000"
    SUPER_ADMIN_EMAIL: str = ""
    MAX_PROFILES_PER_ACCOUNT: int = 5
    INVITE_MAX_EXPIRY_HOURS: int = 168
    # new customer profiles start inactive; an admin activation places them
    REQUIRE_PROFILE_ACTIVATION: bool = False

    # -----------------------------
    # MLM engine
    # -----------------------------
    MLM_MAX_COMMISSION_LEVELS: int = 20
    # Placement BFS gives up (TreeFull) below this many levels under the sponsor
    MLM_MAX_PLACEMENT_DEPTH: int = 64
    # Lost compare-and-set claims retried before PlacementContention
    MLM_PLACEMENT_MAX_RETRIES: int = 5
    MLM_TREE_VIEW_MAX_DEPTH: int = 5

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        env = (self.ENVIRONMENT or "").strip().lower()

        # Enforce that we never run staging/production with a placeholder secret.
        if env in {"staging", "production"}:
            if not self.JWT_SECRET or self.JWT_SECRET.strip() == "dev-secret-change-me":
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(self.JWT_SECRET.strip()) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        # Light sanity checks (all envs)
        if self.JWT_ALGORITHM not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if not 1 <= self.MLM_MAX_COMMISSION_LEVELS <= 20:
            raise ValueError("MLM_MAX_COMMISSION_LEVELS must be between 1 and 20.")
        if self.MLM_PLACEMENT_MAX_RETRIES < 1:
            raise ValueError("MLM_PLACEMENT_MAX_RETRIES must be at least 1.")


# this must exist for: `from app.core.config import settings`
settings = Settings()
