from __future__ import annotations
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", extra="ignore")

    # Harvest API
    HARVEST_ACCOUNT_ID: str | None = None
    HARVEST_BASE_URL: str = "https://api.harvestapp.com/v2"
    HARVEST_USER_AGENT: str = "PMO Harvest Portal (contact@pmohive.com)"
    HARVEST_TIMEOUT_SECONDS: float = 20.0

    # Harvest OAuth
    HARVEST_OAUTH_CLIENT_ID: str | None = None
    HARVEST_OAUTH_CLIENT_SECRET: str | None = None  # do not commit
    HARVEST_AUTHORIZE_URL: str = "https://id.getharvest.com/oauth2/authorize"
    HARVEST_TOKEN_URL: str = "https://id.getharvest.com/api/v2/oauth2/token"

    # Server
    APP_URL: str = "http://localhost:3000"
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: str = "http://localhost:3000"

    # Sessions
    SESSION_COOKIE_NAME: str = "portal.session_token"
    SESSION_TTL_SECONDS: int = 60 * 60 * 24 * 7
    SESSION_UPDATE_AGE_SECONDS: int = 60 * 60 * 24
    SESSION_SWEEP_MINUTES: int = 15
    TOKEN_REFRESH_BUFFER_SECONDS: int = 5 * 60

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 120
    RATE_LIMIT_BURST: int | None = None

    # Uploads
    MAX_REQUEST_SIZE_MB: int = 11
    MAX_RECEIPT_SIZE_MB: int = 10

    # Staleness windows (seconds)
    CACHE_TTL_PROJECTS: int = 5 * 60
    CACHE_TTL_TASKS: int = 5 * 60
    CACHE_TTL_EXPENSE_CATEGORIES: int = 10 * 60
    CACHE_TTL_CURRENT_USER: int = 30 * 60
    CACHE_TTL_MANAGED_PROJECTS: int = 5 * 60
    CACHE_MAX_ENTRIES: int = 500

    # Observability
    LOG_JSON: bool = False
    METRICS_ENABLED: bool = False

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def oauth_redirect_uri(self) -> str:
        return f"{self.APP_URL.rstrip('/')}/api/auth/callback/harvest"

settings = Settings()
