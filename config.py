from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Any, List, Optional
import json


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "GiveHope API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    CORS_ORIGINS: Any = "*"

    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # ==========================================
    # Sessions / Authentication
    # ==========================================
    SESSION_COOKIE_NAME: str = "sid"
    SESSION_TTL_SECONDS: int = 60 * 60 * 24 * 7  # 1 week
    SESSION_COOKIE_SECURE: Optional[bool] = None  # None -> secure only in production
    SCRYPT_ROUNDS: int = 15  # log2(N); 4-8 is plenty for tests

    # Admin account is provisioned at startup only when a password is given
    ADMIN_USERNAME: str = "admin"
    ADMIN_EMAIL: str = "admin@givehope.org"
    ADMIN_PASSWORD: Optional[str] = None

    # ==========================================
    # Seeding
    # ==========================================
    SEED_CATEGORIES: bool = True
    SEED_DEMO_DATA: bool = False
    DEMO_PASSWORD: str = "demo1234"

    FEATURED_DEFAULT_LIMIT: int = 3

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v: Any) -> List[str]:
        return parse_cors_origins(v)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cookie_secure(self) -> bool:
        if self.SESSION_COOKIE_SECURE is None:
            return self.is_production
        return self.SESSION_COOKIE_SECURE


settings = Settings()
