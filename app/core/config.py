from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "AI Product Directory API"
    DATABASE_URL: str = "sqlite:///./directory.db"
    SECRET_KEY: str = "supersecretkey_change_me_in_production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7 # 1 week

    # Moderation
    # Reviews are trusted by default; set to "pending" to queue them for an admin
    REVIEW_DEFAULT_STATUS: str = Field("approved", pattern="^(pending|approved)$")

    # Listings
    DEFAULT_PAGE_SIZE: int = 12
    ADMIN_PAGE_SIZE: int = 20
    REVIEW_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    RECENT_REVIEWS_LIMIT: int = 5

    # Logging
    ENVIRONMENT: str = "development"
    LOG_LEVEL: Optional[str] = None
    LOG_DIR: Optional[str] = None


settings = Settings()
