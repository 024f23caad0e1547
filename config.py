from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # Auth provider (Supabase issues the access tokens)
    SUPABASE_JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = "authenticated"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_KEY: Optional[str] = None

    # Workflow defaults
    DEFAULT_UNIT: str = "kg"
    NOTIFICATION_PAGE_SIZE: int = 50
    ACTIVITY_LOG_PAGE_SIZE: int = 100

    # API Configuration
    API_VERSION: str = "v1"
    API_PREFIX: str = "/api"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
