"""
Configuration management for the AGM meeting service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "AGM Meeting Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    # Database
    DATABASE_URL: str = "sqlite:///./agm_meetings.db"

    # Identity provider tokens
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours

    # Access links
    PUBLIC_BASE_URL: str = "http://localhost:5173"  # frontend origin, links land on /agm/join/<token>
    HOMEOWNER_LINK_TTL_HOURS: int = 24

    # Conferencing client (Jitsi Meet External API)
    JITSI_DOMAIN: str = "meet.jit.si"
    DEFAULT_MAX_PARTICIPANTS: int = 50

    # Room names
    ROOM_NAME_MAX_ATTEMPTS: int = 100
    ROOM_NAME_BUILDING_MAX_LENGTH: int = 20
    ROOM_NAME_INSERT_RETRIES: int = 5

    # Membership roles allowed to host and manage meetings
    DIRECTOR_ROLES: list[str] = ["rtm-director", "rmc-director"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
