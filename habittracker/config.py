# habittracker/config.py
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SECRET_KEY: str
    DATABASE_URL: str = "sqlite:///./habittracker.db"
    DEBUG: bool = False
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    MIN_PASSWORD_LENGTH: int = 6

    # Local calendar used for "done today" checks
    TIMEZONE: str = "UTC"
    STREAK_GAP_POLICY: Literal["ignore", "reset"] = "ignore"

    HOST: str = "127.0.0.1"
    PORT: int = 8000

    CREDENTIALS_FILE: str = "~/.habittracker/credentials.json"
    LOG_FILE: str = "habittracker.log"   # empty string disables file logging
    CORS_ORIGINS: list[str] = [
        "http://localhost:8081",
        "http://127.0.0.1:8081",
        "http://localhost:19006",
    ]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
