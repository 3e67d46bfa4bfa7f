# app/core/config.py
# - Reads env vars from ".env" if available (pydantic-settings).
# - Every external collaborator (DB, Gemini, Supabase, rate limiter, frontend revalidation) is configured here.

from __future__ import annotations

from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./app.db"
    RUN_CREATE_ALL: bool = False
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: Optional[str] = None

    # JWTs are issued by the identity provider; sub = external user id
    SECRET_KEY: str = "CHANGE_THIS_TO_RANDOM_SECRET"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Gemini
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"

    # Supabase storage
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None
    STORAGE_BUCKET: str = "car-images"
    CAR_IMAGE_FOLDER: str = "cars"
    IMAGE_UPLOAD_CONCURRENCY: int = 1
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # image search admission
    SEARCH_RATE_LIMIT: str = "10/hour"
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    BLOCKED_FINGERPRINTS: List[str] = []

    # frontend cache revalidation hook
    REVALIDATE_URL: Optional[str] = None
    REVALIDATE_SECRET: Optional[str] = None

    # pydantic v2 config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
