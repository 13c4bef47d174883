from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings."""

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="allow"  # Allow extra fields from .env
    )

    # Application
    APP_NAME: str = "ChatWave API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # API
    API_PREFIX: str = "/api/chat"
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Public URL the API is reachable at (used to build file download/upload URLs)
    PUBLIC_BASE_URL: str = "http://localhost:8080"

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "chatwave_db"

    # ========== Identity (HS256 access tokens) ==========
    JWT_SECRET_KEY: str = "dev_secret_key_change_in_production_min_32_chars_required"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # One week
    PASSWORD_HASH_ROUNDS: int = 12  # bcrypt cost factor
    PASSWORD_MIN_LENGTH: int = 8

    # ========== Blob Store ==========
    UPLOAD_URL_EXPIRE_SECONDS: int = 3600  # Upload URLs are valid for one hour
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024  # 5 MiB (well below the 16 MiB BSON limit)

    # ========== Messages ==========
    SEARCH_RESULT_LIMIT: int = 50  # Fixed cap, search is not paginated

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON_FORMAT: bool = False  # Set to True in production for structured logging

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    # API Documentation (Swagger UI / OpenAPI)
    ENABLE_DOCS: bool = True
    PROJECT_NAME: str = "ChatWave - Workspace Chat API"
    API_VERSION: str = "1.0.0"


settings = Settings()
