from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from dotenv import load_dotenv
import os

load_dotenv()

frontend_url = os.getenv("FRONTEND_URL", "http://localhost:3000")


class Settings(BaseSettings):
    # Database
    database_url: str
    sql_echo: bool = False

    # JWT Auth
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # Login rate limiting (skipped when no Redis is configured)
    redis_url: Optional[str] = None
    login_rate_limit: int = 5
    login_rate_period: int = 600

    # SendGrid configuration
    email_api_key: Optional[str] = None
    email_sender: Optional[str] = None  # Must be verified in SendGrid
    email_sender_name: str = "ORII Research Platform"
    sendgrid_eu_residency: bool = False

    # Cloudinary configuration (avatars)
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    # Firebase storage (paper files)
    firebase_cred_path: str = "firebase_credentials.json"
    firebase_storage_bucket: Optional[str] = None
    signed_url_expire_minutes: int = 15

    # Uploads
    max_upload_size: int = 50 * 1024 * 1024

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", frontend_url]
    file_cors_origins: List[str] = ["http://localhost:3000", frontend_url]
    frontend_url: str = frontend_url

    # Runtime
    env: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Background workers
    background_workers_enabled: bool = True
    reminder_check_interval_seconds: int = 300
    outbox_poll_interval_seconds: int = 30
    outbox_batch_size: int = 50
    outbox_max_attempts: int = 5
    outbox_backoff_seconds: int = 60

    model_config = SettingsConfigDict(extra="ignore", env_file=".env")

    @field_validator("database_url")
    def validate_db_url(cls, v):
        """Ensure we're using an async driver"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @field_validator("jwt_secret_key")
    def validate_jwt_secret(cls, v):
        if os.getenv("ENV", "development") == "production" and v == "supersecretkey":
            raise ValueError("JWT secret key must be set in production")
        return v


settings = Settings()
