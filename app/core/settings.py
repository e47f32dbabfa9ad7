"""
Core settings and environment variables for the Incident Watch backend.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Incident Watch"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS - comma separated list of frontend origins
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # In-memory store for local development and tests (no Firebase credentials)
    USE_MOCK_DB: bool = False

    # Session tokens
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    # Submission quota (fixed window per publisher)
    CITIZEN_DAILY_LIMIT: int = 2
    VERIFIED_REPORTER_DAILY_LIMIT: int = 5
    SUBMISSION_WINDOW_SECONDS: int = 24 * 60 * 60

    # One-time codes
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 3
    OTP_REQUESTS_PER_HOUR: int = 5
    OTP_SWEEP_INTERVAL_SECONDS: int = 10 * 60

    # Credibility
    DEFAULT_TRUST_SCORE: int = 50

    # Outbound notifications
    PUSH_NOTIFICATIONS_ENABLED: bool = False
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "no-reply@incidentwatch.local"

    # Privacy
    IP_HASH_SALT: str = "incident_watch_salt"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
