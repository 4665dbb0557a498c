"""
Application Configuration
Uses Pydantic Settings for environment-based configuration
"""

from enum import Enum

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_SECRET_KEY_BYTES = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "SafraReport Auth"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = Field(default=False)
    API_V1_STR: str = "/api/v1"

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ADMIN_REFRESH_TOKEN_EXPIRE_HOURS: int = 24

    # Sessions
    SESSION_EXPIRE_DAYS: int = 7
    REMEMBER_ME_SESSION_EXPIRE_DAYS: int = 30
    ADMIN_SESSION_EXPIRE_HOURS: int = 24
    SESSION_COOKIE_NAME: str = "safra_session"
    ADMIN_SESSION_COOKIE_NAME: str = "safra_admin_session"
    COOKIE_SAMESITE: str = Field(default="strict", pattern="^(strict|lax)$")

    # Password hashing
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)
    MIN_PASSWORD_LENGTH: int = 8

    # Login rate limiting
    MAX_LOGIN_ATTEMPTS: int = 5
    LOGIN_ATTEMPT_WINDOW_MINUTES: int = 15
    LOGIN_ATTEMPT_RETENTION_DAYS: int = 30

    # One-time tokens
    PASSWORD_RESET_EXPIRE_HOURS: int = 1
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24

    # Two-factor authentication (TOTP)
    TWO_FACTOR_ISSUER: str = "SafraReport"
    TWO_FACTOR_VALID_WINDOW: int = 1

    # CORS
    # Allow str because it can be a comma-separated string in .env
    CORS_ORIGINS: str | list[str] = Field(
        default=["http://localhost:5173", "http://localhost:5000"]
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./safra_auth.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Refuse to start with a signing secret shorter than 32 bytes"""
        if len(v.encode("utf-8")) < MIN_SECRET_KEY_BYTES:
            raise ValueError(f"SECRET_KEY must be at least {MIN_SECRET_KEY_BYTES} bytes long")
        return v

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# Create global settings instance

load_dotenv()
settings = Settings()  # type: ignore[call-arg]


class Role(str, Enum):
    """Identity roles shared by users and admins"""

    USER = "user"
    EDITOR = "editor"
    MODERATOR = "moderator"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class TokenType(str, Enum):
    """Signed token purposes; one is never accepted in place of the other"""

    ACCESS = "access"
    REFRESH = "refresh"
