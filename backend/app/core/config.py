from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Any, Optional
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


def parse_extensions(v: Any) -> List[str]:
    """Parse allowed extensions from string or list"""
    if isinstance(v, list):
        return [ext.lower().lstrip('.') for ext in v]
    if isinstance(v, str):
        if v.startswith('['):
            try:
                return [ext.lower().lstrip('.') for ext in json.loads(v)]
            except json.JSONDecodeError:
                pass
        return [ext.strip().lower().lstrip('.') for ext in v.split(',') if ext.strip()]
    return []


# Substrings that mark a JWT secret as guessable
WEAK_SECRET_PATTERNS = (
    "secret",
    "password",
    "changeme",
    "default",
    "development",
    "test",
    "demo",
    "insecure",
)

MIN_JWT_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Reqquli"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_PREFIX: str = "/api"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 3000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 240  # 4 hours
    BCRYPT_ROUNDS: int = 10
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 24
    AUTH_COOKIE_NAME: str = "authToken"
    COOKIE_DOMAIN: Optional[str] = None

    # ==========================================
    # Email (SMTP)
    # ==========================================
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "noreply@reqquli.local"
    EMAIL_FROM_NAME: str = "Reqquli"
    FRONTEND_URL: str = "http://localhost:5173"

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Lists
    # ==========================================
    LIST_DEFAULT_LIMIT: int = 100
    LIST_MAX_LIMIT: int = 200
    AUDIT_DEFAULT_LIMIT: int = 50

    # ==========================================
    # Evidence uploads
    # ==========================================
    EVIDENCE_UPLOAD_DIR: str = "uploads/evidence"
    MAX_EVIDENCE_SIZE: int = 10 * 1024 * 1024  # 10MB
    EVIDENCE_EXTENSIONS_STR: str = "jpeg,jpg,png,gif,pdf,doc,docx,txt,csv,xlsx,xls"

    # Request bodies above this are rejected before routing (evidence + multipart overhead)
    MAX_REQUEST_SIZE: int = 11 * 1024 * 1024

    @property
    def EVIDENCE_EXTENSIONS(self) -> List[str]:
        """Parse allowed evidence extensions from comma-separated string"""
        return parse_extensions(self.EVIDENCE_EXTENSIONS_STR)

    @property
    def EVIDENCE_DIR(self) -> Path:
        return Path(self.EVIDENCE_UPLOAD_DIR)

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @field_validator("ENVIRONMENT")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return v.strip().lower()

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def weak_secret_patterns(self) -> List[str]:
        """Return the weak patterns found in the JWT secret"""
        lowered = self.JWT_SECRET_KEY.lower()
        return [pattern for pattern in WEAK_SECRET_PATTERNS if pattern in lowered]

    def verification_url(self, token: str) -> str:
        """Link a user follows to verify their email address"""
        return f"{self.FRONTEND_URL.rstrip('/')}/verify-email?token={token}"


# Create settings instance
settings = Settings()
