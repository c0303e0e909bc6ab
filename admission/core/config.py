from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from pathlib import Path


def parse_timeout(v) -> Optional[float]:
    """Parse request timeout; empty/zero means use the HTTP client default"""
    if v in (None, "", 0, "0"):
        return None
    return float(v)


class Settings(BaseSettings):
    """Client settings - all configurable via ADMISSION_* environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "Admission Portal"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # ==========================================
    # Backend API
    # ==========================================
    API_BASE_URL: str = "http://localhost:8000/api/"
    REQUEST_TIMEOUT: Optional[float] = None  # None keeps the httpx default

    @field_validator("REQUEST_TIMEOUT", mode="before")
    @classmethod
    def _parse_timeout(cls, v):
        return parse_timeout(v)

    # ==========================================
    # Session storage
    # ==========================================
    SESSION_FILE: str = str(Path.home() / ".admission" / "session.json")

    # ==========================================
    # Form rules
    # ==========================================
    SEMESTERS_PER_QUALIFICATION: int = 6
    OPTIONAL_SEMESTER_INDEX: int = 5
    RENDER_DEBOUNCE_SECONDS: float = 0.3

    # ==========================================
    # Uploads
    # ==========================================
    UPLOAD_CHUNK_SIZE: int = 65536  # 64KB

    # ==========================================
    # Payment
    # ==========================================
    APPLICATION_FEE_PAISE: int = 23400  # ₹234
    PAYMENT_CURRENCY: str = "INR"
    ORDER_MAX_RETRIES: int = 2
    ORDER_RETRY_DELAY: float = 1.0  # seconds

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        env_prefix = "ADMISSION_"
        case_sensitive = True
        extra = "ignore"


# Create settings instance
settings = Settings()
