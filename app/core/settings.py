"""
Core settings and environment variables for Ripple Civic Reports.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Ripple Civic Reports"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API
    CORS_ORIGINS: str = "http://localhost:3001,http://127.0.0.1:3001"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # In-memory store for local development without Firebase credentials
    USE_MOCK_DB: bool = False

    # ML verification of completed work
    ML_API_URL: str = "https://ripple-model-dfgk.onrender.com/predict"
    ML_TIMEOUT_SECONDS: float = 10.0
    ML_CONFIDENCE_THRESHOLD: float = 0.70  # Below this a human re-checks the work
    ML_SUPPORTED_ISSUE_TYPES: str = "Pothole,Broken Street Light,Garbage Overflow,Drainage Overflow"

    # Report status notifications (best-effort, unset disables sending)
    NOTIFICATION_SERVICE_URL: Optional[str] = None
    NOTIFICATION_TIMEOUT_SECONDS: float = 5.0
    NOTIFICATION_MAX_WORKERS: int = 2

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origins(self) -> List[str]:
        return _split_csv(self.CORS_ORIGINS)

    @property
    def ml_supported_issue_types(self) -> List[str]:
        return _split_csv(self.ML_SUPPORTED_ISSUE_TYPES)


# Global settings instance
settings = Settings()
