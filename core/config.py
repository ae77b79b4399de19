"""
REHABCOACH Configuration

Environment variables, application settings and movement-engine tunables.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "REHABCOACH"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080", "http://localhost:5173"]

    # Sessions
    MAX_ACTIVE_SESSIONS: int = 100

    # Landmark filtering
    MIN_LANDMARK_VISIBILITY: float = 0.5

    # Session movement history (ring buffer)
    HISTORY_CAPACITY: int = 100

    # Rep counting
    REP_COOLDOWN_MS: float = 2000.0

    # Movement quality (normalized image coordinates)
    SHOULDER_LEVEL_TOLERANCE: float = 0.05
    HIP_LEVEL_TOLERANCE: float = 0.05
    HEAD_CENTER_TOLERANCE: float = 0.10

    # Balance & symmetry calibration
    BALANCE_SCALE: float = 1000.0
    SYMMETRY_SCALE: float = 500.0

    # Fatigue
    FATIGUE_WINDOW: int = 30
    FATIGUE_SCALE: float = 0.1

    # Pain indicators
    SHOULDER_COMPENSATION_THRESHOLD: float = 0.10
    RESTRICTED_ROM_WINDOW: int = 10
    RESTRICTED_ROM_THRESHOLD: float = 50.0
    TREMOR_WINDOW: int = 10
    TREMOR_JITTER_THRESHOLD: float = 0.02

    # Phase tracking
    EXECUTION_QUALITY_THRESHOLD: float = 50.0
    RECOVERY_FATIGUE_THRESHOLD: int = 5

    # Feedback selection
    REST_FATIGUE_THRESHOLD: int = 7
    LOW_BALANCE_THRESHOLD: float = 50.0
    EXCELLENT_QUALITY_THRESHOLD: float = 80.0
    GOOD_QUALITY_THRESHOLD: float = 60.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
