"""
POSEFIT Configuration

Environment variables and engine settings.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Application
    APP_NAME: str = "POSEFIT"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Scoring
    MIN_JOINT_CONFIDENCE: float = 0.5  # 2D joints must be strictly above this

    # Real-time mode
    REALTIME_MAX_ANALYSES_PER_SECOND: float = 10.0
    FEEDBACK_DISPLAY_SECONDS: float = 3.0

    # Batch (offline video) mode
    BATCH_FRAMES_PER_SECOND: float = 5.0
    EXTRACTION_PROGRESS_SHARE: float = 0.8  # rest is reserved for segmentation

    # Thread Pool
    THREAD_POOL_SIZE: int = 4

    # Session summary
    MAX_RECOMMENDATIONS: int = 3

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
