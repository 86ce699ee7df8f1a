"""Configuration settings for the live RTP monitor"""

from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Main application settings"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./rtp_monitor.db"

    # Upstream operator endpoint
    SITE_BASE_URL: str = "https://cgg.bet.br"
    LIVE_RTP_URL: str = "https://cgg.bet.br/casinogo/widgets/v2/live-rtp"
    REQUEST_TIMEOUT: float = 10.0
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"
    )
    ACCEPT_LANGUAGE: str = "pt-BR"
    RANKING_REQUEST_LIMIT: int = 2  # field 2 of the request body

    # Polling
    UPDATE_INTERVAL_SECONDS: int = 3
    HISTORY_RETENTION_DAYS: int = 7

    # Derivation
    DERIVATION_STRATEGY: str = "bayesian"  # "bayesian" | "display"
    DEFAULT_RTP_TEORICO: float = 0.96
    DEFAULT_VOLATILITY: str = "medium"
    DISPLAY_RTP_BASELINE: float = 96.0
    RANKING_LIMIT: int = 10

    # Schema drift detection
    MAX_RECORDS_PER_FRAME: int = 5000
    MIN_PARSE_RATIO: float = 0.5

    # Image cache
    IMAGE_CACHE_ENABLED: bool = True
    IMAGE_CACHE_CONCURRENCY: int = 3

    # Application Settings
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3001
    API_RELOAD: bool = False
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    API_KEY: str = ""  # enforced on POST endpoints when set

    # Diagnostics
    DEBUG_PROTOBUF: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
