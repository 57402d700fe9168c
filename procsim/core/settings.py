"""Controller and scheduler defaults via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "procsim"
    VERSION: str = "0.1.0"

    # Controller defaults
    DEFAULT_KP: float = 1.0
    DEFAULT_KI: float = 0.1
    DEFAULT_KD: float = 0.0
    OUTPUT_MIN: float = 0.0
    OUTPUT_MAX: float = 100.0
    DEFAULT_STRUCTURE: str = "basic_pid"
    DEFAULT_FORMULATION: str = "position"
    ANTI_WINDUP: bool = True
    RESEED_ON_AUTO: bool = False

    # Scan scheduler
    SCAN_INTERVAL: float = 1.0
    RECORDER_BUFFER_SIZE: int = 100
    RECORDER_HISTORY_SIZE: int = 500

    class Config:
        env_file = ".env"
        env_prefix = "PROCSIM_"
        case_sensitive = True


settings = Settings()
