from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # MongoDB settings
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "meeting_scheduler"

    # Scheduling defaults
    default_timezone: str = "UTC"
    default_work_start: str = "09:00"
    default_work_end: str = "17:00"
    slot_granularity_minutes: int = 60
    max_candidate_windows: int = 40
    suggested_slots_limit: int = 5  # Returned to the caller
    persisted_slots_limit: int = 10  # Stored per meeting request
    default_search_days: int = 7
    min_duration_minutes: int = 15
    max_duration_minutes: int = 480
    revalidate_on_confirm: bool = True

    # Calendar sync settings
    sync_lookback_days: int = 30
    sync_grace_minutes: int = 15
    sync_future_days: int = 30
    provider_timeout_seconds: float = 10.0
    google_calendar_api_url: str = "https://www.googleapis.com/calendar/v3"
    outlook_graph_api_url: str = "https://graph.microsoft.com/v1.0"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = ["*"]

    # Optional settings
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
