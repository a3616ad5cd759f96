from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/labelscan"
    redis_url: str = "redis://redis:6379/0"

    # Local durable cache ("redis" or "memory")
    local_cache_backend: str = "redis"
    local_cache_namespace: str = "labelscan:"

    # Local cache keys
    history_cache_key: str = "@scanHistory"
    notification_feed_key: str = "@scannedItemsHistory"
    watermark_key: str = "@lastSeenScanCount"

    # Bounded stores and goals
    history_capacity: int = 10
    notification_feed_capacity: int = 20
    daily_scan_goal: int = 10
    feed_name_max_length: int = 70

    # Enrichment (Anthropic)
    anthropic_api_key: str = ""
    insight_model: str = "claude-sonnet-4-5-20250929"
    insight_max_tokens: int = 700
    insight_timeout: float = 15.0  # upper bound for the whole enrichment call
    insight_connect_timeout: float = 5.0
    insight_schema_retries: int = 1  # conversational retries after a malformed payload
    insight_enabled: bool = True
    insight_secondary_language: Optional[str] = "Arabic"

    # OCR (Google Vision)
    google_vision_api_key: str = ""
    ocr_endpoint: str = "https://vision.googleapis.com/v1/images:annotate"
    ocr_timeout: float = 15.0

    # Images
    upload_dir: str = "uploads/scans"
    image_max_width: int = 1920

    # IANA timezone for "today"; None means the host's local time
    local_timezone: Optional[str] = None

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
