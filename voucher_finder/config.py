"""
Application configuration loaded from environment variables.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings."""

    # Application
    APP_NAME: str = "Voucher Finder"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Server (voucher-finder serve)
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "3000"))

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE: str = os.getenv("LOG_FILE", "logs/app.log")
    LOG_MAX_SIZE: int = int(os.getenv("LOG_MAX_SIZE", str(5 * 1024 * 1024)))  # 5MB default
    LOG_BACKUP_COUNT: int = int(os.getenv("LOG_BACKUP_COUNT", "3"))

    # Snapshot files, one JSON document per source
    DATA_DIR: str = os.getenv("DATA_DIR", "voucher_data_dump")

    # Scraper settings
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    PAGE_DELAY_MIN: float = float(os.getenv("PAGE_DELAY_MIN", "3"))
    PAGE_DELAY_MAX: float = float(os.getenv("PAGE_DELAY_MAX", "7"))
    FETCH_RETRIES: int = int(os.getenv("FETCH_RETRIES", "3"))
    RETRY_BACKOFF: float = float(os.getenv("RETRY_BACKOFF", "2"))
    AMAZON_MAX_PAGES: int = int(os.getenv("AMAZON_MAX_PAGES", "20"))

    # Bearer token for the Maximize Money partner API
    MAXIMIZE_TOKEN: str = os.getenv("MAXIMIZE_TOKEN", "")

    # Matching
    MIN_MATCH_SCORE: int = int(os.getenv("MIN_MATCH_SCORE", "25"))

    # Scheduling (daily cycle at a fixed local time)
    SCRAPE_HOUR: int = int(os.getenv("SCRAPE_HOUR", "2"))
    SCRAPE_MINUTE: int = int(os.getenv("SCRAPE_MINUTE", "0"))
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
    RUN_ON_STARTUP: bool = os.getenv("RUN_ON_STARTUP", "true").lower() == "true"


settings = Settings()
