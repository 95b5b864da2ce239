"""Application configuration using pydantic-settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Strapi content store
    strapi_url: str = "http://127.0.0.1:1337"
    strapi_token: str = ""
    strapi_collection: str = "parties"
    strapi_content_uid: str = "api::party.party"
    strapi_locale: str = ""

    # Source selection
    source: str = "almaz"
    cinema_url: str = ""  # Overrides the scraper's own schedule URL when set
    days_to_parse: int = 10

    # Local storage for downloaded covers
    images_dir: Path = Path("images")

    # Timeouts (seconds)
    scrape_timeout: int = 60
    description_timeout: int = 10
    image_timeout: int = 15
    store_timeout: int = 30
    upload_timeout: int = 60
    connection_check_timeout: int = 10

    # Retries
    scrape_max_retries: int = 3
    image_max_attempts: int = 3
    image_backoff: float = 0.3

    # Request headers
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    accept_language: str = "ru-RU,ru;q=0.9,en;q=0.8"

    # Scheduled mode
    sync_cron: str = "0 4 * * *"

    log_level: str = "INFO"


# Global settings instance
settings = Settings()
