"""Settings - environment loading and validation"""
from pydantic_settings import BaseSettings
from pydantic import field_validator


DEFAULT_PRICE_LIST_URL = (
    "https://www.alko.fi/INTERSHOP/static/WFS/Alko-OnlineShop-Site/-/Alko-OnlineShop/fi_FI/"
    "Alkon%20Hinnasto%20Tekstitiedostona/alkon-hinnasto-tekstitiedostona.xlsx"
)


class Settings(BaseSettings):
    """Application settings"""

    # Database
    database_url: str = "sqlite:///./alko_catalog.db"

    # Alko site
    alko_base_url: str = "https://www.alko.fi"
    alko_price_list_url: str = DEFAULT_PRICE_LIST_URL
    alko_price_list_referer: str = "https://www.alko.fi/valikoimat-ja-hinnasto/hinnasto"

    # Scraper
    scrape_rate_limit_ms: int = 2000
    scrape_jitter_ms: int = 1000
    scrape_cache_ttl_ms: int = 3600000  # 1 hour
    vivino_rate_limit_ms: int = 3000
    crawler_timeout_ms: int = 30000
    crawler_session_timeout_ms: int = 60000
    crawler_max_retries: int = 3
    crawler_headless: bool = True
    crawler_block_resources: bool = True
    crawler_user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Spreadsheet download (curl_cffi)
    crawler_http_impersonate: str = "chrome120"
    crawler_http_timeout_s: float = 60.0
    sync_download_retries: int = 2

    # Fast-tier cache sizes / TTLs (seconds)
    cache_item_capacity: int = 5000
    cache_item_ttl_s: int = 3600
    cache_search_capacity: int = 500
    cache_search_ttl_s: int = 900
    cache_availability_capacity: int = 1000
    cache_rating_capacity: int = 500
    cache_rating_ttl_s: int = 3600

    # Search
    search_full_scan_limit: int = 15000
    search_default_limit: int = 20
    search_max_limit: int = 100

    # Bootstrap
    seed_data_path: str = "data/seed-data.json"

    # Scheduler: nightly item sync at 04:00
    sync_cron_schedule: str = "0 4 * * *"
    sync_scheduler_enabled: bool = False
    # Vivino lookups launch a second browser
    rating_lookup_enabled: bool = True

    # API
    api_title: str = "Alko Catalog"
    api_version: str = "1.0.0"
    api_description: str = "Alko price list catalog with cached availability and relevance search."

    # Logging
    log_level: str = "INFO"

    @field_validator("scrape_rate_limit_ms", "vivino_rate_limit_ms")
    @classmethod
    def validate_rate_limits(cls, v: int) -> int:
        if v < 1000:
            raise ValueError("rate limits must be at least 1000ms")
        return v

    @field_validator("scrape_cache_ttl_ms", "crawler_timeout_ms", "crawler_session_timeout_ms")
    @classmethod
    def validate_positive_ms(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("timeouts and TTLs must be positive")
        return v

    @field_validator(
        "cache_item_capacity",
        "cache_search_capacity",
        "cache_availability_capacity",
        "cache_rating_capacity",
    )
    @classmethod
    def validate_capacity(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cache capacities must be positive")
        return v

    @field_validator("search_full_scan_limit")
    @classmethod
    def validate_full_scan_limit(cls, v: int) -> int:
        if v < 100:
            raise ValueError("search_full_scan_limit must cover the catalog (>= 100)")
        return v

    @field_validator("database_url", "alko_price_list_url")
    @classmethod
    def validate_required_urls(cls, v: str) -> str:
        if not v:
            raise ValueError("database_url and alko_price_list_url must not be empty")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
