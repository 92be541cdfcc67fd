from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # anon key; user-scoped requests
    supabase_service_role_key: Optional[str] = None  # household-wide reads and batch jobs

    # OpenRouter (vibes generation)
    openrouter_api_key: Optional[str] = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "qwen/qwen3-vl-8b-instruct"
    openrouter_timeout_sec: float = 120.0
    openrouter_max_retries: int = 3

    # RapidAPI (Zillow image galleries)
    rapidapi_key: Optional[str] = None
    rapidapi_host: str = "us-housing-market-data1.p.rapidapi.com"

    # Couples caches (seconds / entries)
    mutual_likes_cache_ttl: int = 5 * 60
    mutual_likes_cache_size: int = 1000
    activity_cache_ttl: int = 2 * 60
    activity_cache_size: int = 500
    stats_cache_ttl: int = 10 * 60
    stats_cache_size: int = 1000

    # App
    app_name: str = "homematch-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    interactions_rate_limit: str = "60/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
