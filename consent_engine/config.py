from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from typing import Optional

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Regional Consent Engine"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./consent_engine.db"

    # Geolocation settings
    geo_api_url: str = "http://ip-api.com/json/{ip}?fields=status,countryCode"
    geo_api_enabled: bool = True
    geo_lookup_timeout: float = 5.0
    geo_database_path: Optional[str] = None
    region_cache_ttl: int = 3600  # 1 hour
    region_cache_max_size: int = 10000

    # Consent log settings
    default_banner_version: str = "1.0.0"
    default_retention_days: int = 365
    export_max_rows: int = 10000
    session_cookie_name: str = "consent_session_id"
    session_cookie_max_age: int = 60 * 60 * 24 * 365

    # Administration: consent log endpoints require this key; unset disables them
    admin_api_key: Optional[str] = None
    admin_api_key_header: str = "X-API-Key"

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
