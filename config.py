"""
Configuration management for the Lead Management Service
"""
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Supabase Configuration
    supabase_url: str = Field("", alias="SUPABASE_URL")
    supabase_service_role_key: str = Field("", alias="SUPABASE_SERVICE_ROLE_KEY")

    # Enrichment provider keys (optional: a missing key turns the provider into a no-op)
    pappers_api_key: Optional[str] = Field(None, alias="PAPPERS_API_KEY")
    hunter_api_key: Optional[str] = Field(None, alias="HUNTER_API_KEY")
    neverbounce_api_key: Optional[str] = Field(None, alias="NEVERBOUNCE_API_KEY")

    # Service Configuration
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    request_timeout: int = Field(30, alias="REQUEST_TIMEOUT")

    # Lead defaults
    default_page_size: int = Field(25, alias="DEFAULT_PAGE_SIZE")
    default_country: str = Field("France", alias="DEFAULT_COUNTRY")
    enrichment_log_limit: int = Field(100, alias="ENRICHMENT_LOG_LIMIT")

    # HTTP server
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8000, alias="PORT")
    service_name: str = Field("lead-management-service", alias="SERVICE_NAME")

    # Logging Configuration
    log_file_enabled: bool = Field(False, alias="LOG_FILE_ENABLED")
    log_file_path: str = Field("logs", alias="LOG_FILE_PATH")
    log_rotation: str = Field("10 MB", alias="LOG_ROTATION")
    log_retention: str = Field("30 days", alias="LOG_RETENTION")

    # Development
    debug_mode: bool = Field(False, alias="DEBUG_MODE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @validator("log_level")
    def validate_log_level(cls, v):
        """Validate log level is one of the standard Python logging levels"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @validator("default_page_size")
    def validate_default_page_size(cls, v):
        """Ensure page size is reasonable"""
        if v < 1 or v > 500:
            raise ValueError("default_page_size must be between 1 and 500")
        return v


# Global settings instance - lazy loaded
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment"""
    global _settings
    _settings = Settings()
    return _settings
