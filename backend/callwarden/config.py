"""
CallWarden - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and environment-specific values are loaded from environment variables.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_END_MESSAGE = "You have reached your time limit. The call will now end. Goodbye."


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    Hierarchy (highest to lowest priority):
    1. Environment variables
    2. .env file
    3. Default values
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )
    
    # --- Application ---
    app_env: str = "development"
    app_debug: bool = True
    app_log_level: str = "INFO"
    log_json: bool = False  # JSON lines for production, human-readable otherwise
    
    # --- Server ---
    backend_host: str = "0.0.0.0"
    backend_port: int = Field(
        default=3000,
        validation_alias=AliasChoices("backend_port", "port"),
    )
    
    # --- Call Control ---
    # "twilio" = live Twilio REST API (requires credentials)
    # "dummy" = log-only controller for local development
    call_control_backend: str = "twilio"
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    call_control_timeout_seconds: float = 10.0
    
    # --- Enforcement ---
    end_call_pause_seconds: int = 2
    default_end_message: str = DEFAULT_END_MESSAGE


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    
    Use dependency injection in routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
