"""
Question Bank Configuration
Uses environment variables from .env file via Pydantic Settings
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings - reads from .env file
    Environment variables are matched case-insensitively (mongo_uri -> MONGO_URI)
    """
    app_name: str = "DSA Question Bank API"
    debug: bool = False
    log_level: str = "INFO"

    # MongoDB Configuration
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "dsa_question_bank"

    # Shared secret for the question read/write API (x-api-key header).
    # Empty means unconfigured: the API answers 500 instead of serving data.
    api_key: str = ""

    cors_origins: str = "http://localhost:3000"

    # Generation defaults
    default_temperature: float = 0.7
    provider_timeout_seconds: float = 60.0

    # Server-side provider keys, only used for the fallback provider
    openai_api_key: str = ""
    mistral_api_key: str = ""
    gemini_api_key: str = ""
    mistral_base_url: str = "https://api.mistral.ai/v1"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def provider_api_key(self, provider: str) -> str:
        """Server-configured key for a provider name ("openai", "mistral", "gemini")."""
        return {
            "openai": self.openai_api_key,
            "mistral": self.mistral_api_key,
            "gemini": self.gemini_api_key,
        }.get(provider, "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get application settings (cached)"""
    return Settings()
