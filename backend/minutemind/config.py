"""
Application configuration loaded from environment variables.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:5000/auth/google/callback"

    # Frontend URL for CORS and redirects
    frontend_url: str = "http://localhost:3000"
    # Extra origins allowed to make credentialed requests (comma separated)
    allowed_origins: str = ""

    # Language model (any OpenAI-compatible endpoint)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.1-8b-instant"
    # Unset means the provider's default
    llm_max_tokens: Optional[int] = None
    llm_temperature: Optional[float] = None

    # Session
    session_secret: str = "dev-secret-change-in-production"
    session_cookie_name: str = "session"
    session_expire_hours: int = 24
    session_idle_minutes: int = 120

    # "production" turns on secure, cross-site cookies
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 5000

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        """Explicit allow-list of frontend origins."""
        origins = [self.frontend_url.rstrip("/")]
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
