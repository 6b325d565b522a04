from pydantic_settings import BaseSettings
from functools import lru_cache
import os


class Settings(BaseSettings):
    app_name: str = "SkillVault API"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = "INFO"

    # Database - SQLite locally, PostgreSQL in production
    database_url: str = "sqlite+aiosqlite:///./skillvault.db"

    # Security - MUST be set via environment variables in production
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 30  # 30 days

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:3000"

    # AI/LLM Configuration
    gemini_api_key: str = ""
    gemini_text_model: str = "gemini-2.0-flash"
    gemini_vision_model: str = "gemini-2.0-flash"
    analysis_max_attempts: int = 2
    authenticity_reject_below: float = 0.5
    authenticity_verify_at: float = 0.8
    auto_analyze_certificates: bool = False

    # File storage: "local" or "supabase"
    storage_backend: str = "local"
    upload_dir: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "uploads")
    max_upload_size: int = 5 * 1024 * 1024  # 5MB

    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_bucket: str = "certificates"

    class Config:
        env_file = ".env"
        extra = "ignore"
        # Make field names case-insensitive for environment variables
        case_sensitive = False

    def get_cors_origins(self) -> list:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
