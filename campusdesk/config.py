"""
CampusDesk - Configuration Management
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    # FastAPI
    fastapi_env: str = "development"
    fastapi_host: str = "0.0.0.0"
    fastapi_port: int = 8000

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: str = ""

    # Admin
    admin_api_key: str = ""

    # AI service
    ai_service_url: str = "http://localhost:3002"
    ai_service_api_key: str = ""
    ai_service_timeout: float = 30.0
    ai_service_max_retries: int = 1
    ai_model_name: str = "gemini-1.5-flash"

    # Tickets
    ticket_number_prefix: str = "BBD"
    ticket_number_max_attempts: int = 5

    # Queues
    ai_queue_concurrency: int = 5
    ocr_queue_concurrency: int = 3
    notification_queue_concurrency: int = 10
    job_max_attempts: int = 3
    job_backoff_base_seconds: float = 5.0
    job_backoff_max_seconds: float = 300.0
    job_timeout_seconds: float = 120.0
    queue_poll_interval_seconds: float = 1.0
    remove_completed_jobs: bool = True

    # SLA
    sla_sweep_interval_seconds: float = 300.0
    sla_sweep_enabled: bool = True

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )

    def queue_concurrency(self) -> dict:
        """Concurrency ceiling per named queue"""
        return {
            "ai": self.ai_queue_concurrency,
            "ocr": self.ocr_queue_concurrency,
            "notification": self.notification_queue_concurrency,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
