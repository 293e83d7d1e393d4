from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APP_",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    cors_origin_regex: str | None = None
    trusted_hosts: list[str] = ["*"]
    root_path: str = ""
    admin_emails: list[str] = []

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    supabase_timeout_seconds: float = 10.0
    page_size: int = 1000

    # OpenAI (classifier is optional; without a key the pipeline runs on keyword fallback)
    openai_api_key: str | None = None
    classifier_enabled: bool = True
    classifier_model: str = "gpt-5-nano"
    classifier_reasoning: str = "low"
    classifier_timeout_seconds: float = 20.0

    # Retry policy for transient classifier failures
    classifier_max_attempts: int = 3
    classifier_backoff_base_seconds: float = 1.0
    classifier_backoff_max_seconds: float = 10.0

    # Cost model (USD per million tokens, input share of total tokens)
    cost_input_per_mtok: float = 0.05
    cost_output_per_mtok: float = 0.40
    cost_input_share: float = 0.6

    @property
    def classifier_configured(self) -> bool:
        return self.classifier_enabled and bool(self.openai_api_key)


settings = Settings()
