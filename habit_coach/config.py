"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Habit Coach"
    environment: str = "development"
    log_level: str = "info"
    debug: bool = False

    # Persona
    default_persona: str = "supportive"

    # Token budgets
    max_context_tokens: int = 4096
    response_buffer_tokens: int = 400
    history_token_budget: int = 2500
    chars_per_token: float = 2.5
    user_context_token_budget: int = 300

    # Long-term summary
    summary_max_insights: int = 2
    summary_top_triggers: int = 2
    summary_max_strategies: int = 2
    strategy_effectiveness_threshold: float = 0.7

    # Memory caps (oldest evicted first)
    max_insights: int = 50
    max_plans: int = 30
    max_triggers: int = 20
    max_strategies: int = 20
    max_session_summaries: int = 10
    max_records: int = 100

    # Insight extraction
    max_extracted_insights: int = 5
    min_insight_length: int = 8

    # Storage
    storage_backend: str = "memory"  # "memory" | "mongodb"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "habit_coach"
    storage_encryption_key: str = ""
    storage_chunk_size: int = 1800

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
