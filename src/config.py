"""
Centralized Configuration System
Environment-aware settings for the analysis pipelines and their upstreams.
"""
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal


class ConfigurationError(Exception):
    """Required configuration is missing or invalid."""
    pass


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    """
    Production-grade configuration management.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # API CREDENTIALS (required)
    # ============================================
    census_api_key: str
    reddit_client_id: str
    reddit_client_secret: str
    anthropic_api_key: str

    # ============================================
    # GENERATIVE MODEL
    # ============================================
    analysis_model: str = "claude-sonnet-4-20250514"
    model_max_tokens: int = 4000
    model_timeout_seconds: float = 250.0
    model_context_posts: int = 10   # Top discussion posts embedded in the prompt

    # ============================================
    # UPSTREAM ENDPOINTS
    # ============================================
    census_api_base: str = "https://api.census.gov/data"
    census_population_year: int = 2020
    census_acs_year: int = 2021
    census_bds_year: int = 2022
    reddit_auth_url: str = "https://www.reddit.com/api/v1/access_token"
    reddit_api_base: str = "https://oauth.reddit.com"
    reddit_user_agent: str = "PMF-Scout/1.0 (Research Agent)"

    # ============================================
    # DISCUSSION SEARCH
    # ============================================
    discussion_channels: list[str] = [
        "entrepreneur",
        "startups",
        "smallbusiness",
        "business",
        "sidehustle",
        "indiebiz",
    ]
    discussion_page_size: int = 25
    discussion_max_pages: int = 2
    discussion_max_posts: int = 50

    # ============================================
    # COMPETITOR RESEARCH
    # ============================================
    competitor_max_count: int = 10
    competitor_context_posts: int = 5   # Discussion posts embedded per competitor prompt

    # ============================================
    # RESILIENCE
    # ============================================
    http_timeout_ms: int = 10000
    http_max_retries: int = 3
    http_base_backoff_ms: int = 1000
    http_backoff_cap_ms: int = 10000
    rate_limit_default_wait_seconds: int = 60
    data_fetch_timeout_seconds: float = 25.0

    # LLM retry budget (run_agent_with_retry)
    max_retries: int = 3
    retry_min_wait_seconds: int = 2
    retry_max_wait_seconds: int = 10

    # ============================================
    # PERSISTENCE
    # ============================================
    store_backend: Literal["mongodb", "memory"] = "mongodb"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "pmf_scout"
    analyses_table_name: str = "analyses"
    mongodb_max_pool_size: int = 10
    mongodb_min_pool_size: int = 0
    mongodb_server_selection_timeout_ms: int = 5000

    # ============================================
    # BACKGROUND WORKER
    # ============================================
    worker_max_concurrent: int = 5
    worker_poll_interval_seconds: float = 1.0

    # ============================================
    # CORS
    # ============================================
    frontend_origin: str = "http://localhost:5173"

    # ============================================
    # LOGGING
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "staging", "production", "test"] = "development"


def load_settings(**overrides) -> Settings:
    """
    Build a Settings instance, turning pydantic's validation report into
    a ConfigurationError that names the offending environment variables.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = sorted({
            ".".join(str(part) for part in error["loc"]).upper()
            for error in e.errors()
        })
        raise ConfigurationError(
            f"Missing or invalid configuration: {', '.join(fields)}"
        ) from e


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return load_settings()
