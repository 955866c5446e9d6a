"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Locate the project root .env file regardless of CWD
_THIS_DIR = Path(__file__).resolve().parent          # blogbatch/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

HOUR = 60 * 60


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM provider: gemini | openai | anthropic
    blogbatch_llm_provider: str = "gemini"

    # Gemini
    gemini_api_key: str | None = None
    blogbatch_gemini_model: str = "gemini-2.5-flash"

    # OpenAI
    openai_api_key: str | None = None
    blogbatch_openai_model: str = "gpt-4o-mini"

    # Anthropic
    anthropic_api_key: str | None = None
    blogbatch_anthropic_model: str = "claude-3-5-sonnet-20241022"

    # SerpAPI; research falls back to the LLM when unset
    serpapi_key: str | None = None

    # Data directory for cache, progress and file-based article output
    blogbatch_data_dir: str = "./data"

    # Default topic config (highValueTopics JSON)
    blogbatch_topics_config: str = "config/high-value-topics.json"

    # Postgres for articles + batch progress (file stores when unset)
    database_url: str | None = None

    # Scheduling
    blogbatch_article_concurrency: int = 1
    blogbatch_research_concurrency: int = 3
    # Pause between sequential section calls, in seconds
    blogbatch_section_delay: float = 1.0
    # Fail an article when any of its research calls fail
    blogbatch_require_research: bool = True

    # Cache TTLs in seconds
    blogbatch_serp_ttl: float = 24 * HOUR
    blogbatch_reddit_ttl: float = 12 * HOUR

    # Retry policy layered above the rate limiter
    blogbatch_retry_attempts: int = 3
    blogbatch_retry_base_delay: float = 1.0

    @property
    def data_dir(self) -> Path:
        """Get data directory as Path.

        Relative paths are resolved against the project root (not CWD).
        """
        p = Path(self.blogbatch_data_dir)
        if not p.is_absolute():
            return (_PROJECT_ROOT / p).resolve()
        return p.resolve()

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / "cache"

    @property
    def progress_dir(self) -> Path:
        return self.data_dir / "progress"

    @property
    def articles_dir(self) -> Path:
        return self.data_dir / "articles"

    @property
    def topics_config_path(self) -> Path:
        p = Path(self.blogbatch_topics_config)
        if not p.is_absolute():
            return _PROJECT_ROOT / p
        return p

    def llm_credentials(self, provider_name: str | None = None) -> dict[str, str | None]:
        """Return api_key/model kwargs for the given (or configured) provider."""
        name = (provider_name or self.blogbatch_llm_provider).lower()
        if name == "openai":
            return {"api_key": self.openai_api_key, "model": self.blogbatch_openai_model}
        if name == "anthropic":
            return {"api_key": self.anthropic_api_key, "model": self.blogbatch_anthropic_model}
        return {"api_key": self.gemini_api_key, "model": self.blogbatch_gemini_model}

    def ensure_dirs(self) -> None:
        """Ensure all data directories exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.progress_dir.mkdir(parents=True, exist_ok=True)
        self.articles_dir.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_dirs()
    return settings
