from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    PROJECT_NAME: str = "SEOLens"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str = "sqlite+aiosqlite:///./seolens.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    CORS_ORIGINS: str = "http://localhost:3000"

    LOG_LEVEL: str = "INFO"

    # LLM Configuration
    # Provider: "openai", "anthropic", or "local" (LM Studio)
    LLM_PROVIDER: str = "openai"
    LLM_BASE_URL: str = "https://api.openai.com/v1"
    LLM_API_KEY: str = ""
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_TIMEOUT: float = 60.0

    # Provider-specific aliases for LLM_API_KEY
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""

    # Google PageSpeed Insights
    PAGESPEED_API_KEY: str = ""
    PAGESPEED_TIMEOUT: float = 60.0

    # Page fetching
    FETCH_TIMEOUT: float = 15.0
    FETCH_MAX_REDIRECTS: int = 5
    PROBE_TIMEOUT: float = 10.0
    SITE_PROBE_TIMEOUT: float = 5.0

    # Analysis
    CONTENT_TRUNCATE_LENGTH: int = 8000
    MAX_RECOMMENDATIONS: int = 12

    # Issue tracking (hours an issue stays suppressed after being fixed)
    GRACE_PERIOD_AI_FIX_HOURS: int = 48
    GRACE_PERIOD_MANUAL_FIX_HOURS: int = 24
    TRACKED_ISSUE_LIMIT: int = 500
    RECENT_ISSUE_LIMIT: int = 50

    # Background analysis worker
    ANALYSIS_QUEUE: str = "analysis"
    ANALYSIS_TASK_TIME_LIMIT: int = 600
    ANALYSIS_RESULT_TTL: int = 86400
    WORKER_CONCURRENCY: int = 4

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins_list(self) -> List[str]:
        if isinstance(self.CORS_ORIGINS, str):
            return [o.strip() for o in self.CORS_ORIGINS.split(",")]
        return self.CORS_ORIGINS

    @property
    def llm_api_key(self) -> str:
        """API key for the configured LLM provider, falling back to vendor aliases."""
        if self.LLM_API_KEY:
            return self.LLM_API_KEY
        if self.LLM_PROVIDER == "anthropic":
            return self.ANTHROPIC_API_KEY
        if self.LLM_PROVIDER == "openai":
            return self.OPENAI_API_KEY
        return ""


settings = Settings()
