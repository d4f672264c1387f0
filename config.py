"""Process configuration, read from the environment (and an optional .env file)."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Service settings. Every provider is optional; an empty key disables it."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Comma-separated list, "*" allows any origin
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # Renderer
    render_timeout_ms: int = Field(default=25_000, alias="RENDER_TIMEOUT_MS")
    image_fetch_timeout_ms: int = Field(default=10_000, alias="IMAGE_FETCH_TIMEOUT_MS")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="USER_AGENT")

    # Wish text store
    text_ttl_seconds: float = Field(default=600.0, alias="TEXT_TTL_SECONDS")
    text_max_chars: int = Field(default=2000, alias="TEXT_MAX_CHARS")

    # Text inference (OpenAI-compatible chat completions)
    llm_api_key: str = Field(default="", alias="LLM_API_KEY")
    llm_base_url: str = Field(default="https://api.groq.com/openai/v1", alias="LLM_BASE_URL")
    llm_model: str = Field(default="llama-3.3-70b-versatile", alias="LLM_MODEL")
    llm_timeout_s: float = Field(default=30.0, alias="LLM_TIMEOUT_S")

    # Vision inference, tried in this order: gemini -> openrouter -> openai
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta", alias="GEMINI_BASE_URL"
    )
    openrouter_api_key: str = Field(default="", alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(default="google/gemini-2.0-flash-001", alias="OPENROUTER_MODEL")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL")
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    vision_timeout_s: float = Field(default=45.0, alias="VISION_TIMEOUT_S")

    # Object storage (Supabase storage REST API)
    storage_url: str = Field(default="", alias="STORAGE_URL")
    storage_key: str = Field(default="", alias="STORAGE_KEY")
    storage_bucket: str = Field(default="wishes", alias="STORAGE_BUCKET")

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def storage_enabled(self) -> bool:
        return bool(self.storage_url and self.storage_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
