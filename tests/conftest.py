import pytest

from config import Settings

PROVIDER_KEYS = {
    "LLM_API_KEY": "",
    "GEMINI_API_KEY": "",
    "OPENROUTER_API_KEY": "",
    "OPENAI_API_KEY": "",
    "STORAGE_URL": "",
    "STORAGE_KEY": "",
}


@pytest.fixture
def settings() -> Settings:
    """Settings with every external provider disabled, independent of the host environment."""
    return Settings(_env_file=None, **PROVIDER_KEYS)
