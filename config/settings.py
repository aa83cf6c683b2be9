"""Configuration settings for the Slip Ledger service."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Ledger storage
    db_path: str = "data/ledger.db"

    # OpenRouter (text + vision)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_text_model_fast: str = "google/gemma-3-4b-it:free"
    openrouter_text_model_balanced: str = "meta-llama/llama-3.3-70b-instruct:free"
    openrouter_text_model_verify: str = "mistralai/mistral-small-3.1-24b-instruct:free"
    openrouter_text_model_consensus_b: str = "arcee-ai/trinity-large-preview:free"
    openrouter_vision_models: str = (
        "nvidia/nemotron-nano-12b-v2-vl:free,"
        "qwen/qwen2.5-vl-72b-instruct:free,"
        "meta-llama/llama-3.2-11b-vision-instruct:free"
    )
    app_url: str = "http://localhost:8000"  # Sent as HTTP-Referer to OpenRouter

    # Direct OpenAI-compatible fallbacks
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"
    mistral_api_key: str = ""
    mistral_model: str = "mistral-small-latest"
    cerebras_api_key: str = ""
    cerebras_model: str = "llama3.1-8b"
    hf_token: str = ""
    hf_model: str = "mistralai/Mistral-7B-Instruct-v0.3"

    provider_timeout: float = 60.0
    vision_timeout: float = 90.0

    # Slip uploads
    max_upload_bytes: int = 12 * 1024 * 1024

    # Grading thresholds
    commit_confidence_floor: float = 0.75
    leg_match_floor: float = 0.35

    # League index cache
    espn_base_url: str = "https://site.api.espn.com/apis/site/v2/sports"
    league_index_ttl_hours: float = 6.0

    # Reporting
    unit_size: float = 16.0  # Dollars per unit

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def vision_models(self) -> list[str]:
        """Ordered vision model list."""
        return [m.strip() for m in self.openrouter_vision_models.split(",") if m.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
