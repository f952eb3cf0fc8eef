from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    phone_number: str = ""

    llm_provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    whatsapp_api_url: str = "http://localhost:2000"
    audio_dir: Path = Path("public/audio")
    http_timeout_seconds: float = 30.0

    tts_engine: str = "auto"
    tts_max_chars: int = 1500
    tts_timeout_seconds: float = 60.0

    history_limit: int = 10
    seen_ids_limit: int = 100

    alert_bot_token: str | None = None
    alert_chat_id: str | None = None

    keep_audio_files: bool = False

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
