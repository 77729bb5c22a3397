from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Gemini through its OpenAI-compatible endpoint (text + vision)
    google_ai_api_key: str | None = Field(default=None, validation_alias="GOOGLE_AI_API_KEY")
    gemini_model: str = Field(default="gemini-1.5-flash", validation_alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai/",
        validation_alias="GEMINI_BASE_URL",
    )

    llm_timeout_seconds: int = Field(default=20, validation_alias="LLM_TIMEOUT_SECONDS")
    llm_max_attempts: int = Field(default=3, validation_alias="LLM_MAX_ATTEMPTS")
    llm_temperature: float = Field(default=0.2, validation_alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=1600, validation_alias="LLM_MAX_TOKENS")

    # OCR runs on a vision model; the engine itself is a black box for the core.
    ocr_model: str = Field(default="gemini-1.5-flash", validation_alias="OCR_MODEL")
    ocr_timeout_seconds: int = Field(default=30, validation_alias="OCR_TIMEOUT_SECONDS")
    ocr_max_tokens: int = Field(default=1024, validation_alias="OCR_MAX_TOKENS")
    ocr_max_attempts: int = Field(default=3, validation_alias="OCR_MAX_ATTEMPTS")
    max_upload_image_bytes: int = Field(
        default=5 * 1024 * 1024, validation_alias="MAX_UPLOAD_IMAGE_BYTES"
    )

    # Progressive hints
    max_hints: int = Field(default=3, validation_alias="MAX_HINTS")

    # Heuristic parser: excerpt length for the single "Analiză" fallback step
    fallback_excerpt_chars: int = Field(default=200, validation_alias="FALLBACK_EXCERPT_CHARS")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_to_file: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    log_file_path: str = Field(
        default=os.path.join("logs", "math_tutor.log"),
        validation_alias="LOG_FILE_PATH",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
