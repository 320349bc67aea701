"""Application settings loaded from environment variables."""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.grading.validator import CapStrategy

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_SYSTEM_PROMPT_PATH = BASE_DIR / "app" / "prompts" / "grading_system_prompt.txt"


class Settings(BaseSettings):
    """Runtime configuration for the Comic Grader backend."""

    model_config = SettingsConfigDict(env_prefix="COMICGRADER_", extra="ignore")

    app_name: str = "Comic Grader API"

    # Upload limits
    max_upload_mb: int = 10
    max_images: int = 10

    # Image normalization before provider calls
    image_max_width: int = 2048
    image_jpeg_quality: int = 85

    # Prompt loaded once at startup
    system_prompt_path: str | None = None

    # Grade caps: "clamp" reports min(grade, cap), "ceiling" reports the cap itself
    cap_strategy: CapStrategy = CapStrategy.CLAMP

    # Provider models
    openai_model: str = Field(
        default="gpt-4o",
        validation_alias=AliasChoices("COMICGRADER_OPENAI_MODEL", "OPENAI_MODEL"),
    )
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    anthropic_base_url: str = "https://api.anthropic.com"
    gemini_model: str = "gemini-1.5-flash"
    ollama_url: str = Field(
        default="http://localhost:11434",
        validation_alias=AliasChoices("COMICGRADER_OLLAMA_URL", "OLLAMA_API_URL"),
    )
    ollama_model: str = Field(
        default="llama3.2-vision",
        validation_alias=AliasChoices("COMICGRADER_OLLAMA_MODEL", "OLLAMA_MODEL"),
    )

    max_output_tokens: int = 2000
    request_timeout_seconds: float = 60.0
    ollama_timeout_seconds: float = 600.0
    retry_backoffs: str = "1.0,2.0"

    # CORS configuration
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("COMICGRADER_CORS_ALLOW_ORIGINS", "CORS_ALLOW_ORIGINS"),
    )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def system_prompt_file(self) -> Path:
        if self.system_prompt_path:
            return Path(self.system_prompt_path)
        return DEFAULT_SYSTEM_PROMPT_PATH

    @property
    def retry_backoff_seconds(self) -> tuple[float, ...]:
        return tuple(float(item) for item in self.retry_backoffs.split(",") if item.strip())

    @property
    def cors_origin_list(self) -> list[str]:
        if self.cors_allow_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = Settings()
