import secrets
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "PokeMaker"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = secrets.token_urlsafe(32)
    # 8 days
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8
    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []
    FRONTEND_HOST: str = "http://localhost:5173"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS] + [
            self.FRONTEND_HOST
        ]

    DATABASE_URL: str = "sqlite:///./pokemaker.db"

    FIRST_USER_USERNAME: str = "trainer"
    FIRST_USER_PASSWORD: str = "changethis"
    FIRST_USER_DISPLAY_NAME: str | None = None

    # OpenAI-compatible provider used for the vision and image steps.
    LLM_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    LLM_BASE_URL: str | None = None
    MODEL_VISION: str = "gpt-4o"
    MODEL_IMAGE: str = "dall-e-3"
    IMAGE_SIZE: str = "1024x1024"
    IMAGE_QUALITY: str = "standard"
    VISION_MAX_TOKENS: int = 500

    STORAGE_ROOT: Path = Path("./storage")
    STORAGE_PUBLIC_BASE_URL: str = "http://localhost:8000"
    STORAGE_DEFAULT_BUCKET: str = "pokemon-images"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    AUTOSAVE_DELAY_SECONDS: float = 3.0
    DRAFT_IDLE_TIMEOUT_SECONDS: float = 60 * 60


settings = Settings()  # type: ignore
