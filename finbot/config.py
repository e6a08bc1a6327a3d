"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./finbot.db"

    # Application
    APP_ENV: str = "development"
    API_V1_PREFIX: str = "/api"

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"

    # Primary / backup chat models
    MODEL_NORMAL: str = "claude-sonnet-4-5"
    MODEL_NORMAL_PROVIDER: str = "anthropic"
    MODEL_NORMAL_BACKUP: str = ""
    MODEL_NORMAL_BACKUP_PROVIDER: str = ""

    # Anthropic
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_TIMEOUT: float = 60.0

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_TIMEOUT: float = 60.0

    # Generation
    MAX_OUTPUT_TOKENS: int = 4096
    TEMPERATURE: float = 1.0
    WEB_SEARCH_MAX_USES: int = 5

    # Conversation loop
    MAX_TOOL_ROUNDS: int = 10
    MEDIA_GROUP_QUIET_SECONDS: float = 3.0
    RECENT_TRANSACTIONS_LIMIT: int = 50

    # Error dumps (one JSON file per reported failure)
    ERROR_LOG_DIR: Optional[str] = None

    # CORS
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        if self.APP_ENV == "development":
            return ["*"]
        return [self.FRONTEND_URL]

    @property
    def backup_configured(self) -> bool:
        return bool(self.MODEL_NORMAL_BACKUP and self.MODEL_NORMAL_BACKUP_PROVIDER)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )


settings = Settings()
