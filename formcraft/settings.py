import enum
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from yarl import URL


class LogLevel(str, enum.Enum):  # noqa: WPS600
    """Possible log levels."""

    NOTSET = "NOTSET"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    FATAL = "FATAL"


class Settings(BaseSettings):
    """
    Application settings.

    These parameters can be configured
    with environment variables.
    """

    host: str = "localhost"
    port: int = 5566
    # quantity of workers for uvicorn
    workers_count: int = 1
    # Enable uvicorn reloading
    reload: bool = False

    log_level: LogLevel = LogLevel.INFO
    enable_file_logging: bool = False
    logs_dir: Optional[str] = None
    structured_logging: bool = False

    # Variables for the database
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "formcraft"
    db_pass: str = "formcraft"
    db_base: str = "formcraft"
    db_echo: bool = False

    # Qdrant settings, both url and api key are required to enable it
    qdrant_url: Optional[str] = None
    qdrant_api_key: Optional[str] = None
    qdrant_collection_name: str = "form-embeddings"
    qdrant_timeout: int = 5  # Seconds

    # Embedding settings
    embedding_api_key: Optional[str] = None
    embedding_model: str = "gemini/text-embedding-004"
    embedding_timeout: float = 5.0  # Seconds

    # Completion settings (OpenAI-compatible endpoint)
    completion_api_key: Optional[str] = None
    completion_base_url: Optional[str] = (
        "https://generativelanguage.googleapis.com/v1beta/openai/"
    )
    completion_model: str = "gemini-2.0-flash"
    completion_timeout: float = 30.0  # Seconds
    completion_max_tokens: int = 2048

    # Temperature of the first attempt and of the stricter retry
    completion_temperature: float = 0.7
    completion_retry_temperature: float = 0.2

    @property
    def db_url(self) -> URL:
        """
        Assemble database URL from settings.

        :return: database URL.
        """
        return URL.build(
            scheme="postgresql+asyncpg",
            host=self.db_host,
            port=self.db_port,
            user=self.db_user,
            password=self.db_pass,
            path=f"/{self.db_base}",
        )

    @property
    def qdrant_enabled(self) -> bool:
        """Whether the external vector index has its credentials."""
        return bool(self.qdrant_url and self.qdrant_api_key)

    @property
    def resolved_embedding_api_key(self) -> Optional[str]:
        """
        Key used for embeddings.

        Falls back to the completion key when no dedicated key is set.

        :return: api key or None when embeddings are not configured.
        """
        return self.embedding_api_key or self.completion_api_key

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FORMCRAFT_",
    )


settings = Settings()
