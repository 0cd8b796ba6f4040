"""Configuration management for Report Service"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Service Configuration
    SERVICE_HOST: str = "report-service"
    SERVICE_PORT: int = 8000
    SERVICE_NAME: str = "Report Service"

    # Database Configuration
    DB_HOST: str = "postgres"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "postgres"
    DB_SCHEMA: str = "public"
    DB_POOL_SIZE: int = 5
    DB_QUERY_TIMEOUT: int = 60  # seconds
    MAX_RESULT_ROWS: int = 10000

    # LLM Configuration
    LLM_PROVIDER: str = "ollama"  # ollama | mistral
    LLM_TIMEOUT: int = 120
    LLM_MAX_RETRIES: int = 3
    LLM_RETRY_BASE_DELAY: float = 1.0  # seconds
    LLM_RETRY_JITTER: float = 1.0  # seconds

    # Ollama Configuration
    OLLAMA_HOST: str = "http://ollama:11434"
    OLLAMA_MODEL: str = "llama3.1:8b"
    OLLAMA_TEMPERATURE: float = 0.1

    # Mistral Configuration
    MISTRAL_API_URL: str = "https://api.mistral.ai/v1/chat/completions"
    MISTRAL_API_KEY: Optional[str] = None
    MISTRAL_MODEL: str = "mistral-small-latest"

    # Pipeline Configuration
    SCHEMA_CACHE_TTL: int = 300  # 5 minutes
    KNOWLEDGE_SIMILARITY_THRESHOLD: float = 0.3
    KNOWLEDGE_MAX_MATCHES: int = 3
    FALLBACK_ROW_LIMIT: int = 1000
    SAMPLE_ROW_LIMIT: int = 100
    SAMPLE_TABLE_LIMIT: int = 10
    RELATED_ROW_LIMIT: int = 1000
    REPORT_SAMPLE_ROWS: int = 5

    # Streaming Configuration
    STREAM_CHUNK_THRESHOLD: int = 50000  # serialized characters
    STREAM_CHUNK_SIZE: int = 100  # rows per chunk

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    @property
    def DATABASE_URL(self) -> str:
        """SQLAlchemy connection URL for the reporting database"""
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
