"""Configuration management using Pydantic Settings."""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden using environment variables or .env file.
    """

    # Storage
    storage_backend: str = Field(
        default="neo4j",
        description="Persistence backend: 'neo4j' or 'memory'"
    )

    # Neo4j Database Configuration
    neo4j_uri: str = Field(
        default="bolt://localhost:7687",
        description="Neo4j database connection URI"
    )
    neo4j_user: str = Field(
        default="neo4j",
        description="Neo4j username"
    )
    neo4j_password: Optional[str] = Field(
        default=None,
        description="Neo4j password (required when storage_backend is 'neo4j')"
    )

    # API Configuration
    api_key: Optional[str] = Field(
        default=None,
        description="API key for authentication. If not set, authentication is disabled (dev mode)"
    )

    # Fetch Gateway
    backend_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the scrape proxy backend (this API's /api/scrape routes)"
    )
    allow_direct_fetch: bool = Field(
        default=False,
        description="Try a direct fetch of the source URL even when the proxy network is preferred"
    )
    relay_proxies: List[str] = Field(
        default=[
            "https://api.allorigins.win/raw?url={url}",
            "https://api.codetabs.com/v1/proxy?quest={url}",
        ],
        description="Ordered public relay URL templates; {url} is replaced by the encoded target"
    )
    fetch_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for backend and direct fetch attempts"
    )
    relay_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for each relay proxy attempt"
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        description="User-Agent header sent to the source sites"
    )

    # Pipeline
    concurrency_limit: int = Field(
        default=5,
        ge=1,
        description="Maximum number of MC numbers processed concurrently in a batch"
    )
    ui_batch_size: int = Field(
        default=3,
        ge=1,
        description="Emit a new-records / working-copy update every N records"
    )
    mock_delay_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Simulated fetch delay when use_mock_data is set"
    )

    # Application Settings
    app_name: str = Field(
        default="FMCSA Extraction API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode flag"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_file: str = Field(
        default="logs/api.log",
        description="Path to log file"
    )

    class Config:
        """Pydantic config."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

        # Allow extra fields from environment
        extra = "ignore"

        json_schema_extra = {
            "example": {
                "storage_backend": "neo4j",
                "neo4j_uri": "bolt://localhost:7687",
                "neo4j_user": "neo4j",
                "neo4j_password": "secure_password",
                "api_key": "your_api_key_here",
                "concurrency_limit": 5,
                "log_level": "INFO"
            }
        }


# Create a singleton instance
settings = Settings()
