"""
Configuration for Brain Chat.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "openai"  # ollama, openai
    model: str = "gpt-4o-mini"
    base_url: str | None = None
    api_key: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout: float = 120.0


class EmbedderConfig(BaseModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "nomic-embed-text"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    timeout: float = 120.0
    # Optional: embedding dimension (fallback to auto-detect)
    dimension: int | None = None


class TokenizerConfig(BaseModel):
    """Tokenizer configuration used when chunking captures for indexing."""

    provider: str = "tiktoken"  # tiktoken, approximate
    model: str = "cl100k_base"
    chars_per_token: float = Field(default=4.0, gt=0)
    chunk_size: int = Field(default=500, gt=0)
    chunk_overlap: int = Field(default=50, ge=0)


class QdrantConfig(BaseModel):
    """Qdrant configuration for capture chunk embeddings."""

    url: str = "http://localhost:6333"
    collection_name: str = "capture_chunks"
    use_grpc: bool = False
    hnsw_m: int = 16
    hnsw_ef_construct: int = 100
    on_disk: bool = False
    batch_size: int = 100
    timeout: int = 30


class StorageConfig(BaseModel):
    """Document store configuration."""

    backend: str = "sqlite"
    db_path: str = "data/brainchat.db"


class ChatConfig(BaseModel):
    """Brain chat behaviour and limits."""

    # Model override for chat generation (None uses the LLM provider model)
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2000
    # Seconds before a conversational request is cancelled
    request_timeout: float = 60.0
    default_retrieval_limit: int = 20
    max_prompt_chunks: int = 10
    max_all_captures: int = 1000
    max_bookmarked_captures: int = 500
    list_limit: int = 20
    max_list_limit: int = 50
    max_title_length: int = 200


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    tokenizer: TokenizerConfig = Field(default_factory=TokenizerConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            BRAIN_LLM_PROVIDER: LLM provider (ollama, openai)
            BRAIN_LLM_MODEL: LLM model name
            BRAIN_LLM_BASE_URL: LLM base URL (OpenAI-compatible gateways too)
            BRAIN_LLM_API_KEY: LLM API key (for OpenAI)
            BRAIN_EMBEDDER_PROVIDER: Embedder provider
            BRAIN_EMBEDDER_MODEL: Embedder model name
            BRAIN_EMBEDDER_API_KEY: Embedder API key (for OpenAI)
            BRAIN_EMBEDDER_DIMENSION: Embedding dimension (optional)
            BRAIN_QDRANT_URL: Qdrant URL
            BRAIN_QDRANT_COLLECTION: Qdrant collection name
            BRAIN_DB_PATH: SQLite document store path
            BRAIN_CHAT_MODEL: Model for conversation chats
            BRAIN_CHAT_REQUEST_TIMEOUT: Request timeout in seconds
        """
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None or value == "":
                return default
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            llm=LLMConfig(
                provider=get_env("BRAIN_LLM_PROVIDER", "openai"),
                model=get_env("BRAIN_LLM_MODEL", "gpt-4o-mini"),
                base_url=get_env("BRAIN_LLM_BASE_URL"),
                api_key=get_env("BRAIN_LLM_API_KEY"),
                temperature=get_env("BRAIN_LLM_TEMPERATURE", 0.7),
                max_tokens=get_env("BRAIN_LLM_MAX_TOKENS", 2000),
                timeout=get_env("BRAIN_LLM_TIMEOUT", 120.0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("BRAIN_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("BRAIN_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("BRAIN_EMBEDDER_BASE_URL", "http://localhost:11434"),
                api_key=get_env("BRAIN_EMBEDDER_API_KEY"),
                timeout=get_env("BRAIN_EMBEDDER_TIMEOUT", 120.0),
                dimension=get_env("BRAIN_EMBEDDER_DIMENSION", 0) or None,
            ),
            tokenizer=TokenizerConfig(
                provider=get_env("BRAIN_TOKENIZER_PROVIDER", "tiktoken"),
                model=get_env("BRAIN_TOKENIZER_MODEL", "cl100k_base"),
                chunk_size=get_env("BRAIN_TOKENIZER_CHUNK_SIZE", 500),
                chunk_overlap=get_env("BRAIN_TOKENIZER_CHUNK_OVERLAP", 50),
            ),
            qdrant=QdrantConfig(
                url=get_env("BRAIN_QDRANT_URL", "http://localhost:6333"),
                collection_name=get_env("BRAIN_QDRANT_COLLECTION", "capture_chunks"),
                use_grpc=get_env("BRAIN_QDRANT_USE_GRPC", False),
                hnsw_m=get_env("BRAIN_QDRANT_HNSW_M", 16),
                hnsw_ef_construct=get_env("BRAIN_QDRANT_HNSW_EF_CONSTRUCT", 100),
                on_disk=get_env("BRAIN_QDRANT_ON_DISK", False),
            ),
            storage=StorageConfig(
                backend=get_env("BRAIN_STORAGE_BACKEND", "sqlite"),
                db_path=get_env("BRAIN_DB_PATH", "data/brainchat.db"),
            ),
            chat=ChatConfig(
                model=get_env("BRAIN_CHAT_MODEL"),
                temperature=get_env("BRAIN_CHAT_TEMPERATURE", 0.7),
                max_tokens=get_env("BRAIN_CHAT_MAX_TOKENS", 2000),
                request_timeout=get_env("BRAIN_CHAT_REQUEST_TIMEOUT", 60.0),
                default_retrieval_limit=get_env("BRAIN_CHAT_RETRIEVAL_LIMIT", 20),
            ),
            logging=LoggingConfig(
                level=get_env("BRAIN_LOG_LEVEL", "INFO"),
                log_to_file=get_env("BRAIN_LOG_TO_FILE", True),
                log_dir=get_env("BRAIN_LOG_DIR", "logs"),
                file_rotation=get_env("BRAIN_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("BRAIN_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("BRAIN_LOG_COMPRESSION", "zip"),
                serialize=get_env("BRAIN_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        final_dict = {**config_dict}

        # Apply env overrides (non-default sections only)
        default = cls()
        for section in ("llm", "embedder", "tokenizer", "qdrant", "storage", "chat", "logging"):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        return cls(**final_dict) if final_dict else env_config
