"""Configuration system for the SPARQL Naturalizer."""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

PROVIDERS = ("ollama", "openrouter", "openai", "github")


def _validate_provider(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v_lower = v.lower()
    if v_lower not in PROVIDERS:
        raise ValueError(f"provider must be one of {PROVIDERS}")
    return v_lower


class LLMConfig(BaseModel):
    """Generative model settings."""
    provider: str = "ollama"
    temperature: float = 0.2
    max_tokens: int = 300
    timeout: int = 120
    max_retries: int = 3
    retry_delay: float = 2.0
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3.1:8b"
    openrouter_model: str = "deepseek/deepseek-chat-v3-0324:free"
    openai_model: str = "gpt-4o-mini"
    github_model: str = "openai/gpt-4o-mini"
    site_url: str = "http://localhost:3000"
    site_name: str = "SPARQL Naturalizer"

    model_config = ConfigDict(from_attributes=True)

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v: str) -> str:
        return _validate_provider(v)

    @field_validator('max_tokens', 'timeout', 'max_retries')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @property
    def model_name(self) -> str:
        """Model configured for the active provider."""
        return getattr(self, f"{self.provider}_model")


class EmbeddingsConfig(BaseModel):
    """Embedding provider settings."""
    provider: Optional[str] = None  # None -> llm.provider
    ollama_model: str = "nomic-embed-text"
    openai_model: str = "text-embedding-3-small"
    openrouter_model: str = "openai/text-embedding-3-small"
    github_model: str = "text-embedding-3-small"
    timeout: int = 60
    cache_max_entries: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v: Optional[str]) -> Optional[str]:
        return _validate_provider(v)

    @field_validator('cache_max_entries')
    @classmethod
    def validate_cache_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("cache_max_entries must be positive")
        return v


class KnowledgeBaseConfig(BaseModel):
    """Locations of the indexed knowledge base and reference documents."""
    context_dir: str = "context"
    vector_store_file: str = "vector-store.json"
    examples_file: str = "examples.md"
    vocabulary_file: str = "dcat-vocabulary.md"

    model_config = ConfigDict(from_attributes=True)


class RetrievalConfig(BaseModel):
    """Result counts per retrieval category."""
    vocabulary_k: int = 2
    pattern_k: int = 2
    example_k: int = 3
    fallback_k: int = 3

    model_config = ConfigDict(from_attributes=True)

    @field_validator('vocabulary_k', 'pattern_k', 'example_k', 'fallback_k')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file_path: str = "data/naturalizer.log"
    console_enabled: bool = True

    model_config = ConfigDict(from_attributes=True)

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v_upper


class NaturalizerConfig(BaseModel):
    """Main configuration."""
    llm: LLMConfig = Field(default_factory=LLMConfig)
    embeddings: EmbeddingsConfig = Field(default_factory=EmbeddingsConfig)
    knowledge_base: KnowledgeBaseConfig = Field(default_factory=KnowledgeBaseConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    prompts_path: str = "config/prompts.yaml"

    model_config = ConfigDict(from_attributes=True)

    @property
    def embeddings_provider(self) -> str:
        return self.embeddings.provider or self.llm.provider


# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "LLM_PROVIDER": ("llm", "provider"),
    "EMBEDDINGS_PROVIDER": ("embeddings", "provider"),
    "OLLAMA_API_URL": ("llm", "ollama_host"),
    "OLLAMA_MODEL": ("llm", "ollama_model"),
    "OLLAMA_EMBEDDINGS_MODEL": ("embeddings", "ollama_model"),
    "OPENROUTER_MODEL": ("llm", "openrouter_model"),
    "OPENAI_MODEL": ("llm", "openai_model"),
    "GITHUB_MODEL": ("llm", "github_model"),
    "OPENROUTER_SITE_URL": ("llm", "site_url"),
    "OPENROUTER_SITE_NAME": ("llm", "site_name"),
}


class ConfigLoader:
    """Load and validate configuration from YAML files and the environment."""

    @staticmethod
    def load_config(
        config_path: str,
        local_override_path: Optional[str] = None,
        use_env: bool = True,
    ) -> NaturalizerConfig:
        """Load configuration with optional local and environment overrides.

        Args:
            config_path: Path to main config file
            local_override_path: Optional path to local override file
            use_env: Apply environment variable overrides

        Returns:
            Validated NaturalizerConfig

        Raises:
            ConfigError: If config loading or validation fails
        """
        try:
            config_dict = ConfigLoader._load_yaml(config_path)

            if local_override_path and Path(local_override_path).exists():
                logger.info(f"Loading local config overrides from {local_override_path}")
                override_dict = ConfigLoader._load_yaml(local_override_path)
                config_dict = ConfigLoader.merge_configs(config_dict, override_dict)

            if use_env:
                config_dict = ConfigLoader.apply_env_overrides(config_dict)

            config = NaturalizerConfig(**config_dict)

            logger.info("Configuration loaded successfully")
            return config

        except ConfigError:
            raise
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigError(f"Failed to load configuration: {e}")

    @staticmethod
    def _load_yaml(path: str) -> dict:
        """Load YAML file."""
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
                return data if data else {}
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")

    @staticmethod
    def merge_configs(base: dict, override: dict) -> dict:
        """Deep merge two configuration dictionaries.

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigLoader.merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    @staticmethod
    def apply_env_overrides(config_dict: dict, environ: Optional[dict] = None) -> dict:
        """Overlay settings taken from environment variables.

        An unknown ``LLM_PROVIDER`` is ignored with a warning and ``ollama``
        is used instead.
        """
        environ = os.environ if environ is None else environ
        overrides = {}

        for env_name, (section, key) in ENV_OVERRIDES.items():
            value = environ.get(env_name)
            if not value:
                continue

            if key == "provider":
                value = value.lower()
                if value not in PROVIDERS:
                    logger.warning(f"Invalid {env_name}: {value}, defaulting to ollama")
                    value = "ollama"

            overrides.setdefault(section, {})[key] = value

        return ConfigLoader.merge_configs(config_dict, overrides)

    @staticmethod
    def save_config(config: NaturalizerConfig, output_path: str):
        """Save configuration to YAML file.

        Args:
            config: Configuration to save
            output_path: Output file path
        """
        try:
            config_dict = config.model_dump()

            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

            logger.info(f"Configuration saved to {output_path}")
        except Exception as e:
            logger.error(f"Failed to save configuration: {e}")
            raise ConfigError(f"Failed to save configuration: {e}")


def get_default_config() -> NaturalizerConfig:
    """Get default configuration.

    Returns:
        Default NaturalizerConfig
    """
    return NaturalizerConfig()
