"""
settings_loader.py

Configuration management for the category grouper.
Loads and validates settings from YAML configuration with environment variable substitution.

Features:
- YAML configuration loading with validation
- Environment variable substitution (${VAR_NAME} and ${VAR_NAME:default} syntax)
- Direct environment overrides for the common knobs
- Singleton pattern for global settings access
- Type-safe configuration with Pydantic models
"""

import os
import re
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from category_grouper.core.naming import DEFAULT_CATEGORY_TABLE
from category_grouper.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models (Pydantic)
# =============================================================================

class ServiceSettings(BaseModel):
    """General service settings."""
    name: str = Field(default="category-grouper", description="Service name")
    version: str = Field(default="1.0.0", description="Service version")


class CategorySettings(BaseModel):
    """One entry of the category keyword table."""
    key: str = Field(..., min_length=1, description="Category key")
    label: Optional[str] = Field(default=None, description="Display label (capitalised key if unset)")
    keywords: List[str] = Field(default_factory=list, description="Keyword substrings")


def _default_categories() -> List[CategorySettings]:
    return [
        CategorySettings(key=c.key, label=c.label, keywords=list(c.keywords))
        for c in DEFAULT_CATEGORY_TABLE
    ]


class ClusteringSettings(BaseModel):
    """Clustering configuration."""
    min_cluster_size: int = Field(default=5, ge=1, description="Core distance rank and minimum cluster size")
    tie_break: str = Field(default="input_order", description="Equal-weight edge order (input_order or item_id)")
    max_items_warning: int = Field(default=20000, ge=1, description="Warn above this many items (O(n^2) memory)")
    compute_quality_metrics: bool = Field(default=True, description="Compute silhouette / Davies-Bouldin")
    categories: List[CategorySettings] = Field(default_factory=_default_categories, description="Ordered category table")

    @field_validator("tie_break")
    @classmethod
    def validate_tie_break(cls, value: str) -> str:
        if value not in ("input_order", "item_id"):
            raise ValueError("tie_break must be 'input_order' or 'item_id'")
        return value


class RetrySettings(BaseModel):
    """Retry policy configuration."""
    max_attempts: int = Field(default=5, ge=1, description="Maximum attempts per request")
    initial_delay: float = Field(default=1.0, ge=0.0, description="First backoff delay in seconds")
    backoff_factor: float = Field(default=2.0, ge=1.0, description="Backoff multiplier")
    max_delay: float = Field(default=60.0, ge=0.0, description="Maximum backoff in seconds")
    jitter: bool = Field(default=True, description="Randomise delays")


class EmbeddingSettings(BaseModel):
    """Embedding service configuration."""
    api_key: str = Field(default="", description="Gemini API key")
    model: str = Field(default="text-embedding-004", description="Embedding model")
    api_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Embedding API base URL",
    )
    batch_size: int = Field(default=100, ge=1, description="Texts per batch")
    concurrency: int = Field(default=10, ge=1, description="Concurrent requests per batch")
    batch_delay_seconds: float = Field(default=0.1, ge=0.0, description="Pause between batches")
    request_timeout: float = Field(default=30.0, gt=0.0, description="HTTP timeout in seconds")
    retry: RetrySettings = Field(default_factory=RetrySettings)
    checkpoint_path: str = Field(default="data/checkpoints/embeddings.json", description="Checkpoint file")
    checkpoint_interval: int = Field(default=10, ge=1, description="Checkpoint every N batches")


class VectorStoreSettings(BaseModel):
    """FAISS vector store configuration."""
    path: str = Field(default="data/vector_store", description="Store directory")
    collection_name: str = Field(default="embeddings", min_length=1, description="Collection name")
    write_batch_size: int = Field(default=5000, ge=1, description="Items per add() call")


class OutputSettings(BaseModel):
    """CSV output configuration."""
    clustered_path: str = Field(default="clustered_output.csv", description="Pre-merge output")
    merged_path: str = Field(default="merged_clustered_output.csv", description="Post-merge output")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Log format (json or console)")
    file: Optional[str] = Field(default=None, description="Optional rotating log file")


class Settings(BaseModel):
    """Root configuration model."""
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    vector_store: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "MIN_CLUSTER_SIZE": ("clustering", "min_cluster_size"),
    "COLLECTION_NAME": ("vector_store", "collection_name"),
    "GEMINI_API_KEY": ("embedding", "api_key"),
    "EMBEDDING_MODEL": ("embedding", "model"),
    "LOG_LEVEL": ("logging", "level"),
}


# =============================================================================
# Configuration Manager (Singleton)
# =============================================================================

class ConfigManager:
    """
    Singleton configuration manager that loads and caches settings.

    Features:
    - Loads YAML configuration from file (defaults when no file is found)
    - Substitutes environment variables using ${VAR_NAME} syntax
    - Applies direct environment overrides
    - Validates configuration using Pydantic models
    """

    _instance: Optional['ConfigManager'] = None
    _settings: Optional[Settings] = None

    def __new__(cls):
        """Ensure singleton pattern."""
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    @classmethod
    def load_config(cls, config_path: Optional[str] = None) -> Settings:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to configuration file. If None, default locations
                are searched and built-in defaults used when none exists.

        Returns:
            Settings object with validated configuration

        Raises:
            ConfigurationError: If an explicit file is missing or the configuration is invalid
        """
        if cls._settings is not None:
            return cls._settings

        raw_config: Dict[str, Any] = {}
        config_path_obj = cls._resolve_path(config_path)

        if config_path_obj is None:
            logger.warning("Configuration file not found. Using defaults.")
        else:
            logger.info(f"Loading configuration from: {config_path_obj}")
            try:
                with open(config_path_obj, 'r') as f:
                    raw_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to load YAML configuration: {e}")
                raise ConfigurationError(f"Invalid YAML configuration: {e}") from e

        config_dict = cls._apply_env_overrides(cls._substitute_env_vars(raw_config))

        try:
            cls._settings = Settings(**config_dict)
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        logger.info("Configuration loaded and validated successfully")
        return cls._settings

    @classmethod
    def _resolve_path(cls, config_path: Optional[str]) -> Optional[Path]:
        """Explicit path (must exist) or the first existing default location."""
        if config_path is not None:
            path = Path(config_path)
            if not path.exists():
                raise ConfigurationError(f"Configuration file not found: {config_path}")
            return path

        possible_paths = [
            Path(os.getenv("CONFIG_PATH", "config/settings.yaml")),
            Path("config/settings.yaml"),
        ]
        for path in possible_paths:
            if path.exists():
                return path
        return None

    @classmethod
    def get_settings(cls) -> Settings:
        """
        Get cached settings. Loads from default path if not already loaded.

        Returns:
            Settings object
        """
        if cls._settings is None:
            cls.load_config()
        return cls._settings

    @classmethod
    def _substitute_env_vars(cls, config: Any) -> Any:
        """
        Recursively substitute environment variables in configuration.

        Supports ${VAR_NAME} and ${VAR_NAME:default_value} syntax.

        Args:
            config: Configuration dictionary or value

        Returns:
            Configuration with substituted values
        """
        if isinstance(config, dict):
            return {k: cls._substitute_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [cls._substitute_env_vars(item) for item in config]
        elif isinstance(config, str):
            pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

            def replace_var(match):
                var_name = match.group(1)
                default_value = match.group(2) if match.group(2) is not None else ""
                return os.getenv(var_name, default_value)

            return re.sub(pattern, replace_var, config)
        else:
            return config

    @classmethod
    def _apply_env_overrides(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """Environment variables in ENV_OVERRIDES win over file values."""
        for var_name, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(var_name)
            if value:
                config.setdefault(section, {})[key] = value
        return config

    @classmethod
    def reload_config(cls, config_path: Optional[str] = None) -> Settings:
        """
        Reload configuration from file.

        Args:
            config_path: Path to configuration file

        Returns:
            Reloaded Settings object
        """
        cls._settings = None
        return cls.load_config(config_path)


# =============================================================================
# Convenience Functions
# =============================================================================

def get_settings() -> Settings:
    """
    Get application settings (convenience function).

    Returns:
        Settings object
    """
    return ConfigManager.get_settings()
