"""Configuration management using YAML and Pydantic."""

import json
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from org_archiver.exceptions import ConfigurationError
from utils import validate_collection_name

# Firestore rejects write batches with more than 500 operations
MAX_BATCH_SIZE = 500

DEFAULT_SOURCE_CREDENTIALS = "serviceAccountKey.json"
DEFAULT_ARCHIVE_CREDENTIALS = "archiveServiceAccountKey.json"


def _substitute_env_vars(value: str) -> str:
    """Substitute environment variables in string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with environment variables substituted
    """
    pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        env_value = os.getenv(var_name)
        if env_value is not None:
            return env_value
        if default is not None:
            return default
        raise ValueError(f"Environment variable {var_name} not set and no default provided")

    return re.sub(pattern, replacer, value)


def _substitute_env_in_dict(data: Any) -> Any:
    """Recursively substitute environment variables in nested config data."""
    if isinstance(data, dict):
        return {key: _substitute_env_in_dict(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_in_dict(item) for item in data]
    elif isinstance(data, str):
        return _substitute_env_vars(data)
    return data


class ProjectConfig(BaseModel):
    """Firestore project credentials."""

    service_account_path: Path = Field(
        description="Path to the service account JSON key for this project",
    )

    def load_service_account(self) -> dict[str, Any]:
        """Load and validate the service account key.

        Returns:
            Parsed service account info

        Raises:
            ConfigurationError: If the key is unreadable or has no project_id
        """
        path = self.service_account_path
        try:
            with open(path, encoding="utf-8") as f:
                info = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(
                f"Service account file not found: {path}",
                context={"path": str(path)},
            ) from None
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Service account file is not valid JSON: {e}",
                context={"path": str(path)},
            ) from e

        if not isinstance(info, dict) or not info.get("project_id"):
            raise ConfigurationError(
                'Service account JSON is missing "project_id"',
                context={"path": str(path)},
            )
        return info


class CollectionConfig(BaseModel):
    """A live collection and the archive collection it is moved into."""

    name: str = Field(description="Live collection name")
    archive_name: Optional[str] = Field(
        default=None,
        description="Archive collection name (defaults to 'archive_<name>')",
    )
    filter_field: str = Field(
        default="organization_id",
        description="Document field compared against the organization ID",
    )

    @field_validator("name", "archive_name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        """Validate Firestore collection IDs."""
        if v is None:
            return v
        return validate_collection_name(v)

    @field_validator("filter_field")
    @classmethod
    def validate_filter_field(cls, v: str) -> str:
        """Validate filter field is non-empty."""
        if not v.strip():
            raise ValueError("filter_field must not be empty")
        return v

    @model_validator(mode="after")
    def apply_archive_name(self) -> "CollectionConfig":
        """Derive the archive collection name when not given."""
        if self.archive_name is None:
            self.archive_name = f"archive_{self.name}"
        if self.archive_name == self.name:
            raise ValueError("archive_name must differ from the live collection name")
        return self


class DefaultsConfig(BaseModel):
    """Global default configuration."""

    batch_size: int = Field(
        default=MAX_BATCH_SIZE,
        description="Documents per write batch",
        gt=0,
        le=MAX_BATCH_SIZE,
    )
    fail_closed: bool = Field(
        default=True,
        description="Skip the source delete when the archive write for a batch fails",
    )
    sample_size: int = Field(
        default=5,
        description="Number of matching document IDs logged for operator verification",
        ge=1,
        le=100,
    )
    retry_attempts: int = Field(
        default=3,
        description="Commit attempts per batch and sink",
        ge=1,
        le=10,
    )
    retry_initial_delay: float = Field(
        default=1.0,
        description="Initial retry backoff in seconds",
        ge=0,
    )
    retry_max_delay: float = Field(
        default=30.0,
        description="Maximum retry backoff in seconds",
        ge=0,
    )
    checkpoint_dir: Optional[Path] = Field(
        default=Path(".checkpoints"),
        description="Directory for resume checkpoints (null disables checkpointing)",
    )


class MonitoringConfig(BaseModel):
    """Monitoring and metrics configuration."""

    metrics_textfile: Optional[Path] = Field(
        default=None,
        description="Write Prometheus metrics to this file (node exporter textfile collector)",
    )


class ArchiverConfig(BaseModel):
    """Root configuration model."""

    version: str = Field(default="1.0", description="Configuration version")
    source: ProjectConfig = Field(
        default_factory=lambda: ProjectConfig(service_account_path=DEFAULT_SOURCE_CREDENTIALS),
        description="Live (source) Firestore project",
    )
    archive: ProjectConfig = Field(
        default_factory=lambda: ProjectConfig(service_account_path=DEFAULT_ARCHIVE_CREDENTIALS),
        description="Archive Firestore project",
    )
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig, description="Global defaults")
    collections: list[CollectionConfig] = Field(
        default_factory=lambda: [
            CollectionConfig(name="Organizations", archive_name="archive_Organizations")
        ],
        description="Collections to archive",
        min_length=1,
    )
    monitoring: MonitoringConfig = Field(
        default_factory=MonitoringConfig,
        description="Monitoring configuration",
    )

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate configuration version."""
        if v not in ["1.0"]:
            raise ValueError(f"Unsupported configuration version: {v}")
        return v

    @model_validator(mode="after")
    def validate_unique_collections(self) -> "ArchiverConfig":
        """Reject duplicate live collections."""
        names = [c.name for c in self.collections]
        if len(names) != len(set(names)):
            raise ValueError("Live collection names must be unique")
        return self


class RunConfig(BaseModel):
    """Settings for archiving one organization out of one collection."""

    model_config = {"frozen": True}

    organization_id: str = Field(description="Organization ID to archive")
    live_collection: str
    archive_collection: str
    filter_field: str = "organization_id"
    batch_size: int = Field(default=MAX_BATCH_SIZE, gt=0, le=MAX_BATCH_SIZE)
    dry_run: bool = False
    fail_closed: bool = True

    @field_validator("organization_id")
    @classmethod
    def validate_organization_id(cls, v: str) -> str:
        """Validate organization ID is non-empty."""
        if not v.strip():
            raise ValueError("organization_id must not be empty")
        return v

    @classmethod
    def for_collection(
        cls,
        organization_id: str,
        collection: CollectionConfig,
        defaults: DefaultsConfig,
        dry_run: bool = False,
    ) -> "RunConfig":
        """Build a run configuration for one configured collection."""
        return cls(
            organization_id=organization_id,
            live_collection=collection.name,
            archive_collection=collection.archive_name,
            filter_field=collection.filter_field,
            batch_size=defaults.batch_size,
            dry_run=dry_run,
            fail_closed=defaults.fail_closed,
        )


def load_config(config_path: Optional[Path] = None) -> ArchiverConfig:
    """Load and validate configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file, or None for built-in defaults

    Returns:
        Validated configuration object

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if config_path is None:
        return ArchiverConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)

        if not raw_config:
            raise ConfigurationError("Configuration file is empty", context={"path": str(config_path)})

        config_data = _substitute_env_in_dict(raw_config)
        return ArchiverConfig.model_validate(config_data)

    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file not found: {config_path}") from None
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
    except (ValidationError, ValueError) as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e
