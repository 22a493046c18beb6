"""Authorization configuration loader with Pydantic v2 validation.

Loads an ``authz.yaml`` (or ``.json``) file into a typed
:class:`AuthzConfig`.  Pydantic checks the outer shape; the policy
documents themselves are validated when the registry is built.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load(Path("authz.yaml"))
>>> config.audit.log_path
PosixPath('authz_audit.jsonl')
"""
from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

_SUPPORTED_VERSIONS: frozenset[str] = frozenset(["1", "1.0"])


class ConfigError(ValueError):
    """Raised when an authorization config file is unreadable or invalid.

    Attributes
    ----------
    config_path:
        The path to the config file that caused the error, if known.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        prefix = f"[{config_path}] " if config_path else ""
        super().__init__(f"{prefix}{message}")


class AuditConfig(BaseModel):
    """Configuration for the decision audit trail."""

    model_config = {"extra": "allow"}

    enabled: bool = Field(default=False)
    log_path: Path = Field(default=Path("authz_audit.jsonl"))


class AuthzConfig(BaseModel):
    """Top-level authorization configuration schema.

    ``identities`` and ``resources`` hold raw definitions in the schema
    documented in :mod:`iam_authz.engine.registry`.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    audit: AuditConfig = Field(default_factory=AuditConfig)
    identities: list[dict[str, object]] = Field(default_factory=list)
    resources: list[dict[str, object]] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, value: object) -> str:
        version = str(value)
        if version not in _SUPPORTED_VERSIONS:
            raise ValueError(
                f"Unsupported config version {version!r}. Supported: {sorted(_SUPPORTED_VERSIONS)}"
            )
        return version


class ConfigLoader:
    """Loads and validates authorization configuration files."""

    def load(self, config_path: str | Path) -> AuthzConfig:
        """Load and validate a YAML or JSON configuration file.

        Raises
        ------
        FileNotFoundError
            When the config file does not exist.
        ConfigError
            When the file cannot be parsed or fails validation.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Authorization config not found: {config_path}")

        text = config_path.read_text(encoding="utf-8")
        if config_path.suffix == ".json":
            try:
                raw = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"Failed to parse JSON: {exc}", str(config_path)) from exc
            return self._validate(raw, str(config_path))
        return self.load_string(text, config_path=str(config_path))

    def load_string(self, yaml_content: str, config_path: str | None = None) -> AuthzConfig:
        """Load and validate YAML text directly."""
        try:
            raw = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse YAML: {exc}", config_path) from exc
        return self._validate(raw, config_path)

    def defaults(self) -> AuthzConfig:
        """Return a configuration with all defaults applied."""
        return AuthzConfig()

    def _validate(self, raw: object, config_path: str | None) -> AuthzConfig:
        if not isinstance(raw, dict):
            raise ConfigError("Authorization config must be a mapping.", config_path)
        try:
            return AuthzConfig.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError(str(exc), config_path) from exc
