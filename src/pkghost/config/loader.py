"""Host configuration loader with Pydantic v2 validation.

Loads and validates a ``pkghost.yaml`` file into a typed :class:`HostConfig`
object.  Unknown keys are allowed so that newer config files keep working
with older tools.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load(Path("pkghost.yaml"))
>>> config.acl.path
PosixPath('/var/lib/pkghost/acl')
"""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator


class AclConfig(BaseModel):
    """Configuration for the rule store."""

    model_config = {"extra": "allow"}

    path: Path = Field(default=Path("/var/lib/pkghost/acl"))
    lock_timeout: float = Field(default=10.0, gt=0)

    @field_validator("path", mode="before")
    @classmethod
    def validate_path(cls, value: object) -> object:
        if value is None or not str(value).strip():
            raise ValueError("acl.path must not be empty")
        return value


class AuditConfig(BaseModel):
    """Configuration for the audit trail."""

    model_config = {"extra": "allow"}

    enabled: bool = Field(default=True)
    log_path: Path = Field(default=Path("/var/log/pkghost/audit.jsonl"))


class HostConfig(BaseModel):
    """Top-level host configuration schema.

    Loaded from ``pkghost.yaml``.  All sections are optional and fall back to
    the defaults above.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    acl: AclConfig = Field(default_factory=AclConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)


class ConfigLoader:
    """Loads and validates host YAML configuration."""

    def load(self, config_path: Path) -> HostConfig:
        """Load and validate a host YAML file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        pydantic.ValidationError:
            When the YAML content fails validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Host config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        return HostConfig.model_validate(raw)

    def load_string(self, yaml_content: str) -> HostConfig:
        """Load and validate a YAML string directly."""
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return HostConfig.model_validate(raw)

    def load_or_defaults(self, config_path: Path) -> HostConfig:
        """Load ``config_path`` if it exists, otherwise return defaults."""
        if config_path.exists():
            return self.load(config_path)
        return self.defaults()

    def defaults(self) -> HostConfig:
        """Return a configuration with all defaults applied."""
        return HostConfig()
