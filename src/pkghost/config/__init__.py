"""Configuration package for pkghost."""
from __future__ import annotations

from pkghost.config.loader import AclConfig, AuditConfig, ConfigLoader, HostConfig

__all__ = ["AclConfig", "AuditConfig", "ConfigLoader", "HostConfig"]
