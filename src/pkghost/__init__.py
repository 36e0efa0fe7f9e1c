"""pkghost-admin: administration of a multi-user package repository host.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import pkghost
>>> acl = pkghost.AccessControl.open("/tmp/acl", for_update=True)
>>> acl.allow("alice", "w", "/repo")
True
>>> acl.save()
>>> acl.can("alice", "w", "/repo/sub")
True
>>> acl.can("alice", "c", "/repo")
False
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------
from pkghost.acl.engine import AccessControl
from pkghost.acl.evaluator import Decision, Evaluator
from pkghost.acl.rules import Effect, Rule
from pkghost.acl.store import RuleStore

# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
from pkghost.commands import (
    BatchReport,
    CommandContext,
    CommandDescriptor,
    CommandRegistry,
    ItemResult,
    RequiredCheck,
    build_registry,
)

# ---------------------------------------------------------------------------
# Audit / config
# ---------------------------------------------------------------------------
from pkghost.audit.logger import AuditLogger
from pkghost.config.loader import ConfigLoader, HostConfig

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from pkghost.errors import (
    AuditError,
    FormatError,
    PartialBatchFailure,
    PermissionDenied,
    PkgHostError,
    StoreBusyError,
    StoreError,
    UnknownCommandError,
    ValidationError,
)

__all__ = [
    "__version__",
    # Access control
    "AccessControl",
    "Decision",
    "Effect",
    "Evaluator",
    "Rule",
    "RuleStore",
    # Commands
    "BatchReport",
    "CommandContext",
    "CommandDescriptor",
    "CommandRegistry",
    "ItemResult",
    "RequiredCheck",
    "build_registry",
    # Audit / config
    "AuditLogger",
    "ConfigLoader",
    "HostConfig",
    # Errors
    "AuditError",
    "FormatError",
    "PartialBatchFailure",
    "PermissionDenied",
    "PkgHostError",
    "StoreBusyError",
    "StoreError",
    "UnknownCommandError",
    "ValidationError",
]
