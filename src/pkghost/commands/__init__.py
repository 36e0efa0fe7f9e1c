"""Administrative commands and the registry that dispatches them.

Example
-------
::

    from pkghost.commands import CommandContext, build_registry

    registry = build_registry()
    ctx = CommandContext(subject="alice", config=HostConfig())
    rules = registry.dispatch(("acl", "list"), ctx, subject=None)
"""
from __future__ import annotations

from pkghost.commands.acl import register_acl_commands
from pkghost.commands.batch import BatchReport, ItemResult
from pkghost.commands.host import register_host_commands
from pkghost.commands.registry import (
    CommandContext,
    CommandDescriptor,
    CommandRegistry,
    RequiredCheck,
    save_rules,
)


def build_registry() -> CommandRegistry:
    """Return a registry holding every built-in command."""
    registry = CommandRegistry()
    register_host_commands(registry)
    register_acl_commands(registry)
    return registry


__all__ = [
    "BatchReport",
    "CommandContext",
    "CommandDescriptor",
    "CommandRegistry",
    "ItemResult",
    "RequiredCheck",
    "build_registry",
    "save_rules",
]
