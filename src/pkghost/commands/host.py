"""Host-level commands: ``init`` and ``whoami``."""
from __future__ import annotations

import logging

from pkghost.acl.engine import AccessControl
from pkghost.acl.permissions import PERMISSION_LETTERS, ROOT_PATH
from pkghost.acl.rules import Effect, Rule
from pkghost.commands.registry import (
    CommandContext,
    CommandRegistry,
    RequiredCheck,
    save_rules,
)

logger = logging.getLogger(__name__)

INIT_PATH: str = "/init"


def _store_is_new(acl: AccessControl) -> bool:
    # Checked under the exclusive lock, so only one process can bootstrap.
    return not acl.store.exists()


def host_init(ctx: CommandContext, admin: str) -> Rule:
    """Grant ADMIN every permission on the whole host."""
    acl = ctx.require_acl()
    rule = Rule.build(Effect.ALLOW, admin, PERMISSION_LETTERS, ROOT_PATH)
    bootstrap = _store_is_new(acl)
    if acl.add_rule(rule):
        ctx.record("acl_initialised", rule=rule.to_line(), bootstrap=bootstrap)
    logger.info("Host initialised with administrator %s", admin)
    return rule


def host_whoami(ctx: CommandContext) -> str:
    """Print the identity commands run as."""
    return ctx.subject


def register_host_commands(registry: CommandRegistry) -> None:
    """Register ``init`` and ``whoami`` on ``registry``."""
    registry.command(
        ("init",),
        checks=[RequiredCheck("a", INIT_PATH)],
        mutates=True,
        post_hooks=[save_rules],
        bootstrap_if=_store_is_new,
    )(host_init)
    registry.command(("whoami",), needs_store=False)(host_whoami)
