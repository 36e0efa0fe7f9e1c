"""``acl`` command handlers.

Reading the rule set (``list``, ``can``, ``explain``) requires ``r`` on
``/acl``; changing it (``allow``, ``unallow``, ``deny``, ``undeny``,
``import``) requires ``w`` on ``/acl``.  Mutating commands save through the
:func:`~pkghost.commands.registry.save_rules` post-hook.
"""
from __future__ import annotations

import logging

from pkghost.acl.evaluator import Decision
from pkghost.acl.rules import Effect, Rule
from pkghost.commands.batch import BatchReport
from pkghost.commands.registry import (
    CommandContext,
    CommandRegistry,
    RequiredCheck,
    save_rules,
)

logger = logging.getLogger(__name__)

ACL_PATH: str = "/acl"

_READ_ACL = (RequiredCheck("r", ACL_PATH),)
_WRITE_ACL = (RequiredCheck("w", ACL_PATH),)


def acl_list(ctx: CommandContext, subject: str | None = None) -> list[Rule]:
    """List rules, optionally only those for SUBJECT."""
    return ctx.require_acl().list(subject)


def acl_can(ctx: CommandContext, subject: str, predicate: str, rule_object: str) -> bool:
    """Tell whether SUBJECT holds PREDICATE on OBJECT."""
    return ctx.require_acl().can(subject, predicate, rule_object)


def acl_explain(
    ctx: CommandContext, subject: str, predicate: str, rule_object: str
) -> list[Decision]:
    """Show the deciding rule for each requested letter."""
    return ctx.require_acl().explain(subject, predicate, rule_object)


def _add(ctx: CommandContext, effect: Effect, subject: str, predicate: str, rule_object: str) -> bool:
    rule = Rule.build(effect, subject, predicate, rule_object)
    added = ctx.require_acl().add_rule(rule)
    if added:
        ctx.record("acl_rule_added", rule=rule.to_line())
    return added


def _remove(
    ctx: CommandContext, effect: Effect, subject: str, predicate: str, rule_object: str
) -> bool:
    removed = ctx.require_acl().remove(effect, subject, predicate, rule_object)
    if removed:
        rule = Rule.build(effect, subject, predicate, rule_object)
        ctx.record("acl_rule_removed", rule=rule.to_line())
    return removed


def acl_allow(ctx: CommandContext, subject: str, predicate: str, rule_object: str) -> bool:
    """Add an allow rule."""
    return _add(ctx, Effect.ALLOW, subject, predicate, rule_object)


def acl_unallow(ctx: CommandContext, subject: str, predicate: str, rule_object: str) -> bool:
    """Remove an allow rule."""
    return _remove(ctx, Effect.ALLOW, subject, predicate, rule_object)


def acl_deny(ctx: CommandContext, subject: str, predicate: str, rule_object: str) -> bool:
    """Add a deny rule."""
    return _add(ctx, Effect.DENY, subject, predicate, rule_object)


def acl_undeny(ctx: CommandContext, subject: str, predicate: str, rule_object: str) -> bool:
    """Remove a deny rule."""
    return _remove(ctx, Effect.DENY, subject, predicate, rule_object)


def acl_import(ctx: CommandContext, lines: list[str], source: str = "<stdin>") -> BatchReport:
    """Add every rule line from a file, reporting each line separately."""
    acl = ctx.require_acl()
    report = BatchReport()
    for line_number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        def add_line(line: str = line, line_number: int = line_number) -> bool:
            rule = Rule.from_line(line, source, line_number)
            added = acl.add_rule(rule)
            if added:
                ctx.record("acl_rule_added", rule=rule.to_line(), source=source)
            return added

        report.attempt(line, add_line)

    ctx.record("acl_import", source=source, **report.summary())
    return report


def register_acl_commands(registry: CommandRegistry) -> None:
    """Register the ``acl`` command group on ``registry``."""
    registry.command(("acl", "list"), checks=_READ_ACL)(acl_list)
    registry.command(("acl", "can"), checks=_READ_ACL)(acl_can)
    registry.command(("acl", "explain"), checks=_READ_ACL)(acl_explain)
    for name, handler in (
        ("allow", acl_allow),
        ("unallow", acl_unallow),
        ("deny", acl_deny),
        ("undeny", acl_undeny),
        ("import", acl_import),
    ):
        registry.command(
            ("acl", name),
            checks=_WRITE_ACL,
            mutates=True,
            post_hooks=[save_rules],
        )(handler)
