"""Command registry and dispatcher.

Each administrative command is described by a :class:`CommandDescriptor`:
its name path (``("acl", "allow")``), the access checks it requires, whether
it mutates the rule store, its handler, and post-hooks run after the handler
succeeds.  :meth:`CommandRegistry.dispatch` resolves the descriptor by table
lookup and drives one engine lifecycle for the invocation:

1. open the rule store (exclusive lock for mutating commands, shared lock
   for read-only ones);
2. run every :class:`RequiredCheck` for the calling subject;
3. call the handler;
4. run the post-hooks (for example :func:`save_rules`);
5. release the store lock.

Example
-------
::

    registry = CommandRegistry()

    @registry.command(
        ("repo", "create"),
        checks=[RequiredCheck("c", "/repo/{name}")],
        mutates=True,
        post_hooks=[save_rules],
    )
    def repo_create(ctx: CommandContext, name: str) -> None:
        ...

    registry.dispatch(("repo", "create"), context, name="core")
"""
from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from pkghost.acl.engine import AccessControl
from pkghost.acl.store import RuleStore
from pkghost.audit.logger import AuditLogger
from pkghost.config.loader import HostConfig
from pkghost.errors import (
    AuditError,
    PermissionDenied,
    StoreError,
    UnknownCommandError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequiredCheck:
    """A permission a command needs on a resource path.

    ``path`` is a template formatted with the command arguments, e.g.
    ``"/repo/{name}"``.
    """

    permission: str
    path: str

    def resolve(self, args: dict[str, object]) -> str:
        try:
            return self.path.format(**args)
        except (KeyError, IndexError) as exc:
            raise ValidationError(
                f"Check path {self.path!r} needs argument {exc.args[0]!r}"
            ) from None


@dataclass
class CommandContext:
    """Everything a handler needs for one invocation.

    Attributes
    ----------
    subject:
        The already-authenticated caller.
    config:
        Host configuration.
    audit:
        Audit logger, or ``None`` when auditing is disabled.
    acl:
        The access-control engine for this invocation; set by the
        dispatcher before the handler runs.
    """

    subject: str
    config: HostConfig
    audit: AuditLogger | None = None
    acl: AccessControl | None = None

    def require_acl(self) -> AccessControl:
        if self.acl is None:
            raise StoreError("No rule store is open for this command.")
        return self.acl

    def record(self, event: str, /, **fields: object) -> None:
        """Write an audit event if auditing is enabled.

        A failed append is logged and does not abort the command.
        """
        if self.audit is None:
            return
        try:
            self.audit.log({"event": event, **fields})
        except AuditError as exc:
            logger.warning("Audit record %r not written: %s", event, exc)


Handler = Callable[..., object]
PostHook = Callable[[CommandContext, dict[str, object], object], None]


@dataclass(frozen=True)
class CommandDescriptor:
    """Structured description of one command.

    Attributes
    ----------
    name:
        Command path, e.g. ``("acl", "list")``.
    handler:
        Called as ``handler(ctx, **args)``.
    checks:
        Access checks run before the handler.
    mutates:
        Open the rule store for update (exclusive lock until save).
    post_hooks:
        Called as ``hook(ctx, args, result)`` after the handler returns.
    needs_store:
        When False no rule store is opened and ``checks`` must be empty.
    bootstrap_if:
        Optional predicate on the opened engine; when it returns True the
        checks are skipped (used to initialise an empty host).
    summary:
        One-line description for help output.
    """

    name: tuple[str, ...]
    handler: Handler
    checks: tuple[RequiredCheck, ...] = ()
    mutates: bool = False
    post_hooks: tuple[PostHook, ...] = ()
    needs_store: bool = True
    bootstrap_if: Callable[[AccessControl], bool] | None = None
    summary: str = ""


def _first_line(doc: str | None) -> str:
    lines = (doc or "").strip().splitlines()
    return lines[0] if lines else ""


def save_rules(ctx: CommandContext, args: dict[str, object], result: object) -> None:
    """Post-hook: persist pending rule changes."""
    acl = ctx.require_acl()
    if not acl.dirty:
        logger.debug("No rule changes to save")
        return
    count = len(acl.list())
    acl.save()
    ctx.record("acl_saved", rules=count)


class CommandRegistry:
    """Maps command name paths to :class:`CommandDescriptor` values."""

    def __init__(self) -> None:
        self._commands: dict[tuple[str, ...], CommandDescriptor] = {}

    def register(self, descriptor: CommandDescriptor) -> CommandDescriptor:
        if descriptor.name in self._commands:
            raise ValueError(f"Command {' '.join(descriptor.name)!r} is already registered.")
        if not descriptor.needs_store and descriptor.checks:
            raise ValueError(
                f"Command {' '.join(descriptor.name)!r} has checks but opens no rule store."
            )
        self._commands[descriptor.name] = descriptor
        return descriptor

    def command(
        self,
        name: tuple[str, ...],
        checks: Iterable[RequiredCheck] = (),
        mutates: bool = False,
        post_hooks: Iterable[PostHook] = (),
        needs_store: bool = True,
        bootstrap_if: Callable[[AccessControl], bool] | None = None,
        summary: str = "",
    ) -> Callable[[Handler], Handler]:
        """Decorator registering ``handler`` under ``name``."""

        def decorator(handler: Handler) -> Handler:
            self.register(
                CommandDescriptor(
                    name=name,
                    handler=handler,
                    checks=tuple(checks),
                    mutates=mutates,
                    post_hooks=tuple(post_hooks),
                    needs_store=needs_store,
                    bootstrap_if=bootstrap_if,
                    summary=summary or _first_line(handler.__doc__),
                )
            )
            return handler

        return decorator

    def get(self, name: tuple[str, ...]) -> CommandDescriptor:
        try:
            return self._commands[name]
        except KeyError:
            raise UnknownCommandError(name) from None

    def names(self) -> list[tuple[str, ...]]:
        return sorted(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def dispatch(
        self, name: tuple[str, ...], context: CommandContext, /, **args: object
    ) -> object:
        """Run one command invocation end to end and return the handler result.

        Raises
        ------
        PermissionDenied
            If a required check fails; the handler is not called.
        UnknownCommandError
            If ``name`` is not registered.
        """
        descriptor = self.get(name)
        if not descriptor.needs_store:
            return self._run(descriptor, context, args)

        acl = AccessControl(
            RuleStore(context.config.acl.path, lock_timeout=context.config.acl.lock_timeout)
        )
        acl.store.load(for_update=descriptor.mutates)
        ctx = dataclasses.replace(context, acl=acl)
        try:
            self._authorize(descriptor, ctx, acl, args)
            return self._run(descriptor, ctx, args)
        finally:
            acl.release()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _authorize(
        self,
        descriptor: CommandDescriptor,
        ctx: CommandContext,
        acl: AccessControl,
        args: dict[str, object],
    ) -> None:
        if descriptor.bootstrap_if is not None and descriptor.bootstrap_if(acl):
            logger.info("Bootstrap: skipping checks for %s", " ".join(descriptor.name))
            return
        for check in descriptor.checks:
            path = check.resolve(args)
            try:
                acl.check(ctx.subject, check.permission, path)
            except PermissionDenied as exc:
                ctx.record(
                    "permission_denied",
                    command=" ".join(descriptor.name),
                    letter=exc.letter,
                    path=exc.path,
                )
                raise

    def _run(
        self,
        descriptor: CommandDescriptor,
        ctx: CommandContext,
        args: dict[str, object],
    ) -> object:
        logger.debug("Running %s as %s", " ".join(descriptor.name), ctx.subject)
        result = descriptor.handler(ctx, **args)
        for hook in descriptor.post_hooks:
            hook(ctx, args, result)
        return result
