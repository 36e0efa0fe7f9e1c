"""CLI entry point for pkghost.

Invoked as::

    pkghost [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m pkghost.cli.main

Commands
--------
- init           Bootstrap the rule store with an administrator
- whoami         Show the identity commands run as
- acl list       List rules, optionally for one subject
- acl allow      Add an allow rule            (acl unallow removes it)
- acl deny       Add a deny rule              (acl undeny removes it)
- acl can        Exit 0 if permitted, 1 if denied
- acl explain    Show the deciding rule per permission letter
- acl import     Add rules from a file, one line per rule
- version        Show version information

The caller's identity comes from ``--user`` / ``PKGHOST_USER`` and falls back
to the login name of the process owner.  Authenticating that identity is the
job of the hosting environment (typically the SSH forced command).
"""
from __future__ import annotations

import getpass
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import IO, NoReturn

import click
import pydantic
import yaml
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from pkghost.acl.evaluator import Decision
from pkghost.acl.permissions import PERMISSION_NAMES
from pkghost.acl.rules import Effect, Rule
from pkghost.audit.logger import AuditLogger
from pkghost.commands import BatchReport, CommandContext, CommandRegistry, build_registry
from pkghost.config.loader import ConfigLoader, HostConfig
from pkghost.errors import PkgHostError

console = Console()
err_console = Console(stderr=True)

_DEFAULT_CONFIG = Path("pkghost.yaml")


@dataclass
class CliState:
    """Per-invocation state handed to every subcommand."""

    subject: str
    config: HostConfig
    registry: CommandRegistry
    audit: AuditLogger | None

    def context(self) -> CommandContext:
        return CommandContext(subject=self.subject, config=self.config, audit=self.audit)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


def _dispatch(state: CliState, name: tuple[str, ...], **args: object) -> object:
    try:
        return state.registry.dispatch(name, state.context(), **args)
    except PkgHostError as exc:
        _fail(str(exc))


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="pkghost-admin")
@click.option(
    "--user",
    "-u",
    envvar="PKGHOST_USER",
    default=None,
    help="Identity to act as (already authenticated by the host).",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    envvar="PKGHOST_CONFIG",
    default=str(_DEFAULT_CONFIG),
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Path to pkghost.yaml.",
)
@click.option(
    "--acl-file",
    default=None,
    type=click.Path(dir_okay=False),
    help="Rule file to use instead of the configured one.",
)
@click.option("--no-audit", is_flag=True, default=False, help="Do not write audit records.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    show_default=True,
    help="Diagnostic logging level (stderr).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    user: str | None,
    config_path: str,
    acl_file: str | None,
    no_audit: bool,
    log_level: str,
) -> None:
    """Package host administration: access control and host setup."""
    _configure_logging(log_level)

    try:
        config = ConfigLoader().load_or_defaults(Path(config_path))
    except (pydantic.ValidationError, yaml.YAMLError) as exc:
        _fail(f"Invalid config {config_path}: {exc}")
    if acl_file is not None:
        config.acl.path = Path(acl_file)

    try:
        subject = user or getpass.getuser()
    except (KeyError, OSError):
        _fail("Cannot determine the calling identity; pass --user or set PKGHOST_USER.")
    audit = None
    if config.audit.enabled and not no_audit:
        audit = AuditLogger(log_path=config.audit.log_path, subject=subject)

    ctx.obj = CliState(subject=subject, config=config, registry=build_registry(), audit=audit)


# ---------------------------------------------------------------------------
# version / whoami / init
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from pkghost import __version__

    console.print(
        Panel(
            f"[bold]pkghost-admin[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Package repository host administration.",
            title="Version",
            border_style="blue",
        )
    )


@cli.command(name="whoami")
@click.pass_obj
def whoami_command(state: CliState) -> None:
    """Show the identity commands run as."""
    console.print(escape(str(_dispatch(state, ("whoami",)))))


@cli.command(name="init")
@click.option("--admin", "-a", required=True, help="Subject to receive full rights on '/'.")
@click.pass_obj
def init_command(state: CliState, admin: str) -> None:
    """Initialise the rule store with an administrator."""
    rule: Rule = _dispatch(state, ("init",), admin=admin)  # type: ignore[assignment]
    console.print(
        f"[green]Initialised[/green] rule store: [bold]{escape(str(state.config.acl.path))}[/bold]"
    )
    console.print(f"  Administrator rule: [cyan]{escape(rule.to_line())}[/cyan]")


# ---------------------------------------------------------------------------
# acl group
# ---------------------------------------------------------------------------


@cli.group(name="acl")
def acl_group() -> None:
    """Access-control rule commands."""


@acl_group.command(name="list")
@click.argument("subject", required=False)
@click.option("--plain", is_flag=True, default=False, help="Print raw rule lines.")
@click.pass_obj
def acl_list_command(state: CliState, subject: str | None, plain: bool) -> None:
    """List access rules, optionally only those for SUBJECT."""
    rules: list[Rule] = _dispatch(state, ("acl", "list"), subject=subject)  # type: ignore[assignment]

    if plain:
        for rule in rules:
            click.echo(rule.to_line())
        return

    if not rules:
        console.print("[yellow]No rules found.[/yellow]")
        return

    table = Table(title="Access Rules", box=box.SIMPLE)
    table.add_column("Type", style="bold")
    table.add_column("Subject", style="cyan")
    table.add_column("Permissions", style="magenta")
    table.add_column("Object")
    for rule in rules:
        colour = "green" if rule.effect is Effect.ALLOW else "red"
        table.add_row(
            f"[{colour}]{rule.effect.value}[/{colour}]",
            escape(rule.subject),
            rule.predicate_string,
            escape(rule.object),
        )
    console.print(table)
    console.print(f"  Total rules: [cyan]{len(rules)}[/cyan]")


def _rule_arguments(func):  # type: ignore[no-untyped-def]
    func = click.argument("rule_object", metavar="OBJECT")(func)
    func = click.argument("predicate")(func)
    func = click.argument("subject")(func)
    return func


def _report_mutation(
    changed: object,
    verb: str,
    effect: Effect,
    subject: str,
    predicate: str,
    rule_object: str,
) -> None:
    line = f"{effect.value} {subject}:{predicate}:{rule_object}"
    if changed:
        console.print(f"[green]{verb}[/green] {escape(line)}")
    else:
        console.print(f"[yellow]Unchanged[/yellow] {escape(line)}")


@acl_group.command(name="allow")
@_rule_arguments
@click.pass_obj
def acl_allow_command(state: CliState, subject: str, predicate: str, rule_object: str) -> None:
    """Allow SUBJECT the PREDICATE letters on OBJECT."""
    changed = _dispatch(
        state, ("acl", "allow"), subject=subject, predicate=predicate, rule_object=rule_object
    )
    _report_mutation(changed, "Added", Effect.ALLOW, subject, predicate, rule_object)


@acl_group.command(name="unallow")
@_rule_arguments
@click.pass_obj
def acl_unallow_command(state: CliState, subject: str, predicate: str, rule_object: str) -> None:
    """Remove an allow rule."""
    changed = _dispatch(
        state, ("acl", "unallow"), subject=subject, predicate=predicate, rule_object=rule_object
    )
    _report_mutation(changed, "Removed", Effect.ALLOW, subject, predicate, rule_object)


@acl_group.command(name="deny")
@_rule_arguments
@click.pass_obj
def acl_deny_command(state: CliState, subject: str, predicate: str, rule_object: str) -> None:
    """Deny SUBJECT the PREDICATE letters on OBJECT."""
    changed = _dispatch(
        state, ("acl", "deny"), subject=subject, predicate=predicate, rule_object=rule_object
    )
    _report_mutation(changed, "Added", Effect.DENY, subject, predicate, rule_object)


@acl_group.command(name="undeny")
@_rule_arguments
@click.pass_obj
def acl_undeny_command(state: CliState, subject: str, predicate: str, rule_object: str) -> None:
    """Remove a deny rule."""
    changed = _dispatch(
        state, ("acl", "undeny"), subject=subject, predicate=predicate, rule_object=rule_object
    )
    _report_mutation(changed, "Removed", Effect.DENY, subject, predicate, rule_object)


@acl_group.command(name="can")
@_rule_arguments
@click.pass_obj
def acl_can_command(state: CliState, subject: str, predicate: str, rule_object: str) -> None:
    """Exit 0 if SUBJECT holds PREDICATE on OBJECT, 1 otherwise."""
    allowed = _dispatch(
        state, ("acl", "can"), subject=subject, predicate=predicate, rule_object=rule_object
    )
    sys.exit(0 if allowed else 1)


@acl_group.command(name="explain")
@_rule_arguments
@click.pass_obj
def acl_explain_command(state: CliState, subject: str, predicate: str, rule_object: str) -> None:
    """Show which rule decides each letter of PREDICATE."""
    decisions: list[Decision] = _dispatch(  # type: ignore[assignment]
        state, ("acl", "explain"), subject=subject, predicate=predicate, rule_object=rule_object
    )

    table = Table(title=f"Decision for {escape(subject)} on {escape(rule_object)}", box=box.SIMPLE)
    table.add_column("Letter", style="magenta")
    table.add_column("Verdict", style="bold")
    table.add_column("Reason")
    for decision in decisions:
        verdict = "[green]ALLOW[/green]" if decision.allowed else "[red]DENY[/red]"
        table.add_row(
            f"{decision.letter} ({PERMISSION_NAMES[decision.letter]})",
            verdict,
            escape(decision.reason),
        )
    console.print(table)
    sys.exit(0 if all(d.allowed for d in decisions) else 1)


@acl_group.command(name="import")
@click.argument("rules_file", type=click.File("r", encoding="utf-8"))
@click.pass_obj
def acl_import_command(state: CliState, rules_file: IO[str]) -> None:
    """Add every rule line of RULES_FILE ('-' for stdin)."""
    try:
        lines = rules_file.read().splitlines()
    except UnicodeDecodeError as exc:
        _fail(f"Rules file {rules_file.name} is not valid UTF-8: {exc}")
    report: BatchReport = _dispatch(  # type: ignore[assignment]
        state, ("acl", "import"), lines=lines, source=rules_file.name
    )

    table = Table(title="Import Results", box=box.SIMPLE)
    table.add_column("Rule", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Notes")
    for item in report.results:
        status = "[green]OK[/green]" if item.ok else "[red]FAILED[/red]"
        table.add_row(escape(item.target), status, escape(item.message))
    console.print(table)

    summary = report.summary()
    console.print(
        f"  Imported: [green]{summary['succeeded']}[/green]  Failed: [red]{summary['failed']}[/red]"
    )
    try:
        report.raise_for_failures()
    except PkgHostError as exc:
        _fail(str(exc))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
