"""Access rules and their one-line persisted form.

A rule says that a subject is allowed (or denied) a set of permission
letters on a resource path and everything below it.  Rules are immutable
and hashable, so a rule set has exact-tuple set semantics.

Line format
-----------
::

    <allow|deny> <subject>:<predicate>:<object>

Example
-------
::

    rule = Rule.from_line("allow alice:rw:/repo/core")
    assert rule.effect is Effect.ALLOW
    assert rule.to_line() == "allow alice:rw:/repo/core"
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from pkghost.acl.permissions import (
    WILDCARD_SUBJECT,
    format_predicate,
    normalize_path,
    parse_predicate,
    validate_subject,
)
from pkghost.errors import FormatError, ValidationError


class Effect(str, Enum):
    """Outcome a rule mandates when it is the winning candidate."""

    ALLOW = "allow"
    DENY = "deny"

    @classmethod
    def parse(cls, value: str | Effect) -> Effect:
        """Return the Effect named by ``value`` (case-insensitive)."""
        if isinstance(value, Effect):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValidationError(
                f"Rule type must be 'allow' or 'deny'; got {value!r}."
            ) from None


_LINE_PATTERN = re.compile(
    r"^(?P<effect>allow|deny)\s+(?P<subject>[^\s:]+):(?P<predicate>[^\s:]*):(?P<object>\S+)$"
)


@dataclass(frozen=True)
class Rule:
    """A single allow or deny rule.

    Attributes
    ----------
    effect:
        :attr:`Effect.ALLOW` or :attr:`Effect.DENY`.
    subject:
        Identity the rule is about, or ``*`` for everyone.
    predicate:
        Non-empty set of permission letters.
    object:
        Normalised absolute resource path.
    """

    effect: Effect
    subject: str
    predicate: frozenset[str]
    object: str

    @classmethod
    def build(
        cls,
        effect: str | Effect,
        subject: str,
        predicate: str | frozenset[str],
        rule_object: str,
    ) -> Rule:
        """Validate and normalise raw components into a Rule.

        Raises
        ------
        ValidationError
            If any component is malformed.
        """
        return cls(
            effect=Effect.parse(effect),
            subject=validate_subject(subject),
            predicate=parse_predicate(predicate),
            object=normalize_path(rule_object),
        )

    @classmethod
    def from_line(
        cls,
        line: str,
        source: str | None = None,
        line_number: int | None = None,
    ) -> Rule:
        """Parse one persisted rule line.

        Raises
        ------
        FormatError
            If the line does not follow the rule line format.
        """
        match = _LINE_PATTERN.match(line.strip())
        if match is None:
            raise FormatError(f"Malformed rule line {line.strip()!r}", source, line_number)
        try:
            return cls.build(
                match["effect"],
                match["subject"],
                match["predicate"],
                match["object"],
            )
        except ValidationError as exc:
            raise FormatError(f"Invalid rule {line.strip()!r}: {exc}", source, line_number) from exc

    def to_line(self) -> str:
        """Render the rule in its persisted line format."""
        return f"{self.effect.value} {self.subject}:{self.predicate_string}:{self.object}"

    @property
    def predicate_string(self) -> str:
        """Predicate letters in canonical order."""
        return format_predicate(self.predicate)

    @property
    def is_wildcard(self) -> bool:
        return self.subject == WILDCARD_SUBJECT

    def sort_key(self) -> tuple[str, str, str, str]:
        """Key giving the deterministic listing and serialisation order."""
        return (self.object, self.subject, self.effect.value, self.predicate_string)

    def __str__(self) -> str:
        return self.to_line()
