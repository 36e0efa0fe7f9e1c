"""Policy decision for a single permission letter.

For a request ``(subject, letter, path)`` the candidates are the rules that
grant or deny ``letter``, whose subject is the requester or ``*``, and whose
object is ``path`` or one of its ancestors.  The winner is chosen by, in
order:

1. an exact subject beats the wildcard;
2. a longer (more specific) object beats a shorter one;
3. Deny beats Allow.

No candidate means Deny.

Example
-------
::

    evaluator = Evaluator()
    rules = [
        Rule.build("deny", "alice", "w", "/repo"),
        Rule.build("allow", "alice", "w", "/repo/foo"),
    ]
    assert evaluator.decide(rules, "alice", "w", "/repo/foo").allowed
    assert not evaluator.decide(rules, "alice", "w", "/repo/bar").allowed
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from pkghost.acl.permissions import WILDCARD_SUBJECT, path_matches, specificity
from pkghost.acl.rules import Effect, Rule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Immutable verdict for one permission letter.

    Attributes
    ----------
    effect:
        The resolved effect.
    subject:
        The identity that was evaluated.
    letter:
        The permission letter that was evaluated.
    path:
        The requested resource path.
    matched_rule:
        The winning rule, or ``None`` when the default deny applied.
    """

    effect: Effect
    subject: str
    letter: str
    path: str
    matched_rule: Rule | None = None

    @property
    def allowed(self) -> bool:
        return self.effect is Effect.ALLOW

    def __bool__(self) -> bool:
        """Return True if the letter is allowed."""
        return self.allowed

    @property
    def reason(self) -> str:
        """Human-readable explanation of the verdict."""
        if self.matched_rule is None:
            return "no matching rule (default deny)"
        return f"matched '{self.matched_rule.to_line()}'"


class Evaluator:
    """Resolves allow/deny decisions against a rule collection."""

    def candidates(
        self,
        rules: Iterable[Rule],
        subject: str,
        letter: str,
        path: str,
    ) -> list[Rule]:
        """Return every rule relevant to the request, unranked."""
        return [
            rule
            for rule in rules
            if letter in rule.predicate
            and rule.subject in (subject, WILDCARD_SUBJECT)
            and path_matches(rule.object, path)
        ]

    def decide(
        self,
        rules: Iterable[Rule],
        subject: str,
        letter: str,
        path: str,
    ) -> Decision:
        """Return the decision for one letter.

        Parameters
        ----------
        rules:
            The full rule set.
        subject:
            Requesting identity.
        letter:
            A single permission letter.
        path:
            Normalised resource path.
        """
        found = self.candidates(rules, subject, letter, path)
        if not found:
            logger.debug("DEFAULT-DENY subject=%s letter=%s path=%s", subject, letter, path)
            return Decision(Effect.DENY, subject, letter, path)

        winner = max(found, key=lambda rule: self._rank(rule, subject))
        logger.debug(
            "%s subject=%s letter=%s path=%s rule=%r",
            winner.effect.value.upper(),
            subject,
            letter,
            path,
            winner.to_line(),
        )
        return Decision(winner.effect, subject, letter, path, matched_rule=winner)

    @staticmethod
    def _rank(rule: Rule, subject: str) -> tuple[bool, int, bool, str]:
        # Last element keeps max() independent of iteration order on full ties.
        return (
            rule.subject == subject,
            specificity(rule.object),
            rule.effect is Effect.DENY,
            rule.predicate_string,
        )
