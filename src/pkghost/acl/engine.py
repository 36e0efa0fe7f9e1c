"""Public access-control API used by every command handler.

:class:`AccessControl` wraps a loaded :class:`~pkghost.acl.store.RuleStore`
and an :class:`~pkghost.acl.evaluator.Evaluator`.  The requesting subject is
always passed explicitly; the engine holds no notion of a current user.

Mutations (:meth:`AccessControl.allow`, :meth:`AccessControl.deny`,
:meth:`AccessControl.remove`) only change memory.  They are lost unless
:meth:`AccessControl.save` is called before the process exits.
They raise :class:`~pkghost.errors.StoreError` unless the store was loaded
for update.

Example
-------
::

    acl = AccessControl.open(Path("/var/lib/pkghost/acl"), for_update=True)
    acl.check("root", "w", "/acl")
    acl.allow("alice", "rw", "/repo/core")
    acl.save()

    assert acl.can("alice", "w", "/repo/core/x86_64")
"""
from __future__ import annotations

import logging
from pathlib import Path

from pkghost.acl.evaluator import Decision, Evaluator
from pkghost.acl.permissions import (
    normalize_path,
    ordered_letters,
    parse_predicate,
    validate_subject,
)
from pkghost.acl.rules import Effect, Rule
from pkghost.acl.store import RuleStore
from pkghost.errors import PermissionDenied, StoreError

logger = logging.getLogger(__name__)


class AccessControl:
    """Facade over the rule store and the decision algorithm.

    Parameters
    ----------
    store:
        The backing rule store.  Decisions load it read-only on first use if
        the caller has not loaded it already; mutations need a store loaded
        with ``for_update=True``.
    evaluator:
        Decision algorithm.  Defaults to :class:`Evaluator`.
    """

    def __init__(self, store: RuleStore, evaluator: Evaluator | None = None) -> None:
        self._store = store
        self._evaluator = evaluator or Evaluator()

    @classmethod
    def open(
        cls,
        path: Path | str,
        for_update: bool = False,
        lock_timeout: float = 10.0,
    ) -> AccessControl:
        """Create a store for ``path``, load it, and wrap it."""
        store = RuleStore(path, lock_timeout=lock_timeout)
        store.load(for_update=for_update)
        return cls(store)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def explain(self, subject: str, predicate: str, path: str) -> list[Decision]:
        """Return one :class:`Decision` per requested letter, in canonical order."""
        subject = validate_subject(subject)
        letters = ordered_letters(parse_predicate(predicate))
        path = normalize_path(path)
        rules = self._rules()
        return [self._evaluator.decide(rules, subject, letter, path) for letter in letters]

    def can(self, subject: str, predicate: str, path: str) -> bool:
        """Return True if ``subject`` holds every letter of ``predicate`` on ``path``."""
        return all(decision.allowed for decision in self.explain(subject, predicate, path))

    def check(self, subject: str, predicate: str, path: str) -> None:
        """Require every letter of ``predicate`` for ``subject`` on ``path``.

        Raises
        ------
        PermissionDenied
            Naming the first letter (in ``rwcda`` order) that resolved Deny.
        ValidationError
            If any argument is malformed.
        """
        for decision in self.explain(subject, predicate, path):
            if not decision.allowed:
                logger.warning(
                    "Permission denied: subject=%s letter=%s path=%s (%s)",
                    decision.subject,
                    decision.letter,
                    decision.path,
                    decision.reason,
                )
                raise PermissionDenied(decision.letter, decision.subject, decision.path)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def allow(self, subject: str, predicate: str, rule_object: str) -> bool:
        """Add an allow rule; return False if the identical rule already existed."""
        return self._add(Rule.build(Effect.ALLOW, subject, predicate, rule_object))

    def deny(self, subject: str, predicate: str, rule_object: str) -> bool:
        """Add a deny rule; return False if the identical rule already existed."""
        return self._add(Rule.build(Effect.DENY, subject, predicate, rule_object))

    def remove(
        self,
        effect: str | Effect,
        subject: str,
        predicate: str,
        rule_object: str,
    ) -> bool:
        """Delete the exact rule tuple; removing an absent rule is a no-op."""
        rule = Rule.build(effect, subject, predicate, rule_object)
        self._require_writable()
        removed = self._store.discard(rule)
        if removed:
            logger.info("Removed rule %r", rule.to_line())
        else:
            logger.debug("Rule %r not present; nothing removed", rule.to_line())
        return removed

    def add_rule(self, rule: Rule) -> bool:
        """Insert an already-built rule."""
        return self._add(rule)

    def list(self, subject: str | None = None) -> list[Rule]:
        """Return rules in stable order, optionally only those for ``subject``."""
        rules = sorted(self._rules(), key=Rule.sort_key)
        if subject is not None:
            rules = [rule for rule in rules if rule.subject == subject]
        return rules

    def save(self) -> None:
        """Flush in-memory mutations to disk and release the store lock."""
        self._store.save()

    def release(self) -> None:
        """Release the store lock without saving."""
        self._store.release()

    @property
    def dirty(self) -> bool:
        return self._store.dirty

    @property
    def store(self) -> RuleStore:
        return self._store

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_loaded(self) -> None:
        if not self._store.loaded:
            self._store.load()

    def _rules(self) -> frozenset[Rule]:
        self._ensure_loaded()
        return self._store.rules

    def _require_writable(self) -> None:
        if not self._store.writable:
            raise StoreError(
                f"Rule store {self._store.path} is not open for update; "
                "load it with for_update=True before changing rules."
            )

    def _add(self, rule: Rule) -> bool:
        self._require_writable()
        added = self._store.add(rule)
        if added:
            logger.info("Added rule %r", rule.to_line())
        else:
            logger.debug("Rule %r already present", rule.to_line())
        return added
