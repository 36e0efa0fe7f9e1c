"""Hierarchical access-control engine.

Rules grant or deny permission letters (``r``, ``w``, ``c``, ``d``, ``a``) to a
subject on a resource path and everything below it.  The most specific rule
for the exact subject wins; the wildcard subject ``*`` only applies where no
exact-subject rule does; Deny wins ties; no rule means Deny.

Example
-------
::

    from pkghost.acl import AccessControl

    acl = AccessControl.open("/var/lib/pkghost/acl", for_update=True)
    acl.deny("alice", "w", "/repo")
    acl.allow("alice", "w", "/repo/testing")
    acl.save()

    assert acl.can("alice", "w", "/repo/testing/x86_64")
    assert not acl.can("alice", "w", "/repo/release")
"""
from __future__ import annotations

from pkghost.acl.engine import AccessControl
from pkghost.acl.evaluator import Decision, Evaluator
from pkghost.acl.permissions import (
    PERMISSION_LETTERS,
    PERMISSION_NAMES,
    ROOT_PATH,
    WILDCARD_SUBJECT,
    normalize_path,
    parse_predicate,
    path_matches,
    specificity,
)
from pkghost.acl.rules import Effect, Rule
from pkghost.acl.store import RuleStore

__all__ = [
    # Facade
    "AccessControl",
    # Decision algorithm
    "Decision",
    "Evaluator",
    # Rule model
    "Effect",
    "Rule",
    "RuleStore",
    # Permission model
    "PERMISSION_LETTERS",
    "PERMISSION_NAMES",
    "ROOT_PATH",
    "WILDCARD_SUBJECT",
    "normalize_path",
    "parse_predicate",
    "path_matches",
    "specificity",
]
