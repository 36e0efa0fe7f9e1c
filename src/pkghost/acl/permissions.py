"""Permission letters and resource-path matching.

Permission letters
------------------
=======  ============================================================
letter   meaning
=======  ============================================================
``r``    read
``w``    write / modify
``c``    create
``d``    delete
``a``    administrative override (still subject to normal matching)
=======  ============================================================

A predicate is a non-empty set of letters.  Requests for several letters are
evaluated letter by letter and all of them must be allowed.

Resource paths are ``/``-rooted and hierarchical.  A rule object matches a
requested path when it is the same path, a parent of it, or the root::

    >>> path_matches("/repo", "/repo/foo")
    True
    >>> path_matches("/repo", "/repository")
    False
    >>> specificity("/repo/foo")
    2
"""
from __future__ import annotations

from pkghost.errors import ValidationError

PERMISSION_LETTERS: str = "rwcda"

PERMISSION_NAMES: dict[str, str] = {
    "r": "read",
    "w": "write",
    "c": "create",
    "d": "delete",
    "a": "admin",
}

WILDCARD_SUBJECT: str = "*"
ROOT_PATH: str = "/"

_FORBIDDEN_SUBJECT_CHARS: frozenset[str] = frozenset(":")


def parse_predicate(predicate: str | frozenset[str] | set[str]) -> frozenset[str]:
    """Return the set of permission letters named by ``predicate``.

    Parameters
    ----------
    predicate:
        A contiguous string of letters (``"rw"``) or an existing set.

    Raises
    ------
    ValidationError
        If the predicate is empty or contains an unknown letter.
    """
    letters = frozenset(predicate)
    if not letters:
        raise ValidationError("Predicate must name at least one permission letter.")
    unknown = letters - frozenset(PERMISSION_LETTERS)
    if unknown:
        raise ValidationError(
            f"Unknown permission letter(s) {''.join(sorted(unknown))!r}; "
            f"valid letters are {PERMISSION_LETTERS!r}."
        )
    return letters


def format_predicate(letters: frozenset[str]) -> str:
    """Render a letter set in canonical ``rwcda`` order."""
    return "".join(letter for letter in PERMISSION_LETTERS if letter in letters)


def ordered_letters(letters: frozenset[str]) -> list[str]:
    """Return ``letters`` as a list in canonical order."""
    return [letter for letter in PERMISSION_LETTERS if letter in letters]


def validate_subject(subject: str) -> str:
    """Return ``subject`` unchanged if it is a usable identity.

    Raises
    ------
    ValidationError
        If the subject is empty, contains whitespace, or contains ``:``.
    """
    if not subject:
        raise ValidationError("Subject must not be empty.")
    if any(ch.isspace() for ch in subject) or set(subject) & _FORBIDDEN_SUBJECT_CHARS:
        raise ValidationError(
            f"Subject {subject!r} must not contain whitespace or ':'."
        )
    return subject


def normalize_path(path: str) -> str:
    """Return the canonical form of a resource path.

    Trailing slashes are dropped (except for the root itself).

    Raises
    ------
    ValidationError
        If the path is not absolute, contains whitespace, or has an empty
        segment such as ``/repo//foo``.
    """
    if not path.startswith(ROOT_PATH):
        raise ValidationError(f"Resource path {path!r} must start with '/'.")
    if any(ch.isspace() for ch in path):
        raise ValidationError(f"Resource path {path!r} must not contain whitespace.")
    stripped = path.rstrip("/")
    if not stripped:
        return ROOT_PATH
    if "" in stripped.split("/")[1:]:
        raise ValidationError(f"Resource path {path!r} contains an empty segment.")
    return stripped


def path_matches(rule_object: str, path: str) -> bool:
    """Return True if a rule on ``rule_object`` applies to ``path``."""
    if rule_object == ROOT_PATH:
        return True
    return path == rule_object or path.startswith(rule_object + "/")


def specificity(rule_object: str) -> int:
    """Return the number of segments in ``rule_object`` (the root has 0)."""
    if rule_object == ROOT_PATH:
        return 0
    return rule_object.count("/")
