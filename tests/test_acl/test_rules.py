"""Tests for Rule construction and the persisted line format."""
from __future__ import annotations

import pytest

from pkghost.acl.rules import Effect, Rule
from pkghost.errors import FormatError, ValidationError


class TestEffect:
    def test_parse_lowercase(self) -> None:
        assert Effect.parse("allow") is Effect.ALLOW

    def test_parse_mixed_case(self) -> None:
        assert Effect.parse("Deny") is Effect.DENY

    def test_parse_passthrough(self) -> None:
        assert Effect.parse(Effect.DENY) is Effect.DENY

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(ValidationError, match="allow' or 'deny"):
            Effect.parse("grant")


class TestRuleBuild:
    def test_normalises_components(self) -> None:
        rule = Rule.build("ALLOW", "alice", "wr", "/repo/")
        assert rule.effect is Effect.ALLOW
        assert rule.predicate == frozenset("rw")
        assert rule.object == "/repo"

    def test_equal_tuples_are_equal(self) -> None:
        assert Rule.build("allow", "alice", "wr", "/repo") == Rule.build(
            "allow", "alice", "rw", "/repo/"
        )

    def test_different_effect_is_different_rule(self) -> None:
        assert Rule.build("allow", "alice", "r", "/repo") != Rule.build(
            "deny", "alice", "r", "/repo"
        )

    def test_hashable_set_semantics(self) -> None:
        rules = {
            Rule.build("allow", "alice", "r", "/repo"),
            Rule.build("allow", "alice", "r", "/repo"),
        }
        assert len(rules) == 1

    def test_invalid_predicate_raises(self) -> None:
        with pytest.raises(ValidationError):
            Rule.build("allow", "alice", "z", "/repo")

    def test_wildcard_flag(self) -> None:
        assert Rule.build("allow", "*", "r", "/").is_wildcard


class TestRuleLines:
    def test_parse_line(self) -> None:
        rule = Rule.from_line("deny bob:wc:/repo/core")
        assert rule.effect is Effect.DENY
        assert rule.subject == "bob"
        assert rule.predicate == frozenset("wc")
        assert rule.object == "/repo/core"

    def test_trailing_whitespace_trimmed(self) -> None:
        assert Rule.from_line("allow alice:r:/repo   \t").object == "/repo"

    def test_to_line_canonical_predicate(self) -> None:
        assert Rule.build("allow", "alice", "dcr", "/repo").to_line() == "allow alice:rcd:/repo"

    def test_str_is_line(self) -> None:
        rule = Rule.build("allow", "*", "r", "/")
        assert str(rule) == "allow *:r:/"

    @pytest.mark.parametrize(
        "line",
        [
            "permit alice:r:/repo",
            "allow alice:r",
            "allow alice:r:repo",
            "allow alice::/repo",
            "allow alice:q:/repo",
            "allow :r:/repo",
            "allow alice:r:/repo extra",
        ],
    )
    def test_malformed_lines_raise_format_error(self, line: str) -> None:
        with pytest.raises(FormatError):
            Rule.from_line(line)

    def test_format_error_carries_location(self) -> None:
        with pytest.raises(FormatError) as info:
            Rule.from_line("garbage", source="/etc/acl", line_number=7)
        assert info.value.path == "/etc/acl"
        assert info.value.line_number == 7
        assert "/etc/acl:7" in str(info.value)


class TestSortKey:
    def test_sorted_by_object_then_subject(self) -> None:
        rules = [
            Rule.build("allow", "bob", "r", "/repo"),
            Rule.build("allow", "alice", "r", "/repo"),
            Rule.build("deny", "alice", "r", "/"),
        ]
        ordered = sorted(rules, key=Rule.sort_key)
        assert [r.to_line() for r in ordered] == [
            "deny alice:r:/",
            "allow alice:r:/repo",
            "allow bob:r:/repo",
        ]
