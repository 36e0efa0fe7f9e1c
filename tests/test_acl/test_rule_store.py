"""Tests for RuleStore persistence and cross-process locking.

Two RuleStore instances open separate descriptors on the lock file, so
``flock`` treats them exactly like two independent processes.
"""
from __future__ import annotations

import fcntl
import threading
import time
from pathlib import Path

import pytest

from pkghost.acl.rules import Rule
from pkghost.acl.store import RuleStore
from pkghost.errors import FormatError, StoreBusyError, StoreError


@pytest.fixture()
def acl_path(tmp_path: Path) -> Path:
    return tmp_path / "acl"


def _rule(line: str) -> Rule:
    return Rule.from_line(line)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    def test_missing_file_is_empty(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load()
        assert store.rules == frozenset()
        assert store.loaded

    def test_reads_rules_and_skips_blank_and_comment_lines(self, acl_path: Path) -> None:
        acl_path.write_text(
            "# host rules\n\nallow alice:rw:/repo   \ndeny bob:w:/repo\n\n", encoding="utf-8"
        )
        store = RuleStore(acl_path)
        store.load()
        assert store.rules == {
            _rule("allow alice:rw:/repo"),
            _rule("deny bob:w:/repo"),
        }

    def test_duplicate_lines_deduplicated(self, acl_path: Path) -> None:
        acl_path.write_text("allow alice:r:/repo\nallow alice:r:/repo\n", encoding="utf-8")
        store = RuleStore(acl_path)
        store.load()
        assert len(store.rules) == 1

    def test_malformed_line_raises_with_line_number(self, acl_path: Path) -> None:
        acl_path.write_text("allow alice:r:/repo\nthis is not a rule\n", encoding="utf-8")
        store = RuleStore(acl_path)
        with pytest.raises(FormatError) as info:
            store.load(for_update=True)
        assert info.value.line_number == 2
        assert not store.locked
        assert not store.loaded

    def test_undecodable_bytes_raise_format_error(self, acl_path: Path) -> None:
        acl_path.write_bytes(b"allow alice:r:/repo\nallow \xff\xfe:r:/x\n")
        store = RuleStore(acl_path)
        with pytest.raises(FormatError, match="not valid UTF-8") as info:
            store.load(for_update=True)
        assert info.value.path == str(acl_path)
        assert not store.locked
        assert not store.loaded

    def test_double_load_raises(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load()
        with pytest.raises(StoreError, match="already loaded"):
            store.load()

    def test_access_before_load_raises(self, acl_path: Path) -> None:
        with pytest.raises(StoreError, match="not been loaded"):
            _ = RuleStore(acl_path).rules

    def test_read_only_load_releases_lock(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load()
        assert not store.locked

    def test_update_load_holds_lock(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load(for_update=True)
        assert store.locked
        store.release()
        assert not store.locked


# ---------------------------------------------------------------------------
# Mutation and saving
# ---------------------------------------------------------------------------


class TestSave:
    def test_round_trip(self, acl_path: Path) -> None:
        rules = {
            _rule("allow alice:rw:/repo"),
            _rule("deny *:w:/repo/release"),
            _rule("allow admin:rwcda:/"),
        }
        writer = RuleStore(acl_path)
        writer.load(for_update=True)
        for rule in rules:
            writer.add(rule)
        writer.save()

        reader = RuleStore(acl_path)
        reader.load()
        assert reader.rules == rules

    def test_saved_file_is_sorted(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load(for_update=True)
        store.add(_rule("allow bob:r:/repo"))
        store.add(_rule("allow alice:r:/repo"))
        store.add(_rule("deny alice:w:/"))
        store.save()
        assert acl_path.read_text(encoding="utf-8").splitlines() == [
            "deny alice:w:/",
            "allow alice:r:/repo",
            "allow bob:r:/repo",
        ]

    def test_add_and_discard_report_changes(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load(for_update=True)
        rule = _rule("allow alice:r:/repo")
        assert store.add(rule) is True
        assert store.add(rule) is False
        assert store.discard(rule) is True
        assert store.discard(rule) is False
        store.release()

    def test_dirty_tracks_unsaved_changes(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load(for_update=True)
        assert not store.dirty
        store.add(_rule("allow alice:r:/repo"))
        assert store.dirty
        store.save()
        assert not store.dirty

    def test_unsaved_changes_are_lost(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load(for_update=True)
        store.add(_rule("allow alice:r:/repo"))
        store.release()

        fresh = RuleStore(acl_path)
        fresh.load()
        assert fresh.rules == frozenset()

    def test_save_requires_update_load(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load()
        store.add(_rule("allow alice:r:/repo"))
        with pytest.raises(StoreError, match="not loaded for update"):
            store.save()
        assert not acl_path.exists()

    def test_save_releases_lock(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load(for_update=True)
        store.save()
        assert not store.locked

    def test_failed_write_leaves_old_file_and_no_temp(
        self, acl_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        acl_path.write_text("allow alice:r:/repo\n", encoding="utf-8")
        store = RuleStore(acl_path)
        store.load(for_update=True)
        store.add(_rule("allow bob:r:/repo"))

        def broken_replace(src: str, dst: str) -> None:
            raise OSError("disk full")

        monkeypatch.setattr("pkghost.acl.store.os.replace", broken_replace)
        with pytest.raises(StoreError, match="disk full"):
            store.save()

        assert acl_path.read_text(encoding="utf-8") == "allow alice:r:/repo\n"
        assert sorted(p.name for p in acl_path.parent.iterdir()) == ["acl", "acl.lock"]
        assert not store.locked

    def test_saved_file_is_world_readable_by_default(self, acl_path: Path) -> None:
        store = RuleStore(acl_path)
        store.load(for_update=True)
        store.add(_rule("allow alice:r:/repo"))
        store.save()
        assert acl_path.stat().st_mode & 0o777 == 0o644


# ---------------------------------------------------------------------------
# Locking between independent writers
# ---------------------------------------------------------------------------


class TestLocking:
    def test_second_writer_times_out_as_busy(self, acl_path: Path) -> None:
        first = RuleStore(acl_path)
        first.load(for_update=True)

        second = RuleStore(acl_path, lock_timeout=0.2, poll_interval=0.02)
        with pytest.raises(StoreBusyError) as info:
            second.load(for_update=True)
        assert info.value.timeout == pytest.approx(0.2)
        assert not second.loaded
        first.release()

    def test_reader_waits_for_writer(self, acl_path: Path) -> None:
        writer = RuleStore(acl_path)
        writer.load(for_update=True)

        reader = RuleStore(acl_path, lock_timeout=0.2, poll_interval=0.02)
        with pytest.raises(StoreBusyError):
            reader.load()
        writer.release()

    def test_readers_share_the_lock(self, acl_path: Path) -> None:
        acl_path.write_text("allow alice:r:/repo\n", encoding="utf-8")
        holder = RuleStore(acl_path)
        holder._acquire(fcntl.LOCK_SH)
        try:
            reader = RuleStore(acl_path, lock_timeout=0.2, poll_interval=0.02)
            reader.load()
            assert len(reader.rules) == 1
        finally:
            holder.release()

    def test_concurrent_writers_produce_union(self, acl_path: Path) -> None:
        first = RuleStore(acl_path)
        first.load(for_update=True)
        first.add(_rule("allow alice:w:/repo"))

        second_loaded = threading.Event()
        errors: list[BaseException] = []

        def second_writer() -> None:
            try:
                second = RuleStore(acl_path, lock_timeout=5, poll_interval=0.01)
                second.load(for_update=True)
                second_loaded.set()
                second.add(_rule("allow bob:w:/repo"))
                second.save()
            except BaseException as exc:  # pragma: no cover - reported below
                errors.append(exc)

        thread = threading.Thread(target=second_writer)
        thread.start()
        time.sleep(0.1)
        assert not second_loaded.is_set()  # blocked behind the first writer

        first.save()
        thread.join(timeout=5)
        assert not errors

        final = RuleStore(acl_path)
        final.load()
        assert final.rules == {
            _rule("allow alice:w:/repo"),
            _rule("allow bob:w:/repo"),
        }

    def test_context_manager_releases(self, acl_path: Path) -> None:
        with RuleStore(acl_path) as store:
            store.load(for_update=True)
            assert store.locked
        assert not store.locked
