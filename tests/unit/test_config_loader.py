"""Tests for ConfigLoader and HostConfig."""
from __future__ import annotations

from pathlib import Path

import pydantic
import pytest

from pkghost.config.loader import ConfigLoader, HostConfig


@pytest.fixture()
def loader() -> ConfigLoader:
    return ConfigLoader()


class TestDefaults:
    def test_defaults(self, loader: ConfigLoader) -> None:
        config = loader.defaults()
        assert config.acl.path == Path("/var/lib/pkghost/acl")
        assert config.acl.lock_timeout == 10.0
        assert config.audit.enabled is True

    def test_missing_file_falls_back_to_defaults(
        self, loader: ConfigLoader, tmp_path: Path
    ) -> None:
        config = loader.load_or_defaults(tmp_path / "missing.yaml")
        assert config == HostConfig()

    def test_load_missing_file_raises(self, loader: ConfigLoader, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            loader.load(tmp_path / "missing.yaml")


class TestLoad:
    def test_load_file(self, loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "pkghost.yaml"
        path.write_text(
            "acl:\n  path: /srv/acl\n  lock_timeout: 2.5\naudit:\n  enabled: false\n",
            encoding="utf-8",
        )
        config = loader.load(path)
        assert config.acl.path == Path("/srv/acl")
        assert config.acl.lock_timeout == 2.5
        assert config.audit.enabled is False

    def test_empty_file_gives_defaults(self, loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "pkghost.yaml"
        path.write_text("", encoding="utf-8")
        assert loader.load(path) == HostConfig()

    def test_unknown_keys_allowed(self, loader: ConfigLoader) -> None:
        config = loader.load_string("future_section:\n  key: 1\n")
        assert config.acl.lock_timeout == 10.0

    def test_non_positive_timeout_rejected(self, loader: ConfigLoader) -> None:
        with pytest.raises(pydantic.ValidationError):
            loader.load_string("acl:\n  lock_timeout: 0\n")

    def test_empty_acl_path_rejected(self, loader: ConfigLoader) -> None:
        with pytest.raises(pydantic.ValidationError):
            loader.load_string("acl:\n  path: ''\n")
