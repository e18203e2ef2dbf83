"""Tests for rendergit_site.config."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rendergit_site import config as site_config
from rendergit_site.config import CONFIG_FILE, SiteConfig, default_project_name, parse_branches
from rendergit_site.errors import ConfigError


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    d = tmp_path / "project.git"
    d.mkdir()
    return d


class TestResolve:
    def test_requires_repository(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="-r"):
            site_config.resolve(tmp_path / "site", {})

    def test_missing_repository_directory(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="does not exist"):
            site_config.resolve(tmp_path / "site", {"repository": str(tmp_path / "missing")})

    def test_nothing_written_on_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            site_config.resolve(tmp_path / "site", {"repository": str(tmp_path / "missing")})
        assert not (tmp_path / "site").exists()

    def test_remote_url_not_checked(self, tmp_path: Path) -> None:
        config, _ = site_config.resolve(tmp_path / "site", {"repository": "https://example.com/demo.git"})
        assert config.repository == "https://example.com/demo.git"
        assert config.project == "demo"

    def test_defaults(self, tmp_path: Path, repo_dir: Path) -> None:
        config, changed = site_config.resolve(tmp_path / "site", {"repository": str(repo_dir)})
        assert config.repository == str(repo_dir.resolve())
        assert config.project == "project"
        assert config.public_repository == ""
        assert config.branches == ()
        assert config.target == (tmp_path / "site").absolute()
        assert changed is True

    def test_stored_values_carry_over(self, tmp_path: Path, repo_dir: Path) -> None:
        target = tmp_path / "site"
        first, _ = site_config.resolve(target, {
            "repository": str(repo_dir),
            "project": "Demo",
            "public_repository": "https://example.com/demo.git",
            "branches": "main dev",
        })
        target.mkdir()
        site_config.save(first)

        second, changed = site_config.resolve(target, {"project": None, "branches": None})
        assert second == first
        assert changed is False

    def test_overrides_win(self, tmp_path: Path, repo_dir: Path) -> None:
        target = tmp_path / "site"
        target.mkdir()
        (target / CONFIG_FILE).write_text(json.dumps({"repository": str(repo_dir), "project": "Old"}))
        config, _ = site_config.resolve(target, {"project": "New"})
        assert config.project == "New"

    def test_template_change_detected(self, tmp_path: Path, repo_dir: Path) -> None:
        target = tmp_path / "site"
        target.mkdir()
        (target / CONFIG_FILE).write_text(json.dumps({"repository": str(repo_dir), "template": "0" * 40}))
        config, changed = site_config.resolve(target, {})
        assert changed is True
        assert config.template == site_config.generator_fingerprint()

    def test_corrupt_file(self, tmp_path: Path) -> None:
        target = tmp_path / "site"
        target.mkdir()
        (target / CONFIG_FILE).write_text("{not json")
        with pytest.raises(ConfigError, match=CONFIG_FILE):
            site_config.resolve(target, {})

    def test_unknown_keys_ignored(self, tmp_path: Path, repo_dir: Path) -> None:
        target = tmp_path / "site"
        target.mkdir()
        (target / CONFIG_FILE).write_text(json.dumps({"repository": str(repo_dir), "target": "/elsewhere"}))
        config, _ = site_config.resolve(target, {})
        assert config.target == target.absolute()


class TestSave:
    def test_round_trips_as_json(self, tmp_path: Path) -> None:
        config = SiteConfig(target=tmp_path, repository="/r", project="p", branches=("a", "b"), template="t")
        site_config.save(config)
        data = json.loads((tmp_path / CONFIG_FILE).read_text())
        assert data == {
            "project": "p",
            "repository": "/r",
            "public_repository": "",
            "branches": ["a", "b"],
            "template": "t",
        }


class TestHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, ()),
            ("", ()),
            ("main dev", ("dev", "main")),
            ("main,dev, main", ("dev", "main")),
            (["b", "a", "b"], ("a", "b")),
        ],
    )
    def test_parse_branches(self, value: object, expected: tuple) -> None:
        assert parse_branches(value) == expected

    @pytest.mark.parametrize(
        "repository, name",
        [
            ("/srv/git/project.git", "project"),
            ("/home/me/project/.git", "project"),
            ("/home/me/project/", "project"),
            ("git@example.com:owner/tool.git", "tool"),
        ],
    )
    def test_default_project_name(self, repository: str, name: str) -> None:
        assert default_project_name(repository) == name

    def test_fingerprint_is_stable(self) -> None:
        assert site_config.generator_fingerprint() == site_config.generator_fingerprint()
        assert len(site_config.generator_fingerprint()) == 40
