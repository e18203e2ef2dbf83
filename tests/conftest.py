"""Shared fixtures: throwaway source repositories driven through the git CLI."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from rendergit_site import config as site_config
from rendergit_site.config import SiteConfig
from rendergit_site.site import SiteGenerator

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


class SourceRepo:
    """A working repository with deterministic commit dates."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._clock = 1_700_000_000
        path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")
        self.git("config", "user.name", "Alice Example")
        self.git("config", "user.email", "alice@example.com")
        self.git("config", "commit.gpgsign", "false")

    def _env(self) -> Dict[str, str]:
        env = os.environ.copy()
        stamp = f"{self._clock} +0000"
        env.update(GIT_AUTHOR_DATE=stamp, GIT_COMMITTER_DATE=stamp)
        return env

    def git(self, *args: str) -> str:
        cp = subprocess.run(["git", *args], cwd=self.path, check=True, capture_output=True,
                            text=True, env=self._env())
        return cp.stdout.strip()

    def write(self, rel: str, content: str | bytes) -> None:
        p = self.path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            p.write_bytes(content)
        else:
            p.write_text(content)

    def commit(self, message: str, files: Optional[Dict[str, str | bytes]] = None) -> str:
        for rel, content in (files or {}).items():
            self.write(rel, content)
        self._clock += 60
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD")

    def merge(self, branch: str, message: str) -> str:
        self._clock += 60
        self.git("merge", "-q", "--no-ff", "--no-edit", "-m", message, branch)
        return self.git("rev-parse", "HEAD")

    def blob_id(self, rev: str, rel: str) -> str:
        return self.git("rev-parse", f"{rev}:{rel}")


@pytest.fixture
def source_repo(tmp_path: Path) -> SourceRepo:
    return SourceRepo(tmp_path / "source")


@pytest.fixture
def target(tmp_path: Path) -> Path:
    return tmp_path / "site"


def generate(target: Path, repository: Path, force: bool = False, **overrides: object) -> SiteGenerator:
    """Resolve the config the way the CLI does and run one generation."""
    config, changed = site_config.resolve(target, {"repository": str(repository), **overrides})
    gen = SiteGenerator(config, rebuild=force or changed)
    gen.run()
    return gen


def snapshot(root: Path, skip: tuple = ("repository",)) -> Dict[str, bytes]:
    files: Dict[str, bytes] = {}
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root)
        if rel.parts[0] in skip or not p.is_file():
            continue
        files[rel.as_posix()] = p.read_bytes()
    return files


def make_config(target: Path, repository: str = "/nonexistent", **kwargs: object) -> SiteConfig:
    return SiteConfig(target=target, repository=repository, project=kwargs.pop("project", "demo"), **kwargs)


def commit_dirs(target: Path) -> List[str]:
    return sorted(p.name for p in (target / "commits").iterdir() if not p.name.startswith("."))
