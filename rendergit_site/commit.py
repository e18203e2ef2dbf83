"""
Per-commit output: ``commits/<id>/`` with the detail page, one diff page per
parent, and every file of the commit hard-linked from the object stores.

A commit directory is built under a private ``.tmp-*`` name and renamed into
place once complete, so its existence means it is finished.
"""

from __future__ import annotations

import html
import os
import pathlib
import shutil
import tempfile
from typing import Callable, Dict, List, Optional, Sequence, Set

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer

from .config import SiteConfig
from .diff import render_diff, render_stat_table, show_cr
from .errors import GitError, RenderError
from .git import Commit, DiffStat, GitRepo, TreeEntry
from .objects import ObjectStore
from .pages import format_date, page
from .tree import render_tree

STAGING_PREFIX = ".tmp-"
BINARY_SNIFF_BYTES = 8000


def render_blob(project: str, object_id: str, data: bytes) -> str:
    """The shared ``.raw.html`` page for one blob; depends on the bytes only."""
    if b"\0" in data[:BINARY_SNIFF_BYTES]:
        body = f"<p><em>Binary file, {len(data)} bytes.</em></p>"
    else:
        text = show_cr(data.decode("utf-8", errors="replace"))
        formatter = HtmlFormatter(linenos="inline", lineanchors="L")
        body = highlight(text, TextLexer(stripnl=False), formatter)
    return page(project, object_id, body)


def diff_page_name(parent: str) -> str:
    return f"diff-to-{parent}.html"


class CommitRenderer:
    def __init__(self, repo: GitRepo, config: SiteConfig, objects: ObjectStore, raw: ObjectStore,
                 progress: Optional[Callable[[str], None]] = None) -> None:
        self.repo = repo
        self.config = config
        self.objects = objects
        self.raw = raw
        self.commits_dir = config.target / "commits"
        self.progress = progress or (lambda msg: None)

    def commit_dir(self, commit_id: str) -> pathlib.Path:
        return self.commits_dir / commit_id

    def is_built(self, commit_id: str) -> bool:
        return self.commit_dir(commit_id).is_dir()

    def render(self, commit: Commit) -> bool:
        """Build ``commits/<id>``. Returns False, doing nothing, if it already exists."""
        final = self.commit_dir(commit.id)
        if final.exists():
            return False
        self.commits_dir.mkdir(parents=True, exist_ok=True)
        staging = pathlib.Path(
            tempfile.mkdtemp(prefix=f"{STAGING_PREFIX}{commit.id[:12]}-", dir=str(self.commits_dir))
        )
        try:
            self._populate(commit, staging)
            os.chmod(staging, 0o755)
            try:
                os.rename(staging, final)
            except OSError:
                if final.is_dir():
                    # published by another writer meanwhile
                    return False
                raise
        except GitError as e:
            raise RenderError(f"commit {commit.id}: {e}") from e
        except OSError as e:
            raise RenderError(f"commit {commit.id}: {e}") from e
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)
        return True

    # ---- building ------------------------------------------------------------

    def _populate(self, commit: Commit, dest: pathlib.Path) -> None:
        entries = self.repo.ls_tree(commit.id)
        stats: Dict[str, List[DiffStat]] = {p: self.repo.diff_stat(p, commit.id) for p in commit.parents}

        pages = {"index.html": self._index_page(commit, entries, stats)}
        for p in commit.parents:
            pages[diff_page_name(p)] = self._diff_page(commit, p, stats[p], self.repo.diff(p, commit.id))
        for name, text in pages.items():
            (dest / name).write_text(text, encoding="utf-8")

        taken: Set[str] = set(pages)
        for entry in entries:
            if entry.is_submodule or entry.kind != "blob":
                continue
            for name, store, render in (
                (f"{entry.path}.raw.html", self.objects, lambda e=entry: self._render_blob(e)),
                (entry.path, self.raw, lambda e=entry: self.repo.cat_blob(e.object_id)),
            ):
                if name in taken:
                    self.progress(f"⚠️  Commit {commit.id}: {name} clashes with a generated page, not linked.")
                    continue
                taken.add(name)
                store.attach(entry.object_id, render, dest / name)

    def _render_blob(self, entry: TreeEntry) -> str:
        return render_blob(self.config.project, entry.object_id, self.repo.cat_blob(entry.object_id))

    def _metadata(self, commit: Commit) -> str:
        return (f"<p>Author: {html.escape(commit.author)}"
                f"<br>Date: {format_date(commit.timestamp)}")

    def _index_page(self, commit: Commit, entries: Sequence[TreeEntry],
                    stats: Dict[str, List[DiffStat]]) -> str:
        parts = [self._metadata(commit), f"<br>Commit: {commit.id}"]
        for p in commit.parents:
            parts.append(f'<br>Parent: <a href="../{p}/index.html">{p}</a>'
                         f' (<a href="{diff_page_name(p)}">diff to parent</a>)')
        parts.append(f"<br>Log message:<p><pre>{html.escape(commit.message)}</pre>")
        for p in commit.parents:
            parts.append(f"<p>Diff stat to {p}:</p>\n<blockquote>{render_stat_table(stats[p], p)}</blockquote>")
        parts.append(f'<p>Files:</p>\n<ul class="files">\n{render_tree(entries)}\n</ul>')
        return page(self.config.project, f"Commit: {commit.id}", "\n".join(parts), root="../../")

    def _diff_page(self, commit: Commit, parent: str, stats: List[DiffStat], diff_text: str) -> str:
        body = "\n".join([
            f'<h3>Commit: <a href="index.html">{commit.id}</a></h3>',
            self._metadata(commit),
            f'<br>Parent: <a href="../{parent}/index.html">{parent}</a>',
            f"<br>Log message:<p><pre>{html.escape(commit.message)}</pre>",
            f"<blockquote>{render_stat_table(stats, parent)}</blockquote>",
            render_diff(diff_text),
        ])
        return page(self.config.project, f"diff {commit.id[:8]} {parent[:8]}", body, root="../../")
