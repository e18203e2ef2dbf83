"""Branch traversal: render every commit of a branch and rebuild its log page."""

from __future__ import annotations

import dataclasses
import html
import json
import pathlib
from typing import Callable, Dict, List, Optional

from .commit import CommitRenderer
from .config import SiteConfig
from .errors import ConfigError, RenderError
from .git import Commit, GitRepo
from .pages import format_date, page, relative_root, write_atomic

HEADS_FILE = "heads.json"

# See https://unicode.org/charts/PDF/U2500.pdf
GRAPH_GLYPHS = {
    "|": "&#x2503;",
    "*": "&#x25CF;",
    "\\": "&#x2B0A;",
    "/": "&#x2B0B;",
}


def render_graph(graph: str) -> str:
    return "".join(GRAPH_GLYPHS.get(ch) or html.escape(ch) for ch in graph)


@dataclasses.dataclass
class LogRow:
    graph: str
    commit: Optional[Commit] = None  # None for a graph-only row


@dataclasses.dataclass
class BranchSummary:
    name: str
    head: Commit
    rows: List[LogRow]
    built: int = 0
    skipped: int = 0


class BranchHeads:
    """Branch name -> head commit id, persisted as ``branches/heads.json``."""

    def __init__(self, path: pathlib.Path, heads: Optional[Dict[str, str]] = None) -> None:
        self.path = pathlib.Path(path)
        self.heads: Dict[str, str] = dict(heads or {})

    @classmethod
    def load(cls, path: pathlib.Path) -> "BranchHeads":
        path = pathlib.Path(path)
        if not path.is_file():
            return cls(path)
        try:
            return cls(path, json.loads(path.read_text(encoding="utf-8")))
        except ValueError as e:
            raise ConfigError(f"cannot read {path}: {e}") from e

    def update(self, name: str, commit_id: str) -> None:
        self.heads[name] = commit_id

    def resolve(self, name: str) -> Optional[str]:
        return self.heads.get(name)

    def forget(self, name: str) -> None:
        self.heads.pop(name, None)

    def save(self) -> None:
        write_atomic(self.path, json.dumps(self.heads, indent=2, sort_keys=True) + "\n")


class BranchWalker:
    def __init__(self, repo: GitRepo, renderer: CommitRenderer, config: SiteConfig, heads: BranchHeads,
                 progress: Optional[Callable[[str], None]] = None) -> None:
        self.repo = repo
        self.renderer = renderer
        self.config = config
        self.heads = heads
        self.progress = progress or (lambda msg: None)

    def branch_page(self, name: str) -> pathlib.Path:
        return self.config.target / "branches" / f"{name}.html"

    def walk(self, name: str, position: str = "") -> BranchSummary:
        """Render the branch newest first and rewrite ``branches/<name>.html``."""
        graph = self.repo.graph(name)
        commits = self.repo.commits(name)
        total = sum(1 for _, commit_id in graph if commit_id)
        self.progress(f"🌿 Branch {name}{position}: processing ({total} commits).")

        rows: List[LogRow] = []
        head: Optional[Commit] = None
        built = skipped = 0
        for glyphs, commit_id in graph:
            if commit_id is None:
                rows.append(LogRow(glyphs))
                continue
            commit = commits.get(commit_id)
            if commit is None:
                raise RenderError(f"branch {name}: no metadata for commit {commit_id}")
            if head is None:
                head = commit
                self.heads.update(name, commit.id)
            rows.append(LogRow(glyphs, commit))

            n = built + skipped + 1
            if self.renderer.render(commit):
                built += 1
                self.progress(f"   Commit {commit.id} ({n}/{total}): processed.")
            else:
                skipped += 1
                self.progress(f"   Commit {commit.id} ({n}/{total}): already processed.")

        if head is None:
            raise RenderError(f"branch {name} has no commits")
        summary = BranchSummary(name=name, head=head, rows=rows, built=built, skipped=skipped)
        write_atomic(self.branch_page(name), self.render_page(summary))
        return summary

    def render_page(self, summary: BranchSummary) -> str:
        root = relative_root(summary.name)
        head = self.heads.resolve(summary.name) or summary.head.id
        lines: List[str] = []
        for row in summary.rows:
            graph = f"<td><pre>{render_graph(row.graph)}</pre></td>"
            c = row.commit
            if c is None:
                lines.append(f'<tr class="graph">{graph}<td></td><td></td><td></td></tr>')
                continue
            subject = html.escape(c.subject or "(no subject)")
            lines.append(
                f'<tr class="commit">{graph}'
                f'<td><a href="{root}commits/{c.id}/index.html">{subject}</a></td>'
                f"<td>{html.escape(c.author)}</td>"
                f"<td><i>{format_date(c.timestamp)}</i></td></tr>"
            )
        body = (f'<p><a href="{root}commits/{head}/index.html">HEAD</a></p>\n'
                f'<table class="log">\n' + "\n".join(lines) + "\n</table>")
        return page(self.config.project, f"Branch: {summary.name}", body, root=root)
