"""
Top-level driver: SYNC -> ENUMERATE -> WALK -> INDEX -> DONE.

Any exception ends the run in whatever state it was raised; there is no
partial index and nothing is retried.
"""

from __future__ import annotations

import enum
import html
import shutil
from typing import Callable, Dict, List, Optional
from urllib.parse import quote

from .branch import HEADS_FILE, BranchHeads, BranchSummary, BranchWalker
from .commit import STAGING_PREFIX, CommitRenderer
from .config import SiteConfig, save as save_config
from .errors import ConfigError, SyncError
from .git import GitRepo, read_description
from .objects import ObjectStore
from .pages import format_date, page, write_atomic

MIRROR_DIR = "repository"
CACHE_DIRS = ("objects", "raw", "commits")


class State(enum.Enum):
    SYNC = "sync"
    ENUMERATE = "enumerate"
    WALK = "walk"
    INDEX = "index"
    DONE = "done"


class SiteGenerator:
    def __init__(self, config: SiteConfig, rebuild: bool = False,
                 progress: Optional[Callable[[str], None]] = None) -> None:
        self.config = config
        self.rebuild = rebuild
        self.progress = progress or (lambda msg: None)
        self.objects = ObjectStore(config.target / "objects")
        self.raw = ObjectStore(config.target / "raw")
        self.repo: Optional[GitRepo] = None
        self.available: List[str] = []
        self.branches: List[str] = []
        self.summaries: List[BranchSummary] = []
        self.state = State.SYNC

    def run(self) -> List[BranchSummary]:
        self.prepare()
        steps: Dict[State, Callable[[], State]] = {
            State.SYNC: self.sync,
            State.ENUMERATE: self.enumerate_branches,
            State.WALK: self.walk,
            State.INDEX: self.index,
        }
        while self.state is not State.DONE:
            self.state = steps[self.state]()
        return self.summaries

    def prepare(self) -> None:
        target = self.config.target
        target.mkdir(parents=True, exist_ok=True)
        if self.rebuild:
            self.progress("♻️  Rebuilding all pages.")
            for name in CACHE_DIRS:
                shutil.rmtree(target / name, ignore_errors=True)
        for name in CACHE_DIRS + ("branches",):
            (target / name).mkdir(exist_ok=True)
        # leftovers of an interrupted commit build
        for stale in (target / "commits").glob(STAGING_PREFIX + "*"):
            shutil.rmtree(stale, ignore_errors=True)
        # only now that stale output is gone may the new fingerprint be recorded
        save_config(self.config)

    # ---- states --------------------------------------------------------------

    def sync(self) -> State:
        mirror = self.config.target / MIRROR_DIR
        if not mirror.exists():
            self.progress(f"📁 Cloning {self.config.repository} → {mirror}")
            self.repo = GitRepo.clone_mirror(self.config.repository, mirror)
        else:
            self.progress(f"🔄 Fetching {self.config.repository}")
            self.repo = GitRepo(mirror)
            self.repo.fetch(self.config.repository)
        return State.ENUMERATE

    def enumerate_branches(self) -> State:
        assert self.repo is not None
        self.available = self.repo.branches()
        if self.config.branches:
            missing = [b for b in self.config.branches if b not in self.available]
            if missing:
                raise ConfigError(f"unknown branch(es): {', '.join(missing)}")
            self.branches = list(self.config.branches)
        else:
            self.branches = sorted(set(self.available))
        if not self.branches:
            raise SyncError(f"{self.config.repository} has no branches")
        return State.WALK

    def walk(self) -> State:
        assert self.repo is not None
        heads = BranchHeads.load(self.config.target / "branches" / HEADS_FILE)
        renderer = CommitRenderer(self.repo, self.config, self.objects, self.raw, self.progress)
        walker = BranchWalker(self.repo, renderer, self.config, heads, self.progress)
        for i, name in enumerate(self.branches, 1):
            self.summaries.append(walker.walk(name, f" ({i}/{len(self.branches)})"))
        self.prune(walker, heads)
        heads.save()
        return State.INDEX

    def prune(self, walker: BranchWalker, heads: BranchHeads) -> None:
        """Drop the pages and head records of branches deleted upstream."""
        branches_dir = self.config.target / "branches"
        for name in sorted(set(heads.heads) - set(self.available)):
            self.progress(f"🗑️  Branch {name} no longer exists, removing its page.")
            page_path = walker.branch_page(name)
            page_path.unlink(missing_ok=True)
            heads.forget(name)
            # "a/b" branches leave directories behind
            parent = page_path.parent
            while parent != branches_dir:
                try:
                    parent.rmdir()
                except OSError:
                    break
                parent = parent.parent

    def index(self) -> State:
        write_atomic(self.config.target / "index.html", self.render_index())
        built = sum(s.built for s in self.summaries)
        skipped = sum(s.skipped for s in self.summaries)
        self.progress(f"✅ {len(self.summaries)} branches, {built} commits rendered, {skipped} up to date.")
        return State.DONE

    # ---- pages ---------------------------------------------------------------

    def render_index(self) -> str:
        parts: List[str] = []
        description = read_description(self.config.repository)
        if description:
            parts.append(f"<h2>Description</h2>\n<p>{html.escape(description)}</p>")
        parts.append("<h2>Repository</h2>")
        if self.config.public_repository:
            parts.append("Clone this repository using:"
                         f"<pre> git clone {html.escape(self.config.public_repository)}</pre>")
        parts.append("<h2>Branches</h2>\n<ul>")
        for s in self.summaries:
            c = s.head
            parts.append(
                f'<li><a href="branches/{quote(s.name)}.html">{html.escape(s.name)}</a>: '
                f"<b>{html.escape(c.subject)}</b> {html.escape(c.author)} <i>{format_date(c.timestamp)}</i></li>"
            )
        parts.append("</ul>")
        return page(self.config.project, "", "\n".join(parts), root="")
