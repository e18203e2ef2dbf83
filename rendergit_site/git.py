"""
Thin wrapper around the ``git`` command line.

Everything the generator knows about history comes through here as
structured records: ``Commit`` from one ``git log`` parse, ``TreeEntry``
from ``ls-tree``, ``DiffStat`` from ``--raw --numstat -z``. Raw diff text and
blob bytes are handed over as-is.
"""

from __future__ import annotations

import dataclasses
import os
import pathlib
import re
import subprocess
from typing import Dict, List, Optional, Tuple

from .errors import GitError, SyncError

# field sep 0x1f, record sep 0x1e
LOG_FORMAT = "%H%x1f%P%x1f%an%x1f%ae%x1f%at%x1f%B%x1e"
SUBMODULE_KIND = "commit"

_GRAPH_LINE = re.compile(r"^(?P<graph>.*?)(?P<sha>[0-9a-f]{64}|[0-9a-f]{40})?\s*$")


def run(cmd: List[str], cwd: str | None = None, check: bool = True, text: bool = True,
        env: Optional[Dict[str, str]] = None) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, check=check, text=text, capture_output=True, env=env)


def noninteractive_env() -> Dict[str, str]:
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    return env


@dataclasses.dataclass(frozen=True)
class Commit:
    id: str
    parents: Tuple[str, ...]
    author: str
    timestamp: int
    subject: str
    message: str

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


@dataclasses.dataclass(frozen=True)
class TreeEntry:
    mode: str
    kind: str  # "blob" or "commit" (submodule)
    object_id: str
    path: str

    @property
    def is_submodule(self) -> bool:
        return self.kind == SUBMODULE_KIND


@dataclasses.dataclass(frozen=True)
class DiffStat:
    path: str
    added: Optional[int]  # None for binary files
    removed: Optional[int]
    status: str = "M"  # A, D, M, T (from --raw)

    @property
    def binary(self) -> bool:
        return self.added is None or self.removed is None


# ---- parsers -----------------------------------------------------------------

def parse_log(out: str) -> List[Commit]:
    commits: List[Commit] = []
    for rec in out.split("\x1e"):
        rec = rec.lstrip("\n")
        if not rec.strip():
            continue
        h, p, an, ae, at, body = rec.split("\x1f", 5)
        message = body.strip("\n")
        subject = message.splitlines()[0] if message else ""
        commits.append(
            Commit(
                id=h,
                parents=tuple(x for x in p.split() if x),
                author=f"{an} <{ae}>",
                timestamp=int(at),
                subject=subject,
                message=message,
            )
        )
    return commits


def parse_graph_line(line: str) -> Tuple[str, Optional[str]]:
    """Split a ``git log --graph --format=%H`` line into (graph, commit id or None)."""
    m = _GRAPH_LINE.match(line)
    assert m is not None  # the pattern matches any single line
    return m.group("graph").rstrip(), m.group("sha")


def parse_ls_tree(out: bytes) -> List[TreeEntry]:
    entries: List[TreeEntry] = []
    for rec in out.split(b"\0"):
        if not rec:
            continue
        meta, _, path = rec.partition(b"\t")
        mode, kind, sha = meta.decode("ascii").split()
        entries.append(TreeEntry(mode=mode, kind=kind, object_id=sha,
                                 path=path.decode("utf-8", errors="replace")))
    return entries


_C_ESCAPES = {"a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13, '"': 34, "\\": 92}


def unquote_c_path(quoted: str) -> str:
    """Decode a C-quoted path as git writes it; unquoted input is returned as-is."""
    if len(quoted) < 2 or quoted[0] != '"' or quoted[-1] != '"':
        return quoted
    body = quoted[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt in "01234567":
                out.append(int(body[i + 1:i + 4], 8) & 0xFF)
                i += 4
                continue
            out.append(_C_ESCAPES.get(nxt, ord(nxt)))
            i += 2
            continue
        out += ch.encode("utf-8")
        i += 1
    return out.decode("utf-8", errors="replace")


def parse_diff_stat(out: str) -> List[DiffStat]:
    """Parse ``git diff --raw --numstat -z`` output (raw records first, then numstat)."""
    statuses: Dict[str, str] = {}
    stats: List[DiffStat] = []
    fields = iter(out.split("\0"))
    for field in fields:
        if not field:
            continue
        if field.startswith(":"):
            # ":100644 100644 abc def M", then the path as its own field
            statuses[next(fields, "")] = field.split()[-1][:1]
            continue
        parts = field.split("\t", 2)
        if len(parts) < 3:
            continue
        a, d, path = parts
        stats.append(
            DiffStat(
                path=path,
                added=int(a) if a.isdigit() else None,
                removed=int(d) if d.isdigit() else None,
                status=statuses.get(path, "M"),
            )
        )
    return stats


# ---- repository --------------------------------------------------------------

class GitRepo:
    """A (bare) git repository driven through the CLI."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = pathlib.Path(path)

    def git(self, *args: str, binary: bool = False, error: type = GitError,
            env: Optional[Dict[str, str]] = None):
        cmd = ["git", "-c", "core.quotepath=off", *args]
        try:
            cp = run(cmd, cwd=str(self.path), text=False, env=env)
        except FileNotFoundError as e:
            raise error("git executable not found") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            raise error(f"`{' '.join(args)}` failed in {self.path}: {detail}") from e
        return cp.stdout if binary else cp.stdout.decode("utf-8", errors="replace")

    # -- sync

    @classmethod
    def clone_mirror(cls, source: str, dest: pathlib.Path) -> "GitRepo":
        cmd = ["git", "clone", "--mirror", "--quiet", source, str(dest)]
        try:
            run(cmd, env=noninteractive_env())
        except FileNotFoundError as e:
            raise SyncError("git executable not found") from e
        except subprocess.CalledProcessError as e:
            raise SyncError(f"cloning {source} failed: {e.stderr.strip()}") from e
        return cls(dest)

    def fetch(self, source: str) -> None:
        self.git("remote", "set-url", "origin", source, error=SyncError)
        self.git("fetch", "--quiet", "--prune", "--force", "origin", error=SyncError,
                 env=noninteractive_env())

    # -- queries

    def branches(self) -> List[str]:
        out = self.git("for-each-ref", "--format=%(refname:short)", "refs/heads/")
        return [b for b in out.splitlines() if b]

    def commits(self, branch: str) -> Dict[str, Commit]:
        out = self.git("log", "--pretty=format:" + LOG_FORMAT, f"refs/heads/{branch}", "--")
        return {c.id: c for c in parse_log(out)}

    def graph(self, branch: str) -> List[Tuple[str, Optional[str]]]:
        out = self.git("log", "--graph", "--format=%H", f"refs/heads/{branch}", "--")
        return [parse_graph_line(line) for line in out.splitlines()]

    def ls_tree(self, commit_id: str) -> List[TreeEntry]:
        return parse_ls_tree(self.git("ls-tree", "-r", "-z", commit_id, binary=True))

    def cat_blob(self, object_id: str) -> bytes:
        return self.git("cat-file", "blob", object_id, binary=True)

    def _diff(self, parent: str, commit_id: str, *flags: str) -> str:
        return self.git("diff", *flags, "--no-color", "--no-ext-diff", "--no-renames",
                        "--src-prefix=a/", "--dst-prefix=b/", parent, commit_id, "--")

    def diff(self, parent: str, commit_id: str) -> str:
        return self._diff(parent, commit_id, "-p")

    def diff_stat(self, parent: str, commit_id: str) -> List[DiffStat]:
        return parse_diff_stat(self._diff(parent, commit_id, "--raw", "--numstat", "-z"))


def is_remote_url(location: str) -> bool:
    """``scheme://...`` or scp-like ``user@host:path``."""
    if "://" in location:
        return True
    return bool(re.match(r"^[\w.-]+@[\w.-]+:", location))


def read_description(source: str) -> Optional[str]:
    """The repository's ``description`` file, unless it is git's placeholder."""
    if is_remote_url(source):
        return None
    base = pathlib.Path(source).expanduser()
    for candidate in (base / "description", base / ".git" / "description"):
        if candidate.is_file():
            text = candidate.read_text(encoding="utf-8", errors="replace").strip()
            if text and not text.startswith("Unnamed repository"):
                return text
    return None
