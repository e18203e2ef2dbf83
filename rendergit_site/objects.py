"""
Content-addressed object store.

Entries live at ``<root>/<hash[:2]>/<hash>``, are written once and never
modified afterwards. Commit directories reference them through hard links
so the disk cost follows the number of distinct blobs, not the number of
commits they appear in.
"""

from __future__ import annotations

import contextlib
import fcntl
import os
import pathlib
import re
import tempfile
from typing import Callable, Iterator, List, Union

from .errors import RenderError

Body = Union[str, bytes]

_HASH = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")


class ObjectStore:
    def __init__(self, root: pathlib.Path) -> None:
        self.root = pathlib.Path(root)

    def path_for(self, content_hash: str) -> pathlib.Path:
        if not _HASH.match(content_hash):
            raise ValueError(f"not a content hash: {content_hash!r}")
        return self.root / content_hash[:2] / content_hash

    @property
    def lock_path(self) -> pathlib.Path:
        # beside the store, so the store holds nothing but entries
        return self.root.with_name(f".{self.root.name}.lock")

    def __contains__(self, content_hash: str) -> bool:
        return self.path_for(content_hash).is_file()

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        # flock conflicts between separate open() calls, so this serializes
        # threads of this process as well as other processes.
        self.root.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a") as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)

    def get_or_render(self, content_hash: str, render: Callable[[], Body]) -> pathlib.Path:
        """Return the entry for ``content_hash``, calling ``render`` only if it is missing."""
        path = self.path_for(content_hash)
        if path.is_file():
            return path
        try:
            with self._locked():
                if path.is_file():
                    return path
                body = render()
                if isinstance(body, str):
                    body = body.encode("utf-8")
                self._publish(path, body)
        except OSError as e:
            raise RenderError(f"cannot store object {content_hash} in {self.root}: {e}") from e
        return path

    def _publish(self, path: pathlib.Path, body: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(body)
            os.chmod(tmp, 0o644)
            os.replace(tmp, path)
        except BaseException:
            pathlib.Path(tmp).unlink(missing_ok=True)
            raise

    def attach(self, content_hash: str, render: Callable[[], Body], dest: pathlib.Path) -> pathlib.Path:
        """Hard-link the entry for ``content_hash`` at ``dest``."""
        src = self.get_or_render(content_hash, render)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            os.link(src, dest)
        except OSError as e:
            raise RenderError(f"cannot link {dest} to object {content_hash}: {e}") from e
        return src

    def entries(self) -> List[str]:
        """Hashes of all stored entries, sorted."""
        if not self.root.is_dir():
            return []
        return sorted(
            p.name
            for shard in self.root.iterdir() if shard.is_dir() and len(shard.name) == 2
            for p in shard.iterdir() if not p.name.startswith(".")
        )
