"""
Nested file listing for a commit page.

Paths are sorted so that, inside every directory, files come before
sub-directories; a single pass with a stack of open directories then emits
each directory exactly once.
"""

from __future__ import annotations

import html
from typing import List, Sequence, Tuple, Union
from urllib.parse import quote

from .git import TreeEntry

MODE_NOTES = {
    "100755": "executable",
    "120000": "symlink",
}


def tree_sort_key(path: str) -> Tuple[Tuple[int, str], ...]:
    # Directory components rank 1, the file component 0.
    *dirs, name = path.split("/")
    return tuple((1, d) for d in dirs) + ((0, name),)


def _spaces(depth: int) -> str:
    return "  " * depth


def _leaf(entry: TreeEntry, name: str) -> str:
    anchor = html.escape(f"files:{entry.path}")
    if entry.is_submodule:
        return (f'<li><a id="{anchor}">{html.escape(name)}</a> '
                f'<span class="meta">submodule @ {html.escape(entry.object_id[:8])}</span></li>')
    href = quote(entry.path)
    note = MODE_NOTES.get(entry.mode)
    note_html = f' <span class="meta">{note}</span>' if note else ""
    return (f'<li><a id="{anchor}" href="{href}.raw.html">{html.escape(name)}</a>'
            f' (<a href="{href}">raw</a>){note_html}</li>')


def render_tree(entries: Sequence[Union[TreeEntry, str]]) -> str:
    """Render ``entries`` (tree entries or bare paths) as nested ``<li>``/``<ul>`` markup.

    The result is the content of a ``<ul>``; an empty input gives ``""``.
    """
    items = [e if isinstance(e, TreeEntry) else TreeEntry("100644", "blob", "", e) for e in entries]
    items.sort(key=lambda e: tree_sort_key(e.path))

    out: List[str] = []
    open_dirs: List[str] = []
    for entry in items:
        *dirs, name = entry.path.split("/")

        common = 0
        while common < min(len(dirs), len(open_dirs)) and dirs[common] == open_dirs[common]:
            common += 1

        while len(open_dirs) > common:
            out.append(f"{_spaces(len(open_dirs))}</ul></li> <!-- {html.escape(open_dirs[-1])} -->")
            open_dirs.pop()

        for d in dirs[common:]:
            open_dirs.append(d)
            anchor = html.escape("files:" + "/".join(open_dirs))
            out.append(f'{_spaces(len(open_dirs))}<li><a id="{anchor}">{html.escape(d)}</a>')
            out.append(f"{_spaces(len(open_dirs))}<ul>")

        out.append(_spaces(len(open_dirs) + 1) + _leaf(entry, name))

    while open_dirs:
        out.append(f"{_spaces(len(open_dirs))}</ul></li> <!-- {html.escape(open_dirs[-1])} -->")
        open_dirs.pop()

    return "\n".join(out)
