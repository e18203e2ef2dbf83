"""
Diff rendering: a two-revision ``git diff -p`` becomes a line-numbered,
escaped, colorized ``<pre>`` with one anchor per file, and ``--numstat``
output becomes a table linking into it.
"""

from __future__ import annotations

import html
import re
from typing import List, Optional, Sequence, Tuple
from urllib.parse import quote

from pygments.lexer import RegexLexer
from pygments.token import STANDARD_TYPES, Generic, Text

from .git import DiffStat, unquote_c_path

DIFF_HEADER = "diff --git "
CR_MARK = "^M"
_QUOTED = re.compile(r'^"(?:[^"\\]|\\.)*"')
TokenType = type(Text)


class GitDiffLexer(RegexLexer):
    """Line classifier for ``git diff`` output.

    File header lines are only recognised between ``diff --git`` and the first
    hunk, so a removed line reading ``--- foo`` stays a deletion.
    """

    name = "Git diff"
    aliases: List[str] = []
    filenames: List[str] = []

    tokens = {
        "root": [
            (r"diff .*\n", Generic.Heading, "header"),
            (r".*\n", Text),
        ],
        "header": [
            (r"@@.*\n", Generic.Subheading, ("#pop", "hunk")),
            (r".*\n", Generic.Heading),
        ],
        "hunk": [
            (r"diff .*\n", Generic.Heading, ("#pop", "header")),
            (r"@@.*\n", Generic.Subheading),
            (r"\+.*\n", Generic.Inserted),
            (r"-.*\n", Generic.Deleted),
            (r".*\n", Text),
        ],
    }


def anchor_id(path: str) -> str:
    return f"diff-{path}"


def show_cr(text: str) -> str:
    return text.replace("\r", CR_MARK)


def diff_header_path(line: str) -> Optional[str]:
    """Path named by a ``diff --git a/<p> b/<p>`` line (renames are disabled, so both match)."""
    if not line.startswith(DIFF_HEADER):
        return None
    rest = line[len(DIFF_HEADER):]
    if rest.startswith('"'):
        m = _QUOTED.match(rest)
        if m is None:
            return None
        path = unquote_c_path(m.group(0))
        return path[2:] if path.startswith("a/") else None
    if rest.startswith("a/") and (len(rest) - 5) % 2 == 0:
        n = (len(rest) - 5) // 2
        path = rest[2:2 + n]
        if rest[2 + n:] == f" b/{path}":
            return path
    m = re.match(r"a/(.*) b/", rest)
    return m.group(1) if m else None


def classify_lines(text: str) -> List[Tuple[TokenType, str]]:
    """Split ``text`` into lines, each paired with its token type.

    Carriage returns are shown as ``^M`` so the lines are exactly git's.
    """
    if not text:
        return []
    lexer = GitDiffLexer(stripnl=False, ensurenl=True)
    # every lexer rule consumes exactly one line, newline included
    return [(ttype, value[:-1]) for ttype, value in lexer.get_tokens(show_cr(text))]


def render_diff(text: str) -> str:
    """Line-numbered HTML for a unified diff, numbered from 1."""
    if not text:
        return "<p><em>No changes.</em></p>"
    out: List[str] = []
    for n, (ttype, line) in enumerate(classify_lines(text), 1):
        escaped = html.escape(line, quote=False)
        css = STANDARD_TYPES.get(ttype, "")
        anchor = ""
        path = diff_header_path(line)
        if path is not None:
            anchor = f'<a id="{html.escape(anchor_id(path))}"></a>'
        body = f'<span class="{css}">{escaped}</span>' if css else escaped
        out.append(f'<span class="ln">{n:5d}:</span> {anchor}{body}')
    return '<div class="highlight"><pre>' + "\n".join(out) + "</pre></div>"


def render_stat_table(stats: Sequence[DiffStat], parent: str) -> str:
    """Table with one row per changed file, linking the renderings and the diff anchor."""
    diff_page = f"diff-to-{parent}.html"
    rows: List[str] = []
    insertions = deletions = 0
    for s in stats:
        q = quote(s.path)
        name = html.escape(s.path)
        new = name if s.status == "D" else f'<a href="{q}.raw.html">{name}</a>'
        old = "" if s.status == "A" else f' (<a href="../{parent}/{q}.raw.html">old</a>)'
        if s.binary:
            counts = "bin"
        else:
            insertions += s.added or 0
            deletions += s.removed or 0
            counts = f'<span class="plus">+{s.added}</span> <span class="minus">-{s.removed}</span>'
        link = f'<a href="{diff_page}#{quote(anchor_id(s.path))}">diff</a>'
        rows.append(f'<tr class="file"><td>{new}{old}</td><td>{counts}</td><td>({link})</td></tr>')
    summary = (f"{len(stats)} file{'s' if len(stats) != 1 else ''} changed, "
               f"{insertions} insertions(+), {deletions} deletions(-)")
    rows.append(f'<tr class="total"><td colspan="3">{summary}</td></tr>')
    return '<table class="stat">\n' + "\n".join(rows) + "\n</table>"
