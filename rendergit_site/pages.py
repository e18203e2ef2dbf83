"""Page chrome, date formatting and small file helpers shared by the renderers."""

from __future__ import annotations

import dataclasses
import datetime
import html
import os
import pathlib
import sys
import tempfile

from pygments.formatters import HtmlFormatter

GENERATOR_NAME = "rendergit-site"

_CSS = """
  body {{ font-family: -apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Helvetica,Arial; margin: 1rem; line-height: 1.4; }}
  code, pre {{ font-family: ui-monospace,SFMono-Regular,Menlo,Monaco,Consolas,'Liberation Mono','Courier New', monospace; }}
  a {{ color: #0366d6; text-decoration: none; }}
  a:hover {{ text-decoration: underline; }}
  .meta {{ color: #666; }}
  table.log td {{ padding: 0 .5rem; vertical-align: middle; }}
  table.log pre {{ margin: 0; }}
  table.stat td {{ padding: 0 .4rem; }}
  table.stat .plus {{ color: #0a7b34; }}
  table.stat .minus {{ color: #a01515; }}
  ul.files {{ list-style: none; }}
  .highlight pre {{ background: #f6f8fa; padding: .75rem; overflow: auto; }}
  .ln {{ color: #999; user-select: none; }}

  /* Pygments */
  {pygments_css}
"""


def stylesheet() -> str:
    return _CSS.format(pygments_css=HtmlFormatter().get_style_defs(".highlight"))


def page(project: str, title: str, body: str, root: str | None = None) -> str:
    """Wrap ``body`` in the common header and footer.

    ``root`` is the relative path back to the site's top directory; pages
    whose depth is not fixed (shared object renderings) pass ``None`` and get
    no link home.
    """
    full_title = f"{project}: {title}" if project and title else (project or title)
    heading = html.escape(project)
    if root is not None:
        heading = f'<a href="{root}index.html">{heading}</a>'
    if title:
        heading += f": {html.escape(title)}" if project else html.escape(title)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<title>{html.escape(full_title)}</title>
<style>{stylesheet()}</style>
</head>
<body>
<h1>{heading}</h1>
{body}
<hr>
<small>Generated by {GENERATOR_NAME}.</small>
</body>
</html>
"""


def format_date(timestamp: int) -> str:
    dt = datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)
    return dt.strftime("%a %b %d %H:%M:%S UTC %Y")


def write_atomic(path: pathlib.Path, data: str | bytes) -> None:
    """Replace ``path`` so readers see either the old or the new content."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp, path)
    except BaseException:
        pathlib.Path(tmp).unlink(missing_ok=True)
        raise


def relative_root(name: str) -> str:
    """Path from a page under ``branches/`` named ``name`` back to the top."""
    return "../" * (name.count("/") + 1)


@dataclasses.dataclass
class Progress:
    """Progress lines on stderr; silent when ``quiet``."""

    quiet: bool = False

    def __call__(self, msg: str) -> None:
        if not self.quiet:
            print(msg, file=sys.stderr)
