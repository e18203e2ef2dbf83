"""Command line entry point: ``rendergit-site TARGET``."""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from . import config as site_config
from .errors import SiteError
from .pages import Progress
from .site import SiteGenerator


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="rendergit-site",
        description="Generate static HTML pages in TARGET for a git repository.",
    )
    ap.add_argument("target", help="Output directory (created if missing)")
    ap.add_argument("-p", "--project", help="Project's name")
    ap.add_argument("-r", "--repository", help="Repository to clone from (required on the first run)")
    ap.add_argument("-l", "--public-repository", help="Public repository link, e.g. 'http://host.org/project.git'")
    ap.add_argument("-b", "--branches", help="Branches to process, separated by spaces or commas (default: all)")
    ap.add_argument("-q", "--quiet", action="store_true", help="Be quiet")
    ap.add_argument("-f", "--force", action="store_true", help="Force rebuilding of all pages")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    progress = Progress(quiet=args.quiet)

    overrides = {
        "project": args.project,
        "repository": args.repository,
        "public_repository": args.public_repository,
        "branches": args.branches,
    }
    try:
        config, template_changed = site_config.resolve(args.target, overrides)
        if template_changed and not args.force and (config.target / site_config.CONFIG_FILE).exists():
            progress("🧩 Rebuilding all pages as output template changed.")
        SiteGenerator(config, rebuild=args.force or template_changed, progress=progress).run()
    except SiteError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
