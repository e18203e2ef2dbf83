"""Render a git repository's history as incrementally rebuilt static HTML pages."""

from .config import SiteConfig
from .errors import ConfigError, GitError, RenderError, SiteError, SyncError
from .site import SiteGenerator

__all__ = [
    "ConfigError",
    "GitError",
    "RenderError",
    "SiteConfig",
    "SiteError",
    "SiteGenerator",
    "SyncError",
]

__version__ = "0.1.0"
