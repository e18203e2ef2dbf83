"""Exception hierarchy. Everything the generator raises on purpose is a SiteError."""

from __future__ import annotations


class SiteError(Exception):
    """Base class; ``cli.main`` turns these into a diagnostic and exit status 1."""


class ConfigError(SiteError):
    """A required setting is missing or invalid. Raised before any page is written."""


class GitError(SiteError):
    """A git subprocess failed."""


class SyncError(GitError):
    """Cloning or fetching the mirror failed."""


class RenderError(SiteError):
    """A page or cache entry could not be produced."""
