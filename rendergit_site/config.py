"""Run configuration: persisted JSON in the output directory, overridden by CLI flags."""

from __future__ import annotations

import dataclasses
import hashlib
import json
import pathlib
import re
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from .errors import ConfigError
from .git import is_remote_url
from .pages import write_atomic

CONFIG_FILE = ".rendergit-site.json"
PERSISTED_KEYS = ("project", "repository", "public_repository", "branches", "template")


@dataclasses.dataclass(frozen=True)
class SiteConfig:
    """Immutable settings for one run, built once in the CLI."""

    target: pathlib.Path
    repository: str
    project: str = ""
    public_repository: str = ""
    branches: Tuple[str, ...] = ()
    template: str = ""

    def to_json(self) -> Dict[str, Any]:
        return {
            "project": self.project,
            "repository": self.repository,
            "public_repository": self.public_repository,
            "branches": list(self.branches),
            "template": self.template,
        }


def generator_fingerprint() -> str:
    """SHA-1 over this package's source; any change to the generator changes it."""
    h = hashlib.sha1()
    for path in sorted(pathlib.Path(__file__).parent.glob("*.py")):
        h.update(path.name.encode("utf-8"))
        h.update(path.read_bytes())
    return h.hexdigest()


def parse_branches(value: Union[str, Sequence[str], None]) -> Tuple[str, ...]:
    """Accept ``"main dev"``, ``"main,dev"`` or a list; drop duplicates, sort."""
    if not value:
        return ()
    if isinstance(value, str):
        value = re.split(r"[\s,]+", value)
    return tuple(sorted({b.strip() for b in value if b and b.strip()}))


def default_project_name(repository: str) -> str:
    name = repository.rstrip("/").replace(":", "/").split("/")[-1]
    if name == ".git":
        name = repository.rstrip("/").split("/")[-2]
    if name.endswith(".git"):
        name = name[:-4]
    return name


def load_stored(target: pathlib.Path) -> Dict[str, Any]:
    path = pathlib.Path(target) / CONFIG_FILE
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a JSON object")
    return {k: v for k, v in data.items() if k in PERSISTED_KEYS}


def resolve(target: pathlib.Path, overrides: Optional[Mapping[str, Any]] = None) -> Tuple[SiteConfig, bool]:
    """Merge stored settings with ``overrides`` (``None`` values mean "not given").

    Returns the config and whether the generator changed since the stored run,
    in which case every rendered commit and object must be rebuilt.
    """
    target = pathlib.Path(target).absolute()
    stored = load_stored(target)
    merged: Dict[str, Any] = dict(stored)
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})

    repository = str(merged.get("repository") or "")
    if not repository:
        raise ConfigError("no source repository known; pass -r REPOSITORY")
    if not is_remote_url(repository):
        path = pathlib.Path(repository).expanduser()
        if not path.is_dir():
            raise ConfigError(f'Repository "{repository}" does not exist. Misconfiguration likely.')
        repository = str(path.resolve())

    template = generator_fingerprint()
    config = SiteConfig(
        target=target,
        repository=repository,
        project=str(merged.get("project") or default_project_name(repository)),
        public_repository=str(merged.get("public_repository") or ""),
        branches=parse_branches(merged.get("branches")),
        template=template,
    )
    return config, stored.get("template") != template


def save(config: SiteConfig) -> None:
    text = json.dumps(config.to_json(), indent=2, sort_keys=True) + "\n"
    write_atomic(config.target / CONFIG_FILE, text)
