"""
Centralized schemas for jj-manage.

This module holds the configuration models read from TOML layers and the
plain data records passed between discovery, selection and the refresh
pipeline.
"""

import asyncio
import getpass
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConfigError(ValueError):
    """Raised when the configuration cannot be parsed, validated or resolved."""


class RepositoryError(RuntimeError):
    """Raised when a repository cannot be cloned or resolved."""


# ============================================================================
# CONFIGURATION SCHEMAS
# ============================================================================

class CloneKind(str, Enum):
    """Transport used for the clone remote."""
    SSH = "ssh"
    HTTPS = "https"


class Forge(BaseModel):
    """A code-hosting service repositories are cloned from."""
    url: str = Field(description="Host name of the forge, e.g. 'github.com'")


class GetConfig(BaseModel):
    """Settings for the `get` command."""
    model_config = ConfigDict(populate_by_name=True)

    clone_kind: CloneKind = Field(
        default=CloneKind.SSH,
        alias="clone-kind",
        description="Default transport for clone remotes",
    )


def _default_forges() -> Dict[str, Forge]:
    return {
        "github": Forge(url="github.com"),
        "gitlab": Forge(url="gitlab.com"),
        "codeberg": Forge(url="codeberg.org"),
    }


class Config(BaseModel):
    """Effective jj-manage configuration after all layers are merged."""
    model_config = ConfigDict(populate_by_name=True)

    base: str = Field(default="repos", description="Root of the managed tree, relative to the home directory")
    user: str = Field(default_factory=getpass.getuser, description="User prepended to bare repository names")
    default_forge: str = Field(default="github", alias="default-forge", description="Forge used when none is given")
    colocate: bool = Field(default=True, description="Clone with a colocated git directory")
    get: GetConfig = Field(default_factory=GetConfig)
    forges: Dict[str, Forge] = Field(default_factory=_default_forges)

    def root(self) -> Path:
        """Absolute root directory under which repositories live."""
        try:
            home = Path.home()
        except RuntimeError as e:
            raise ConfigError(f"could not determine home dir: {e}")
        return home / self.base

    def forge(self, name: str) -> Forge:
        """Look up a forge by name."""
        try:
            return self.forges[name]
        except KeyError:
            raise ConfigError(f"unknown forge: {name}")


# ============================================================================
# REPOSITORY SCHEMAS
# ============================================================================

@dataclass(frozen=True)
class ManagedRepository:
    """A checkout living at root/forge/user/.../repo."""
    forge: str
    user: str
    repo: str
    path: Path

    @classmethod
    def from_path(cls, root: Path, path: Path) -> Optional["ManagedRepository"]:
        """Split a discovered path into forge, user and repository name.

        Returns None when the path is not under root or has fewer than three
        segments below it.
        """
        try:
            parts = Path(path).relative_to(root).parts
        except ValueError:
            return None
        if len(parts) < 3:
            return None
        return cls(forge=parts[0], user=parts[1], repo=parts[-1], path=Path(path))

    @property
    def name(self) -> str:
        return f"{self.forge}/{self.user}/{self.repo}"


@dataclass(frozen=True)
class SelectionCriteria:
    """Accepted values per dimension; an empty set accepts anything."""
    forges: FrozenSet[str] = frozenset()
    users: FrozenSet[str] = frozenset()
    repos: FrozenSet[str] = frozenset()

    @classmethod
    def build(
        cls,
        forges: Optional[Iterable[str]] = None,
        users: Optional[Iterable[str]] = None,
        repos: Optional[Iterable[str]] = None,
    ) -> "SelectionCriteria":
        return cls(
            forges=frozenset(forges or ()),
            users=frozenset(users or ()),
            repos=frozenset(repos or ()),
        )


# ============================================================================
# PIPELINE SCHEMAS
# ============================================================================

@dataclass
class FetchJob:
    """One spawned refresh process for one repository."""
    name: str
    process: asyncio.subprocess.Process


@dataclass
class JobResult:
    """Outcome of a finished job."""
    name: str
    returncode: Optional[int]
    lines: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class RefreshSummary:
    """Aggregate result of one `update` invocation."""
    selected: int = 0
    spawned: int = 0
    results: List[JobResult] = field(default_factory=list)

    @property
    def failed(self) -> List[JobResult]:
        return [r for r in self.results if not r.ok]
