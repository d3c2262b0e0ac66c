"""Repository management for cloning, listing and resolving managed checkouts."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from jjmanage.schemas import CloneKind, Config, RepositoryError
from jjmanage.repository.locator import RepositoryLocator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolveTarget:
    """A name given to `resolve`: either `name` or `name/repo`."""
    repo: str
    name: Optional[str] = None

    @classmethod
    def parse(cls, target: str) -> "ResolveTarget":
        if "/" in target:
            name, repo = target.rsplit("/", 1)
            return cls(repo=repo, name=name)
        return cls(repo=target)

    def matches(self, relative: Path) -> bool:
        """Check a repository path given relative to the root."""
        parts = relative.parts
        if not parts:
            return False
        repo_name, parents = parts[-1], parts[:-1]

        if self.name is None:
            return self.repo == repo_name or self.repo in parents

        if self.repo != repo_name or not parents:
            return False
        return self.name == Path(*parents).as_posix() or self.name in parents


class RepositoryManager:
    """Manages checkouts laid out as root/forge/user/repo."""

    def __init__(self, config: Config, root: Optional[Path] = None):
        """Initialize repository manager.

        Args:
            config: Effective configuration
            root: Override for the managed root (default: config.root())
        """
        self.config = config
        self.root = Path(root) if root else config.root()

    def list_repositories(self) -> List[Path]:
        """Return every managed repository path, sorted."""
        return sorted(RepositoryLocator(self.root).locate())

    # ------------------------------------------------------------------
    # get
    # ------------------------------------------------------------------

    def repo_path(self, repo: str) -> str:
        """Qualify a bare repository name with the configured user."""
        if "/" in repo:
            return repo
        return f"{self.config.user}/{repo}"

    def remote_url(
        self,
        forge_url: str,
        repo_path: str,
        https: bool = False,
        ssh: bool = False,
    ) -> str:
        """Build the clone remote; explicit flags override get.clone-kind."""
        if https and ssh:
            raise RepositoryError("--https and --ssh are mutually exclusive")

        if https:
            kind = CloneKind.HTTPS
        elif ssh:
            kind = CloneKind.SSH
        else:
            kind = self.config.get.clone_kind

        if kind == CloneKind.HTTPS:
            return f"{forge_url}/{repo_path}"
        return f"git@{forge_url}:{repo_path}"

    def clone_repository(
        self,
        repo: str,
        forge: Optional[str] = None,
        https: bool = False,
        ssh: bool = False,
    ) -> Path:
        """Clone a repository into root/forge/user/repo.

        Args:
            repo: `user/repo`, or a bare repository name owned by the configured user
            forge: Forge name (default: config default-forge)
            https: Force an https remote
            ssh: Force an ssh remote

        Returns:
            Path of the new checkout

        Raises:
            ConfigError: If the forge is unknown
            RepositoryError: If the target exists or the clone fails
        """
        forge_name = forge or self.config.default_forge
        forge_info = self.config.forge(forge_name)

        repo_path = self.repo_path(repo)
        remote = self.remote_url(forge_info.url, repo_path, https=https, ssh=ssh)
        target = self.root / forge_name / repo_path

        logger.info(f"cloning {remote} into {target}")

        if target.exists():
            raise RepositoryError(f"path already exists: {target}")

        command = ["jj", "git", "clone", remote, str(target)]
        if self.config.colocate:
            command.append("--colocate")

        try:
            result = subprocess.run(command)
        except OSError as e:
            raise RepositoryError(f"Failed to run {command[0]}: {e}")

        logger.debug(f"{' '.join(command)} exited with {result.returncode}")
        if result.returncode != 0:
            raise RepositoryError("clone did not exit successfully")

        return target

    # ------------------------------------------------------------------
    # resolve
    # ------------------------------------------------------------------

    def resolve(self, target: str, long: bool = False) -> Path:
        """Find the single repository matching a name.

        Args:
            target: `repo`, or `name/repo` where name is the parent path or one of its segments
            long: Return the absolute path instead of one relative to the root

        Raises:
            RepositoryError: If nothing or more than one repository matches
        """
        parsed = ResolveTarget.parse(target)

        matched = []
        for path in self.list_repositories():
            try:
                relative = path.relative_to(self.root)
            except ValueError:
                continue
            if parsed.matches(relative):
                matched.append(path if long else relative)

        if not matched:
            raise RepositoryError("No repositories matched")

        if len(matched) > 1:
            listing = "".join(f"\n   {p}" for p in matched)
            raise RepositoryError(f"Multiple repositories matched:{listing}")

        return matched[0]
