"""Discovery, selection and management of checkouts in the managed tree."""

from .locator import RepositoryLocator, locate_repositories
from .manager import RepositoryManager, ResolveTarget
from .selector import matches, select, select_paths

__all__ = [
    "RepositoryLocator",
    "locate_repositories",
    "RepositoryManager",
    "ResolveTarget",
    "matches",
    "select",
    "select_paths",
]
