"""Filtering of discovered repositories by forge, user and repository name."""

from pathlib import Path
from typing import Iterable, Iterator, List

from jjmanage.schemas import ManagedRepository, SelectionCriteria


def _accepts(values: frozenset, value: str) -> bool:
    return not values or value in values


def matches(criteria: SelectionCriteria, repo: ManagedRepository) -> bool:
    """Values within one dimension are ORed; the three dimensions are ANDed."""
    return (
        _accepts(criteria.forges, repo.forge)
        and _accepts(criteria.users, repo.user)
        and _accepts(criteria.repos, repo.repo)
    )


def select(criteria: SelectionCriteria, repos: Iterable[ManagedRepository]) -> Iterator[ManagedRepository]:
    return (r for r in repos if matches(criteria, r))


def select_paths(root: Path, paths: Iterable[Path], criteria: SelectionCriteria) -> List[ManagedRepository]:
    """Turn raw locator output into the sorted list of selected repositories.

    Paths too shallow to carry forge/user/repo are dropped.
    """
    repos = (ManagedRepository.from_path(root, p) for p in paths)
    selected = select(criteria, (r for r in repos if r is not None))
    return sorted(selected, key=lambda r: r.name)
