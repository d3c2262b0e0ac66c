"""Spawning of refresh processes for selected repositories."""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from jjmanage.schemas import FetchJob, ManagedRepository

logger = logging.getLogger(__name__)

REFRESH_TOOL = "jj"
REFRESH_SUBCOMMAND = ("git", "fetch", "--color=always")

CommandFactory = Callable[[Path], Sequence[str]]


def refresh_command(path: Path) -> List[str]:
    """Command line that refreshes the repository at path."""
    return [REFRESH_TOOL, "-R", str(path), *REFRESH_SUBCOMMAND]


class JobSetBuilder:
    """Spawns one refresh process per repository.

    A repository whose process cannot be started is logged and left out;
    it never aborts the batch.
    """

    def __init__(self, command_factory: CommandFactory = refresh_command):
        self.command_factory = command_factory

    async def spawn(self, repo: ManagedRepository) -> Optional[FetchJob]:
        command = list(self.command_factory(repo.path))
        logger.debug(f"spawning {command}")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning(f"while spawning child for update of {repo.name}: {e}")
            return None

        return FetchJob(name=repo.name, process=process)

    async def build(self, repos: Iterable[ManagedRepository]) -> List[FetchJob]:
        """Spawn every job before any of them is supervised."""
        jobs = []
        for repo in repos:
            job = await self.spawn(repo)
            if job is not None:
                jobs.append(job)
        return jobs
