"""
Pipeline runner that orchestrates a bulk repository refresh.

This module coordinates:
1. Repository discovery under the managed root
2. Selection by forge, user and repository name
3. Spawning one refresh process per selected repository
4. Supervising all processes alongside the progress line
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from jjmanage.pipeline.jobs import CommandFactory, JobSetBuilder, refresh_command
from jjmanage.pipeline.output import OutputMultiplexer, Terminal
from jjmanage.pipeline.progress import REFRESH_INTERVAL, ProgressRenderer
from jjmanage.pipeline.state import SupervisorState
from jjmanage.repository.locator import RepositoryLocator
from jjmanage.repository.selector import select_paths
from jjmanage.schemas import FetchJob, JobResult, ManagedRepository, RefreshSummary, SelectionCriteria

logger = logging.getLogger(__name__)


class ProcessSupervisor:
    """Owns a set of running jobs and drives them to completion."""

    def __init__(
        self,
        jobs: List[FetchJob],
        terminal: Optional[Terminal] = None,
        refresh_interval: float = REFRESH_INTERVAL,
    ):
        self.jobs = jobs
        self.terminal = terminal or Terminal()
        self.refresh_interval = refresh_interval
        self.state = SupervisorState(job.name for job in jobs)

    async def run(self) -> List[JobResult]:
        """
        Run every job handler plus the progress renderer concurrently.

        Returns only once all handlers and the renderer have finished.

        Returns:
            One JobResult per job, in job order
        """
        handlers = [
            OutputMultiplexer(job, self.state, self.terminal).run()
            for job in self.jobs
        ]
        renderer = ProgressRenderer(self.state, self.terminal, self.refresh_interval)

        *results, _ = await asyncio.gather(*handlers, renderer.run())
        return results


class RefreshPipeline:
    """Refreshes every selected repository under a root."""

    def __init__(
        self,
        root: Path,
        criteria: Optional[SelectionCriteria] = None,
        command_factory: CommandFactory = refresh_command,
        terminal: Optional[Terminal] = None,
        refresh_interval: float = REFRESH_INTERVAL,
    ):
        """
        Initialize the refresh pipeline.

        Args:
            root: Root of the managed tree
            criteria: Forge/user/repo filters (default: everything)
            command_factory: Builds the refresh command line for a repository path
            terminal: Output target (default: stdout)
            refresh_interval: Seconds between progress redraws
        """
        self.root = Path(root)
        self.criteria = criteria or SelectionCriteria()
        self.command_factory = command_factory
        self.terminal = terminal or Terminal()
        self.refresh_interval = refresh_interval

    def discover(self) -> List[ManagedRepository]:
        """Locate repositories and keep the ones matching the criteria."""
        paths = RepositoryLocator(self.root).iter_repositories()
        selected = select_paths(self.root, paths, self.criteria)
        logger.debug(f"selected {len(selected)} repositories under {self.root}")
        return selected

    async def run(self) -> RefreshSummary:
        """
        Run the complete refresh.

        Returns:
            RefreshSummary with one JobResult per spawned job
        """
        start = datetime.now()
        summary = RefreshSummary()

        repos = self.discover()
        summary.selected = len(repos)
        if not repos:
            return summary

        jobs = await JobSetBuilder(self.command_factory).build(repos)
        summary.spawned = len(jobs)
        if not jobs:
            logger.warning("no refresh process could be started")
            return summary

        supervisor = ProcessSupervisor(jobs, self.terminal, self.refresh_interval)
        summary.results = await supervisor.run()

        duration = (datetime.now() - start).total_seconds()
        logger.debug(f"refreshed {len(jobs)} repositories in {duration:.1f}s")
        return summary
