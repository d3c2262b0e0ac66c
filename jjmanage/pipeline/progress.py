"""Live progress line listing the jobs that are still running."""

import asyncio
import itertools

from jjmanage.pipeline.output import Terminal
from jjmanage.pipeline.state import SupervisorState

SPINNER = "/-\\|"
REFRESH_INTERVAL = 0.25
SEPARATOR = ", "


class ProgressRenderer:
    """Redraws one status line in place until the running set is empty."""

    def __init__(
        self,
        state: SupervisorState,
        terminal: Terminal,
        interval: float = REFRESH_INTERVAL,
    ):
        self.state = state
        self.terminal = terminal
        self.interval = interval
        self.frames_drawn = 0

    async def run(self) -> None:
        frames = itertools.cycle(SPINNER)
        self.terminal.disable_wrap()
        try:
            while True:
                frame = next(frames)

                def draw(names):
                    self.terminal.progress(f"{frame} updating: {SEPARATOR.join(names)}")

                if not self.state.draw_progress(draw):
                    break
                self.frames_drawn += 1
                await asyncio.sleep(self.interval)

            if self.state.take_progress_flag():
                self.terminal.erase_line()
        finally:
            self.terminal.enable_wrap()
