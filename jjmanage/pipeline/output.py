"""
Terminal output for refresh jobs.

Each job's stdout and stderr are drained concurrently, split into lines and
printed prefixed with the job's name. Before any job line is written, a
visible progress line is erased so the two never share a terminal line.
"""

import asyncio
import logging
import sys
from typing import Dict, List, Optional, TextIO

from jjmanage.pipeline.state import SupervisorState
from jjmanage.schemas import FetchJob, JobResult

logger = logging.getLogger(__name__)

READ_SIZE = 64 * 1024

ERASE_LINE = "\r\x1b[K"
DIM = "\x1b[2m"
RESET = "\x1b[0m"
DISABLE_LINE_WRAP = "\x1b[?7l"
ENABLE_LINE_WRAP = "\x1b[?7h"


class Terminal:
    """ANSI terminal writer shared by job handlers and the progress renderer."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def job_line(self, name: str, line: bytes) -> None:
        text = line.decode("utf-8", errors="replace")
        self.write(f"{DIM}{name}>{RESET} {text}\n")

    def erase_line(self) -> None:
        self.write(ERASE_LINE)

    def progress(self, text: str) -> None:
        self.write(f"\r{text}")

    def disable_wrap(self) -> None:
        self.write(DISABLE_LINE_WRAP)

    def enable_wrap(self) -> None:
        self.write(ENABLE_LINE_WRAP)


class LineBuffer:
    """Accumulates stream bytes and hands out complete lines.

    Empty lines are dropped. The unterminated tail is kept until more data
    arrives or flush() is called at end of stream.
    """

    def __init__(self):
        self._pending = bytearray()

    def __len__(self) -> int:
        return len(self._pending)

    @staticmethod
    def _clean(lines: List[bytes]) -> List[bytes]:
        cleaned = (line[:-1] if line.endswith(b"\r") else line for line in lines)
        return [line for line in cleaned if line]

    def feed(self, data: bytes) -> List[bytes]:
        self._pending.extend(data)
        end = self._pending.rfind(b"\n")
        if end < 0:
            return []

        complete = bytes(self._pending[:end])
        del self._pending[:end + 1]
        return self._clean(complete.split(b"\n"))

    def flush(self) -> List[bytes]:
        tail = bytes(self._pending)
        self._pending.clear()
        return self._clean([tail])


class OutputMultiplexer:
    """Drives one job: prints its output and waits for it to exit."""

    def __init__(self, job: FetchJob, state: SupervisorState, terminal: Terminal):
        self.job = job
        self.state = state
        self.terminal = terminal
        self.lines_shown = 0

    def _show(self, lines: List[bytes]) -> None:
        if not lines:
            return
        if self.state.take_progress_flag():
            self.terminal.erase_line()
        for line in lines:
            self.terminal.job_line(self.job.name, line)
        self.lines_shown += len(lines)

    async def run(self) -> JobResult:
        """
        Race stdout, stderr and process exit until all three are finished.

        Returns:
            JobResult with the process exit code
        """
        process = self.job.process
        streams: Dict[str, asyncio.StreamReader] = {}
        if process.stdout is not None:
            streams["stdout"] = process.stdout
        if process.stderr is not None:
            streams["stderr"] = process.stderr
        buffers = {key: LineBuffer() for key in streams}

        pending: Dict[asyncio.Future, str] = {
            asyncio.ensure_future(stream.read(READ_SIZE)): key
            for key, stream in streams.items()
        }
        pending[asyncio.ensure_future(process.wait())] = "exit"

        returncode: Optional[int] = None
        while pending:
            done, _ = await asyncio.wait(pending.keys(), return_when=asyncio.FIRST_COMPLETED)
            for future in done:
                key = pending.pop(future)
                if key == "exit":
                    returncode = future.result()
                    continue

                data = future.result()
                if not data:
                    continue
                self._show(buffers[key].feed(data))
                pending[asyncio.ensure_future(streams[key].read(READ_SIZE))] = key

        for buffer in buffers.values():
            self._show(buffer.flush())

        self.state.finish(self.job.name)

        if returncode == 0:
            logger.debug(f"{self.job.name} finished")
        else:
            if self.state.take_progress_flag():
                self.terminal.erase_line()
            logger.warning(f"{self.job.name} exited with status {returncode}")

        return JobResult(name=self.job.name, returncode=returncode, lines=self.lines_shown)
