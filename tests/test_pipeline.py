import asyncio
import io
import logging
import sys

import pytest

from jjmanage.pipeline import (
    JobSetBuilder,
    OutputMultiplexer,
    ProcessSupervisor,
    ProgressRenderer,
    RefreshPipeline,
    SupervisorState,
    Terminal,
    refresh_command,
)
from jjmanage.pipeline.output import DIM, DISABLE_LINE_WRAP, ENABLE_LINE_WRAP, ERASE_LINE, RESET
from jjmanage.schemas import ManagedRepository, SelectionCriteria

from conftest import python_command

INTERVAL = 0.05


def _repo(tmp_path, name="x", user="alice", forge="github"):
    return ManagedRepository(forge=forge, user=user, repo=name, path=tmp_path)


def _tag(name):
    return f"{DIM}{name}>{RESET} "


async def _spawn(tmp_path, script, name="x"):
    job = await JobSetBuilder(python_command(script)).spawn(_repo(tmp_path, name=name))
    assert job is not None
    return job


def test_refresh_command_runs_jj_fetch_in_repository(tmp_path):
    assert refresh_command(tmp_path) == ["jj", "-R", str(tmp_path), "git", "fetch", "--color=always"]


@pytest.mark.asyncio
async def test_unterminated_tail_is_flushed_at_exit(tmp_path):
    job = await _spawn(tmp_path, "import sys; sys.stdout.write('a\\nb\\nc')")
    out = io.StringIO()
    state = SupervisorState([job.name])

    result = await OutputMultiplexer(job, state, Terminal(out)).run()

    tag = _tag("github/alice/x")
    assert out.getvalue() == f"{tag}a\n{tag}b\n{tag}c\n"
    assert result.returncode == 0
    assert result.lines == 3
    assert state.running() == []


async def _wait_for_output(out, count, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while out.getvalue().count("\n") < count:
        assert asyncio.get_running_loop().time() < deadline, out.getvalue()
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_complete_lines_are_shown_while_the_job_runs(tmp_path):
    script = (
        "import sys, time\n"
        "sys.stdout.write('a\\nb\\n'); sys.stdout.flush()\n"
        "time.sleep(0.5)\n"
        "sys.stdout.write('c')"
    )
    job = await _spawn(tmp_path, script)
    out = io.StringIO()
    task = asyncio.create_task(OutputMultiplexer(job, SupervisorState([job.name]), Terminal(out)).run())

    await _wait_for_output(out, 2)

    tag = _tag("github/alice/x")
    assert job.process.returncode is None
    assert out.getvalue() == f"{tag}a\n{tag}b\n"

    await task

    assert out.getvalue() == f"{tag}a\n{tag}b\n{tag}c\n"


@pytest.mark.asyncio
async def test_stderr_lines_are_tagged(tmp_path):
    job = await _spawn(tmp_path, "import sys; sys.stderr.write('warning: remote gone\\n')")
    out = io.StringIO()

    await OutputMultiplexer(job, SupervisorState([job.name]), Terminal(out)).run()

    assert out.getvalue() == f"{_tag('github/alice/x')}warning: remote gone\n"


@pytest.mark.asyncio
async def test_lines_of_one_stream_keep_their_order(tmp_path):
    script = "import sys\nfor i in range(200):\n    sys.stdout.write(f'line {i}\\n'); sys.stdout.flush()"
    job = await _spawn(tmp_path, script)
    out = io.StringIO()

    await OutputMultiplexer(job, SupervisorState([job.name]), Terminal(out)).run()

    tag = _tag("github/alice/x")
    assert out.getvalue().splitlines() == [f"{tag}line {i}" for i in range(200)]


@pytest.mark.asyncio
async def test_invalid_utf8_is_replaced(tmp_path):
    job = await _spawn(tmp_path, "import sys; sys.stdout.buffer.write(b'bad \\xff byte\\n')")
    out = io.StringIO()

    await OutputMultiplexer(job, SupervisorState([job.name]), Terminal(out)).run()

    assert "bad � byte" in out.getvalue()


@pytest.mark.asyncio
async def test_visible_progress_line_is_erased_before_job_output(tmp_path):
    job = await _spawn(tmp_path, "print('fetched')")
    out = io.StringIO()
    state = SupervisorState([job.name])
    state.draw_progress(lambda names: None)

    await OutputMultiplexer(job, state, Terminal(out)).run()

    assert out.getvalue() == f"{ERASE_LINE}{_tag('github/alice/x')}fetched\n"
    assert state.take_progress_flag() is False


@pytest.mark.asyncio
async def test_nonzero_exit_is_logged_not_raised(tmp_path, caplog):
    job = await _spawn(tmp_path, "import sys; sys.exit(3)")
    state = SupervisorState([job.name])

    with caplog.at_level(logging.WARNING):
        result = await OutputMultiplexer(job, state, Terminal(io.StringIO())).run()

    assert result.returncode == 3
    assert not result.ok
    assert "github/alice/x exited with status 3" in caplog.text
    assert state.running() == []


@pytest.mark.asyncio
async def test_spawn_failure_is_dropped_with_warning(tmp_path, caplog):
    def command(path):
        if path.name == "broken":
            return [str(tmp_path / "no-such-tool")]
        return [sys.executable, "-c", "pass"]

    good = tmp_path / "good"
    broken = tmp_path / "broken"
    good.mkdir()
    broken.mkdir()
    repos = [
        ManagedRepository(forge="github", user="alice", repo="broken", path=broken),
        ManagedRepository(forge="github", user="alice", repo="good", path=good),
    ]

    with caplog.at_level(logging.WARNING):
        jobs = await JobSetBuilder(command).build(repos)

    assert [job.name for job in jobs] == ["github/alice/good"]
    assert "github/alice/broken" in caplog.text

    supervisor = ProcessSupervisor(jobs, Terminal(io.StringIO()), refresh_interval=INTERVAL)
    assert supervisor.state.running() == ["github/alice/good"]

    results = await supervisor.run()
    assert [(r.name, r.returncode) for r in results] == [("github/alice/good", 0)]


@pytest.mark.asyncio
async def test_supervisor_waits_for_all_jobs_and_the_renderer(tmp_path):
    fast = await _spawn(tmp_path, "import time; print('fast'); time.sleep(0.1)", name="fast")
    slow = await _spawn(tmp_path, "import time; time.sleep(0.4); print('slow')", name="slow")
    out = io.StringIO()
    supervisor = ProcessSupervisor([fast, slow], Terminal(out), refresh_interval=INTERVAL)

    results = await supervisor.run()

    assert [r.name for r in results] == ["github/alice/fast", "github/alice/slow"]
    assert all(r.ok for r in results)
    assert supervisor.state.running() == []

    text = out.getvalue()
    assert text.startswith(DISABLE_LINE_WRAP)
    assert text.endswith(ENABLE_LINE_WRAP)
    assert "updating: github/alice/fast, github/alice/slow" in text
    assert f"{_tag('github/alice/slow')}slow\n" in text


def test_shared_name_stays_running_until_every_job_finishes():
    state = SupervisorState(["gitlab/g/x", "gitlab/g/x", "github/a/y"])

    assert state.running() == ["github/a/y", "gitlab/g/x"]
    assert state.finish("gitlab/g/x") is True
    assert state.running() == ["github/a/y", "gitlab/g/x"]
    assert state.finish("gitlab/g/x") is True
    assert state.running() == ["github/a/y"]
    assert state.finish("gitlab/g/x") is False


@pytest.mark.asyncio
async def test_jobs_with_the_same_name_keep_the_renderer_alive(tmp_path):
    first = tmp_path / "a" / "x"
    second = tmp_path / "b" / "x"
    first.mkdir(parents=True)
    second.mkdir(parents=True)

    def command(path):
        delay = 0.6 if path == second else 0
        return [sys.executable, "-c", f"import time; time.sleep({delay})"]

    builder = JobSetBuilder(command)
    jobs = [
        await builder.spawn(ManagedRepository(forge="gitlab", user="g", repo="x", path=first)),
        await builder.spawn(ManagedRepository(forge="gitlab", user="g", repo="x", path=second)),
    ]
    out = io.StringIO()
    supervisor = ProcessSupervisor(jobs, Terminal(out), refresh_interval=INTERVAL)
    task = asyncio.create_task(supervisor.run())

    await asyncio.sleep(0.3)

    assert jobs[1].process.returncode is None
    assert supervisor.state.running() == ["gitlab/g/x"]
    assert not task.done()
    assert not out.getvalue().endswith(ENABLE_LINE_WRAP)

    results = await task

    assert [r.returncode for r in results] == [0, 0]
    assert supervisor.state.running() == []
    assert out.getvalue().endswith(ENABLE_LINE_WRAP)


@pytest.mark.asyncio
async def test_progress_line_lists_running_jobs_sorted():
    out = io.StringIO()
    state = SupervisorState(["gitlab/b/z", "github/a/x"])
    renderer = ProgressRenderer(state, Terminal(out), interval=INTERVAL)
    task = asyncio.create_task(renderer.run())

    await asyncio.sleep(INTERVAL / 2)
    assert out.getvalue() == f"{DISABLE_LINE_WRAP}\r/ updating: github/a/x, gitlab/b/z"

    state.finish("github/a/x")
    state.finish("gitlab/b/z")
    await asyncio.wait_for(task, timeout=INTERVAL * 4)


@pytest.mark.asyncio
async def test_renderer_stops_within_one_interval_after_last_job():
    out = io.StringIO()
    state = SupervisorState(["github/a/x", "github/a/y"])
    renderer = ProgressRenderer(state, Terminal(out), interval=INTERVAL)
    task = asyncio.create_task(renderer.run())

    await asyncio.sleep(INTERVAL * 2)
    state.finish("github/a/x")
    await asyncio.sleep(INTERVAL * 2)
    assert not task.done()

    state.finish("github/a/y")
    await asyncio.wait_for(task, timeout=INTERVAL * 2)

    text = out.getvalue()
    assert renderer.frames_drawn >= 3
    assert text.endswith(ERASE_LINE + ENABLE_LINE_WRAP)
    assert text.count(ENABLE_LINE_WRAP) == 1


@pytest.mark.asyncio
async def test_renderer_restores_line_wrap_when_cancelled():
    out = io.StringIO()
    renderer = ProgressRenderer(SupervisorState(["github/a/x"]), Terminal(out), interval=INTERVAL)
    task = asyncio.create_task(renderer.run())

    await asyncio.sleep(INTERVAL / 2)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert out.getvalue().endswith(ENABLE_LINE_WRAP)


@pytest.mark.asyncio
async def test_pipeline_refreshes_selected_repositories(repo_tree):
    out = io.StringIO()
    pipeline = RefreshPipeline(
        repo_tree,
        SelectionCriteria.build(forges=["github"]),
        command_factory=python_command("print('Nothing changed.')"),
        terminal=Terminal(out),
        refresh_interval=INTERVAL,
    )

    summary = await pipeline.run()

    assert summary.selected == 2
    assert summary.spawned == 2
    assert sorted(r.name for r in summary.results) == ["github/alice/x", "github/bob/y"]
    assert summary.failed == []
    assert "gitlab/alice/z" not in out.getvalue()
    assert f"{_tag('github/bob/y')}Nothing changed.\n" in out.getvalue()


@pytest.mark.asyncio
async def test_pipeline_with_no_startable_jobs_completes_empty(repo_tree, tmp_path, caplog):
    pipeline = RefreshPipeline(
        repo_tree,
        command_factory=lambda path: [str(tmp_path / "missing-jj")],
        terminal=Terminal(io.StringIO()),
    )

    with caplog.at_level(logging.WARNING):
        summary = await pipeline.run()

    assert summary.selected == 3
    assert summary.spawned == 0
    assert summary.results == []
    assert "no refresh process could be started" in caplog.text
