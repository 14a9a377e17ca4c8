"""Tests for the runner process entry point."""

import asyncio
import os
import signal
from pathlib import Path

import pytest

from offcron import dispatch
from offcron.daemon import (
    DaemonOutcome,
    load_bootstrap,
    resolve_scheduler,
    run_daemon,
    validate_handoff,
)
from offcron.errors import InvalidFacadeError, InvalidHandoffError
from offcron.db.engine import Database
from offcron.scheduling import DaemonRunner, RunnerState, Scheduler
from tests.conftest import START


def _noop_loader(path: Path) -> None:
    pass


class TestValidateHandoff:
    def test_missing_payload(self):
        with pytest.raises(InvalidHandoffError):
            validate_handoff(None)

    def test_malformed_payload(self, bootstrap_file):
        with pytest.raises(InvalidHandoffError):
            validate_handoff({"bootstrap_path": str(bootstrap_file)})

    def test_unreadable_bootstrap(self, tmp_path):
        with pytest.raises(InvalidHandoffError):
            validate_handoff(
                {"bootstrap_path": str(tmp_path / "missing.py"), "dispatch_key": "k"}
            )

    def test_valid_mapping(self, bootstrap_file):
        payload = validate_handoff(
            {"bootstrap_path": str(bootstrap_file), "dispatch_key": "k"}
        )
        assert payload.bootstrap_file == bootstrap_file


class TestResolveScheduler:
    def test_wrong_type(self):
        dispatch.provide("k", object())
        with pytest.raises(InvalidFacadeError):
            resolve_scheduler("k")

    def test_missing(self):
        with pytest.raises(InvalidFacadeError):
            resolve_scheduler("k")

    def test_bootstrap_file_is_executed(self, tmp_path):
        path = tmp_path / "provide.py"
        path.write_text(
            "from offcron import dispatch\n"
            "dispatch.provide('from-bootstrap', 'not a scheduler')\n"
        )
        load_bootstrap(path)
        assert dispatch.resolve("from-bootstrap") == "not a scheduler"


class TestRunDaemon:
    async def test_completed_run(self, scheduler, hooks, handoff, clock):
        ran = []
        hooks.add("h1", lambda value: ran.append(value))
        await scheduler.schedule("h1", ["a"])
        dispatch.provide(handoff.dispatch_key, scheduler)
        await scheduler.runner.prepare()

        outcome = await run_daemon(handoff, bootstrap_loader=_noop_loader)

        assert outcome == DaemonOutcome.COMPLETED
        assert ran == ["a"]
        snapshot = await scheduler.status()
        assert snapshot.state == RunnerState.IDLE
        assert snapshot.last_run_at == START

    async def test_invalid_handoff(self):
        assert await run_daemon(None) == DaemonOutcome.INVALID_HANDOFF

    async def test_invalid_facade(self, handoff):
        outcome = await run_daemon(handoff, bootstrap_loader=_noop_loader)
        assert outcome == DaemonOutcome.INVALID_FACADE

    async def test_stale_invocation_runs_nothing(self, scheduler, hooks, handoff):
        ran = []
        hooks.add("h1", lambda: ran.append(1))
        await scheduler.schedule("h1")
        dispatch.provide(handoff.dispatch_key, scheduler)

        outcome = await run_daemon(handoff, bootstrap_loader=_noop_loader)

        assert outcome == DaemonOutcome.STALE_STATE
        assert ran == []
        assert await scheduler.runner.get_state() == RunnerState.IDLE

    async def test_job_output_is_discarded(
        self, scheduler, hooks, handoff, capsys
    ):
        hooks.add("noisy", lambda: print("should not appear"))
        await scheduler.schedule("noisy")
        dispatch.provide(handoff.dispatch_key, scheduler)
        await scheduler.runner.prepare()

        await run_daemon(handoff, bootstrap_loader=_noop_loader)

        assert "should not appear" not in capsys.readouterr().out

    async def test_cancellation_still_cleans_up(self, scheduler, hooks, handoff):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.Event().wait()

        hooks.add("hang", hang)
        await scheduler.schedule("hang")
        dispatch.provide(handoff.dispatch_key, scheduler)
        await scheduler.runner.prepare()

        task = asyncio.create_task(run_daemon(handoff, bootstrap_loader=_noop_loader))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        snapshot = await scheduler.status()
        assert snapshot.state == RunnerState.IDLE
        assert snapshot.last_run_at == START

    async def test_time_limit(self, database, hooks, handoff, clock):
        runner = DaemonRunner(
            database, "slow", max_run_time=1, run_interval=1, clock=clock
        )
        scheduler = Scheduler(database, runner=runner, hooks=hooks, clock=clock)

        async def slow():
            await asyncio.sleep(30)

        hooks.add("slow", slow)
        await scheduler.schedule("slow")
        dispatch.provide(handoff.dispatch_key, scheduler)
        await runner.prepare()

        outcome = await run_daemon(handoff, bootstrap_loader=_noop_loader)

        assert outcome == DaemonOutcome.TIMED_OUT
        assert await runner.get_state() == RunnerState.IDLE
        # The interrupted job was neither deleted nor rescheduled
        assert len(await scheduler.jobs()) == 1

    async def test_bootstrap_output_is_discarded(self, scheduler, handoff, capsys):
        def noisy_loader(path: Path) -> None:
            print("bootstrap chatter")
            dispatch.provide(handoff.dispatch_key, scheduler)

        await scheduler.runner.prepare()
        outcome = await run_daemon(handoff, bootstrap_loader=noisy_loader)

        assert outcome == DaemonOutcome.COMPLETED
        assert "bootstrap chatter" not in capsys.readouterr().out

    async def test_sigterm_cancels_and_cleans_up(self, scheduler, hooks, handoff):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.Event().wait()

        hooks.add("hang", hang)
        await scheduler.schedule("hang")
        dispatch.provide(handoff.dispatch_key, scheduler)
        await scheduler.runner.prepare()

        task = asyncio.create_task(
            run_daemon(
                handoff,
                bootstrap_loader=_noop_loader,
                install_signal_handlers=True,
            )
        )
        await started.wait()
        os.kill(os.getpid(), signal.SIGTERM)
        with pytest.raises(asyncio.CancelledError):
            await task

        snapshot = await scheduler.status()
        assert snapshot.state == RunnerState.IDLE
        assert snapshot.last_run_at == START
        # The interrupted job stays for the next run
        assert len(await scheduler.jobs()) == 1


class TestDatabaseLifetime:
    def _unopened_scheduler(self, tmp_path: Path, clock) -> Scheduler:
        database = Database(database_path=tmp_path / "bootstrapped.db")
        runner = DaemonRunner(database, "boot", clock=clock)
        return Scheduler(database, runner=runner, clock=clock)

    async def test_database_opened_by_the_run_is_closed(self, tmp_path, handoff, clock):
        built: list[Scheduler] = []

        def build() -> Scheduler:
            built.append(self._unopened_scheduler(tmp_path, clock))
            return built[-1]

        for _ in range(3):
            dispatch.provide_factory(handoff.dispatch_key, build)
            await run_daemon(handoff, bootstrap_loader=_noop_loader)

        assert len(built) == 3
        assert [s.database.connected for s in built] == [False, False, False]

    async def test_cleanup_is_written_before_close(self, tmp_path, handoff, clock):
        scheduler = self._unopened_scheduler(tmp_path, clock)
        dispatch.provide(handoff.dispatch_key, scheduler)

        outcome = await run_daemon(handoff, bootstrap_loader=_noop_loader)

        assert outcome == DaemonOutcome.STALE_STATE
        assert scheduler.database.connected is False
        await scheduler.setup()
        try:
            snapshot = await scheduler.status()
            assert snapshot.state == RunnerState.IDLE
            assert snapshot.last_run_at == START
        finally:
            await scheduler.close()

    async def test_database_opened_by_caller_stays_open(self, scheduler, handoff):
        dispatch.provide(handoff.dispatch_key, scheduler)
        await scheduler.runner.prepare()

        await run_daemon(handoff, bootstrap_loader=_noop_loader)

        assert scheduler.database.connected is True
