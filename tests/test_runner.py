"""Tests for the runner state machine."""

import pytest

from offcron.errors import StaleStateError
from offcron.scheduling import DaemonRunner, RunnerState
from tests.conftest import START


class TestState:
    async def test_fresh_instance_is_idle(self, runner):
        snapshot = await runner.snapshot()
        assert snapshot.state == RunnerState.IDLE
        assert snapshot.last_run_at is None

    async def test_states_are_ordered(self):
        assert RunnerState.IDLE < RunnerState.PREPARING < RunnerState.RUNNING

    async def test_instances_are_independent(self, database, runner, clock):
        other = DaemonRunner(database, "other", clock=clock)
        await runner.prepare()
        assert await other.get_state() == RunnerState.IDLE

    async def test_set_last_run_time(self, runner, clock):
        await runner.set_last_run_time()
        assert await runner.get_last_run_time() == START


class TestTransitions:
    async def test_prepare_from_idle(self, runner):
        assert await runner.prepare() is True
        assert await runner.get_state() == RunnerState.PREPARING

    async def test_prepare_when_busy(self, runner):
        await runner.prepare()
        assert await runner.prepare() is False

    async def test_begin_from_idle_is_stale(self, runner):
        with pytest.raises(StaleStateError):
            await runner.begin()
        assert await runner.get_state() == RunnerState.IDLE

    async def test_begin_from_preparing(self, runner):
        await runner.prepare()
        await runner.begin()
        assert await runner.get_state() == RunnerState.RUNNING

    async def test_finish_stamps_last_run(self, runner, clock):
        await runner.prepare()
        await runner.begin()
        clock.advance(5)
        await runner.finish()

        snapshot = await runner.snapshot()
        assert snapshot.state == RunnerState.IDLE
        assert snapshot.last_run_at == clock.now

    async def test_reset_keeps_last_run(self, runner, clock):
        await runner.finish()
        await runner.prepare()
        clock.advance(10)
        await runner.reset()

        snapshot = await runner.snapshot()
        assert snapshot.state == RunnerState.IDLE
        assert snapshot.last_run_at == START


class TestShouldTrigger:
    async def test_never_run(self, runner, clock):
        assert await runner.should_trigger(clock.now) is True

    async def test_within_interval(self, runner, clock):
        await runner.finish()
        assert await runner.should_trigger(clock.advance(30)) is False

    async def test_interval_elapsed(self, runner, clock):
        await runner.finish()
        assert await runner.should_trigger(clock.advance(60)) is True

    async def test_pending_jobs_skip_interval(self, runner, clock):
        await runner.finish()
        assert await runner.should_trigger(clock.advance(1), has_pending=True) is True

    async def test_not_while_busy(self, runner, clock):
        await runner.prepare()
        assert await runner.should_trigger(clock.now, has_pending=True) is False


class TestRecoverStale:
    async def test_recent_state_kept(self, runner, clock):
        await runner.prepare()
        assert await runner.recover_stale(clock.advance(660)) is False
        assert await runner.get_state() == RunnerState.PREPARING

    async def test_abandoned_state_forced_idle(self, runner, clock):
        await runner.prepare()
        assert await runner.recover_stale(clock.advance(661)) is True

        snapshot = await runner.snapshot()
        assert snapshot.state == RunnerState.IDLE
        assert snapshot.last_run_at == clock.now

    async def test_idle_untouched(self, runner, clock):
        assert await runner.recover_stale(clock.advance(10_000)) is False


class TestRunLoop:
    async def test_single_cycle_without_self_pinging(self, runner, fake_sleep):
        calls = []

        async def batch(now):
            calls.append(now)

        await runner.prepare()
        assert await runner.run_loop(batch) == 1
        assert calls == [START]
        assert fake_sleep.calls == []
        # finish() is left to the caller
        assert await runner.get_state() == RunnerState.RUNNING

    async def test_self_pinging_stops_before_budget(
        self, database, clock, fake_sleep
    ):
        runner = DaemonRunner(
            database,
            "pinging",
            max_run_time=200,
            run_interval=60,
            self_pinging=True,
            clock=clock,
            sleep=fake_sleep,
        )
        calls = []

        async def batch(now):
            calls.append(now)

        await runner.prepare()
        cycles = await runner.run_loop(batch)

        # Elapsed 0, 60, 120, 180; one more interval would pass 200
        assert cycles == 4
        assert fake_sleep.calls == [60, 60, 60]
        assert [(now - START).total_seconds() for now in calls] == [0, 60, 120, 180]

    async def test_batch_error_propagates(self, runner):
        async def batch(now):
            raise RuntimeError("storage down")

        await runner.prepare()
        with pytest.raises(RuntimeError):
            await runner.run_loop(batch)

    def test_rejects_non_positive_limits(self, database):
        with pytest.raises(ValueError):
            DaemonRunner(database, "bad", max_run_time=0)
