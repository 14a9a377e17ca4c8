"""Shared test fixtures and factories."""

from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from offcron import dispatch
from offcron.db.engine import Database
from offcron.scheduling import (
    DaemonRunner,
    HandoffPayload,
    HookRegistry,
    JobRepository,
    Scheduler,
)

START = datetime(2026, 1, 5, 12, 0, 0, tzinfo=UTC)

# =============================================================================
# Time Fixtures
# =============================================================================


class FakeClock:
    """Settable clock; call it to read the current time."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class FakeSleep:
    """Records sleeps and advances the clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


class RecordingTrigger:
    """Trigger stand-in that records payloads and reports a fixed result."""

    def __init__(self, delivered: bool = True):
        self.delivered = delivered
        self.payloads: list[HandoffPayload] = []

    async def fire(self, payload: HandoffPayload) -> bool:
        self.payloads.append(payload)
        return self.delivered


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Create a temporary test database."""
    db_path = tmp_path / "test.db"
    db = Database(database_path=db_path)
    await db.connect()
    await db.create_tables()

    yield db

    await db.disconnect()


@pytest.fixture
def repository(database: Database) -> JobRepository:
    return JobRepository(database)


# =============================================================================
# Scheduling Fixtures
# =============================================================================


@pytest.fixture
def runner(database: Database, clock: FakeClock, fake_sleep: FakeSleep) -> DaemonRunner:
    return DaemonRunner(
        database,
        "test",
        max_run_time=600,
        run_interval=60,
        clock=clock,
        sleep=fake_sleep,
    )


@pytest.fixture
def hooks() -> HookRegistry:
    return HookRegistry()


@pytest.fixture
def trigger() -> RecordingTrigger:
    return RecordingTrigger()


@pytest.fixture
def bootstrap_file(tmp_path: Path) -> Path:
    """A readable (empty) bootstrap file."""
    path = tmp_path / "bootstrap.py"
    path.write_text("# test bootstrap\n")
    return path


@pytest.fixture
def handoff(bootstrap_file: Path) -> HandoffPayload:
    return HandoffPayload(
        bootstrap_path=str(bootstrap_file), dispatch_key="offcron/test/scheduler"
    )


@pytest.fixture
def scheduler(
    database: Database,
    runner: DaemonRunner,
    hooks: HookRegistry,
    trigger: RecordingTrigger,
    handoff: HandoffPayload,
    clock: FakeClock,
) -> Scheduler:
    return Scheduler(
        database,
        runner=runner,
        hooks=hooks,
        trigger=trigger,
        handoff=handoff,
        clock=clock,
    )


@pytest.fixture(autouse=True)
def clean_dispatch() -> Iterator[None]:
    """Keep the dispatch registry from leaking between tests."""
    dispatch.clear()
    yield
    dispatch.clear()


# =============================================================================
# Configuration / CLI Fixtures
# =============================================================================


@pytest.fixture
def config_toml_content(tmp_path: Path) -> str:
    """Valid TOML config content pointing at a temporary database."""
    return f"""
instance_id = "cli"

[database]
path = "{tmp_path / "cli.db"}"

[runner]
max_run_time = 300
run_interval = 30
"""


@pytest.fixture
def config_file(tmp_path: Path, config_toml_content: str) -> Path:
    """Create a temporary config file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_toml_content)
    return config_path


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
