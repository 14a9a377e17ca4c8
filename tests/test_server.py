"""Tests for the runner HTTP server."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, cast

import pytest
from fastapi.testclient import TestClient

from offcron.db.engine import Database
from offcron.scheduling import DaemonRunner, HandoffPayload, Scheduler
from offcron.server import ServerRunner, create_app


class _DaemonRecorder:
    def __init__(self) -> None:
        self.payloads: list[HandoffPayload] = []

    async def __call__(self, payload: HandoffPayload) -> None:
        self.payloads.append(payload)


class TestRoutes:
    def test_health(self):
        client = TestClient(create_app(daemon=_DaemonRecorder()))
        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/ready").json() == {"status": "ready"}

    def test_runner_accepts_configured_handoff(self):
        handoff = HandoffPayload(
            bootstrap_path="/srv/app/bootstrap.py", dispatch_key="k"
        )
        daemon = _DaemonRecorder()
        client = TestClient(create_app(daemon=daemon, allowed_handoffs=[handoff]))

        response = client.post(
            "/runner",
            json={"bootstrap_path": "/srv/app/bootstrap.py", "dispatch_key": "k"},
        )

        assert response.status_code == 202
        assert response.json() == {"status": "accepted"}
        assert daemon.payloads == [handoff]

    def test_scheduler_handoff_is_allowed_by_default(self, tmp_path, bootstrap_file):
        database = Database(database_path=tmp_path / "server.db")
        handoff = HandoffPayload(
            bootstrap_path=str(bootstrap_file), dispatch_key="offcron/srv/scheduler"
        )
        scheduler = Scheduler(
            database, runner=DaemonRunner(database, "srv"), handoff=handoff
        )
        daemon = _DaemonRecorder()
        client = TestClient(create_app(scheduler=scheduler, daemon=daemon))

        response = client.post("/runner", json=handoff.model_dump())
        assert response.status_code == 202
        assert daemon.payloads == [handoff]

        response = client.post(
            "/runner",
            json={"bootstrap_path": str(bootstrap_file), "dispatch_key": "other"},
        )
        assert response.status_code == 403
        assert daemon.payloads == [handoff]

    def test_foreign_bootstrap_is_never_executed(self, tmp_path):
        marker = tmp_path / "marker"
        foreign = tmp_path / "anything.py"
        foreign.write_text(f"open({str(marker)!r}, 'w').close()\n")
        allowed = HandoffPayload(
            bootstrap_path=str(tmp_path / "bootstrap.py"), dispatch_key="k"
        )
        client = TestClient(create_app(allowed_handoffs=[allowed]))

        response = client.post(
            "/runner",
            json={"bootstrap_path": str(foreign), "dispatch_key": "k"},
        )

        assert response.status_code == 403
        assert not marker.exists()

    def test_unconfigured_server_refuses_every_handoff(self, tmp_path):
        marker = tmp_path / "marker"
        foreign = tmp_path / "anything.py"
        foreign.write_text(f"open({str(marker)!r}, 'w').close()\n")
        client = TestClient(create_app())

        response = client.post(
            "/runner",
            json={"bootstrap_path": str(foreign), "dispatch_key": "x"},
        )

        assert response.status_code == 403
        assert not marker.exists()

    def test_runner_rejects_malformed_handoff(self):
        daemon = _DaemonRecorder()
        client = TestClient(create_app(daemon=daemon))

        response = client.post("/runner", json={"bootstrap_path": "  "})

        assert response.status_code == 422
        assert daemon.payloads == []

    def test_status_without_scheduler(self):
        client = TestClient(create_app(daemon=_DaemonRecorder()))
        assert client.get("/runner/status").status_code == 404

    def test_status_with_scheduler(self, tmp_path):
        database = Database(database_path=tmp_path / "server.db")
        scheduler = Scheduler(database, runner=DaemonRunner(database, "srv"))
        app = create_app(scheduler=scheduler, daemon=_DaemonRecorder())

        with TestClient(app) as client:
            body = client.get("/runner/status").json()

        assert body["instance_id"] == "srv"
        assert body["state"] == "idle"
        assert body["last_run_at"] is None


@pytest.mark.asyncio
async def test_server_runner_installs_signal_handlers(monkeypatch) -> None:
    calls: list[str] = []

    class _FakeServer:
        should_exit = False

        async def serve(self) -> None:
            calls.append("serve")

    class _FakeLoop:
        def add_signal_handler(self, _sig, _handler) -> None:
            calls.append("signal")

    monkeypatch.setattr(
        "offcron.server.runner.uvicorn.Config", lambda *a, **kw: object()
    )
    monkeypatch.setattr(
        "offcron.server.runner.uvicorn.Server", lambda _cfg: _FakeServer()
    )
    monkeypatch.setattr(
        "offcron.server.runner.asyncio.get_running_loop", lambda: _FakeLoop()
    )

    app = cast(Any, SimpleNamespace(state=SimpleNamespace()))
    runner = ServerRunner(app, host="127.0.0.1", port=8765)
    await runner.run()

    assert calls == ["signal", "signal", "serve"]
