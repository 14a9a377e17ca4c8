"""Tests for hook dispatch."""

import logging

import pytest

from offcron.scheduling import HookRegistry


class TestHookRegistry:
    async def test_async_and_sync_handlers(self):
        hooks = HookRegistry()
        seen = []

        @hooks.on("greet")
        async def greet_async(name):
            seen.append(("async", name))

        @hooks.on("greet")
        def greet_sync(name):
            seen.append(("sync", name))

        assert await hooks.dispatch("greet", ["ada"]) == 2
        assert seen == [("async", "ada"), ("sync", "ada")]

    async def test_no_handlers_warns(self, caplog):
        hooks = HookRegistry()
        with caplog.at_level(logging.WARNING):
            assert await hooks.dispatch("missing", []) == 0
        assert "hook_without_handlers" in caplog.text

    async def test_first_failure_stops_dispatch(self):
        hooks = HookRegistry()
        seen = []

        def boom():
            raise ValueError("boom")

        hooks.add("h", boom)
        hooks.add("h", lambda: seen.append("second"))

        with pytest.raises(ValueError):
            await hooks.dispatch("h", [])
        assert seen == []

    def test_remove(self):
        hooks = HookRegistry()

        def handler():
            pass

        hooks.add("h", handler)
        assert hooks.has("h")
        hooks.remove("h", handler)
        assert not hooks.has("h")
        assert hooks.hooks == []

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            HookRegistry().add("", lambda: None)
