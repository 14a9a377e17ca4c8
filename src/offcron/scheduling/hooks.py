"""Hook registry: resolves a job's hook name to handler callables."""

import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

logger = logging.getLogger(__name__)

# Handlers receive the job's argument values positionally; sync or async
HookHandler = Callable[..., Awaitable[Any] | Any]


class HookRegistry:
    """Maps hook names to handlers.

    Example:
        hooks = HookRegistry()

        @hooks.on("send_digest")
        async def send_digest(user_id, period):
            ...

        await hooks.dispatch("send_digest", [42, "weekly"])
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[HookHandler]] = defaultdict(list)

    def on(self, hook: str) -> Callable[[HookHandler], HookHandler]:
        """Decorator to register a handler for `hook`."""

        def decorator(handler: HookHandler) -> HookHandler:
            self.add(hook, handler)
            return handler

        return decorator

    def add(self, hook: str, handler: HookHandler) -> None:
        if not hook:
            raise ValueError("hook name cannot be empty")
        self._handlers[hook].append(handler)

    def remove(self, hook: str, handler: HookHandler | None = None) -> None:
        """Remove one handler, or all handlers for the hook."""
        if handler is None:
            self._handlers.pop(hook, None)
            return
        handlers = self._handlers.get(hook, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers(self, hook: str) -> list[HookHandler]:
        return list(self._handlers.get(hook, []))

    def has(self, hook: str) -> bool:
        return bool(self._handlers.get(hook))

    @property
    def hooks(self) -> list[str]:
        return sorted(name for name, handlers in self._handlers.items() if handlers)

    async def dispatch(self, hook: str, args: Sequence[Any]) -> int:
        """Invoke every handler for `hook` in registration order.

        A hook nobody listens to is not an error, the same as firing an event
        with no subscribers. The first handler to raise stops the dispatch and
        the exception propagates.

        Returns:
            Number of handlers invoked.
        """
        handlers = self.handlers(hook)
        if not handlers:
            logger.warning("hook_without_handlers", extra={"job.hook": hook})
            return 0
        for handler in handlers:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        return len(handlers)
