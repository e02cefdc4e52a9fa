"""Fire-and-forget event notifications and the input command table."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

TYPING_CHANGED = "typing_changed"
MESSAGE_APPENDED = "message_appended"
INSIGHT_AVAILABLE = "insight_available"


class EventDispatcher:
    """Delivers events to subscribed handlers without waiting for them.

    Handlers may be sync or async. Async handlers run as background tasks;
    failures in either kind are logged and never reach the emitter.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[[Any], Any]]] = {}
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, event: str, handler: Callable[[Any], Any]) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def unsubscribe(self, event: str, handler: Callable[[Any], Any]) -> bool:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def on(self, event: str) -> Callable:
        """Decorator form of :meth:`subscribe`."""

        def decorator(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
            self.subscribe(event, fn)
            return fn

        return decorator

    def emit(self, event: str, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(payload)
            except Exception:
                logger.exception("Handler for '%s' failed", event)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done(event))

    def _task_done(self, event: str) -> Callable[[asyncio.Task], None]:
        def callback(task: asyncio.Task) -> None:
            self._tasks.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logger.error("Handler for '%s' failed", event, exc_info=task.exception())

        return callback

    async def drain(self) -> None:
        """Wait for in-flight async handlers (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


@dataclass
class CommandDef:
    name: str
    handler: Callable[..., Awaitable[Any]]
    description: str = ""


class CommandRouter:
    """Dispatch table mapping input commands to async handlers.

    Example::

        router = CommandRouter()

        @router.command("send_message")
        async def send(message: str) -> Message: ...

        await router.dispatch("send_message", message="hola")
    """

    def __init__(self) -> None:
        self._commands: dict[str, CommandDef] = {}

    def command(self, name: str, *, description: str = "") -> Callable:
        def decorator(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
            self.register(name, fn, description=description)
            return fn

        return decorator

    def register(
        self, name: str, handler: Callable[..., Awaitable[Any]], *, description: str = ""
    ) -> None:
        if not inspect.iscoroutinefunction(handler):
            msg = f"Command handler '{name}' must be an async function"
            raise TypeError(msg)
        if name in self._commands:
            msg = f"Command '{name}' is already registered"
            raise ValueError(msg)
        self._commands[name] = CommandDef(name=name, handler=handler, description=description)

    @property
    def command_names(self) -> list[str]:
        return list(self._commands.keys())

    def get(self, name: str) -> CommandDef | None:
        return self._commands.get(name)

    async def dispatch(self, name: str, **kwargs: Any) -> Any:
        """Run the handler registered for *name*. Raises KeyError if unknown."""
        command = self._commands.get(name)
        if command is None:
            msg = f"Unknown command: {name}"
            raise KeyError(msg)
        logger.debug("Dispatching command '%s'", name)
        return await command.handler(**kwargs)
