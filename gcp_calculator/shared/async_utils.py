"""Async helpers for running the automation engine from synchronous callers."""

import asyncio
from typing import Any, Coroutine, Dict, TypeVar

T = TypeVar("T")

# Messages Playwright's driver emits when its pipe closes during loop teardown
_SHUTDOWN_NOISE = (
    "Connection closed",
    "Target page, context or browser has been closed",
    "Event loop is closed",
)


def _is_shutdown_noise(text: str) -> bool:
    return any(noise in text for noise in _SHUTDOWN_NOISE)


def suppress_driver_shutdown_errors(
    loop: asyncio.AbstractEventLoop, context: Dict[str, Any]
) -> None:
    """
    Ignore errors raised by Playwright's driver connection while a loop closes.

    When the driver subprocess exits during teardown its reader task can report
    "Connection closed" on a finished future. Anything else goes to the
    default handler.
    """
    exception = context.get("exception")
    if _is_shutdown_noise(context.get("message") or "") or (
        exception is not None and _is_shutdown_noise(str(exception))
    ):
        return
    loop.default_exception_handler(context)


def create_event_loop() -> asyncio.AbstractEventLoop:
    """Create an event loop with the driver shutdown filter attached."""
    loop = asyncio.new_event_loop()
    loop.set_exception_handler(suppress_driver_shutdown_errors)
    return loop


def _drain(loop: asyncio.AbstractEventLoop) -> None:
    """Cancel leftover tasks (driver readers, transports) and let them finish."""
    pending = asyncio.all_tasks(loop)
    for task in pending:
        task.cancel()
    if pending:
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
    loop.run_until_complete(loop.shutdown_asyncgens())


def run_coroutine(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run ``coro`` to completion on a fresh event loop.

    Like ``asyncio.run`` but with the driver shutdown filter installed, so the
    synchronous Flask route and the CLI can call the async engine.
    """
    loop = create_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        try:
            _drain(loop)
        except RuntimeError as e:
            # Loop already stopped by a driver crash
            loop.call_exception_handler({"message": "Event loop shutdown failed", "exception": e})
        finally:
            asyncio.set_event_loop(None)
            loop.close()
