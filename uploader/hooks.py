"""Invocation of caller-supplied pre-send and pre-upload hooks."""

import asyncio
import inspect
from typing import Any, Callable

from common.logging_config import get_logger

logger = get_logger(__name__)


def run_hook(hook: Callable[[Any], Any], target: Any, on_finished: Callable[[], None]) -> None:
    """
    Invoke a hook for a chunk or file.

    A synchronous hook is expected to call `target.preprocess_finished()` itself
    once its work is done. A coroutine hook is scheduled on the running loop and
    `on_finished` is called when it completes. Hook failures are logged and the
    hook is considered finished so the target is not stranded.

    Args:
        hook: Caller-supplied callable
        target: Chunk or UploadFile being prepared
        on_finished: Continuation to run when an async hook completes
    """
    try:
        result = hook(target)
    except Exception as e:
        logger.error(f"Preprocess hook failed for {target!r}: {e}", exc_info=True)
        on_finished()
        return

    if not inspect.isawaitable(result):
        return

    task = asyncio.ensure_future(result)

    def _done(fut: asyncio.Future) -> None:
        if fut.cancelled():
            logger.warning(f"Preprocess hook cancelled for {target!r}")
        elif fut.exception() is not None:
            logger.error(f"Preprocess hook failed for {target!r}: {fut.exception()}")
        on_finished()

    task.add_done_callback(_done)
