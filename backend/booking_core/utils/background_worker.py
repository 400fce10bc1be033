"""Thread-based worker for fire-and-forget deliveries with retries and dead-lettering."""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="notify")
_tasks: Dict[str, Future] = {}
# Failed jobs kept for inspection: (task name, correlation id, exception)
dead_letter_queue: deque[Tuple[str, Optional[str], Exception]] = deque(maxlen=500)


def _run_with_retry(
    func: Callable[..., Any],
    *args: Any,
    retries: int = 3,
    backoff: float = 1,
    correlation_id: Optional[str] = None,
    **kwargs: Any,
) -> Any:
    """Execute ``func`` with retry and linear backoff."""

    for attempt in range(1, retries + 1):
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            logger.warning(
                "Background task %s [%s] failed on attempt %s/%s: %s",
                func.__name__,
                correlation_id,
                attempt,
                retries,
                exc,
            )
            if attempt == retries:
                dead_letter_queue.append((func.__name__, correlation_id, exc))
                logger.error(
                    "Background task %s [%s] moved to dead-letter queue", func.__name__, correlation_id
                )
                raise
            time.sleep(backoff * attempt)


def enqueue(
    func: Callable[..., Any],
    *args: Any,
    retries: int = 3,
    backoff: float = 1,
    correlation_id: Optional[str] = None,
    **kwargs: Any,
) -> str:
    """Submit ``func`` to the worker and return a task id."""

    task_id = str(uuid.uuid4())
    future = _executor.submit(
        _run_with_retry,
        func,
        *args,
        retries=retries,
        backoff=backoff,
        correlation_id=correlation_id,
        **kwargs,
    )
    _tasks[task_id] = future
    future.add_done_callback(lambda _f: _tasks.pop(task_id, None))
    return task_id
