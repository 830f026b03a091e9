"""Retry, timeout and dead-letter helpers."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

_log = logging.getLogger(__name__)


def retry(operation: Callable[[], Any], max_retries: int, base_delay: float) -> Any:
    """Call ``operation`` up to ``max_retries`` times with exponential backoff."""
    last_error: Exception | None = None
    for attempt in range(1, max_retries + 1):
        try:
            return operation()
        except Exception as exc:
            last_error = exc
            _log.warning("Retrying attempt %d...", attempt)
            time.sleep(base_delay * 2**attempt)
    if last_error is not None:
        raise last_error
    return None


def timeout(operation: Callable[[], Any], seconds: float) -> Any:
    """Run ``operation``, raising ``TimeoutError`` if it takes over ``seconds``."""
    outcome: dict[str, Any] = {}
    done = threading.Event()

    def run() -> None:
        try:
            outcome["value"] = operation()
        except BaseException as exc:
            outcome["error"] = exc
        done.set()

    threading.Thread(target=run, daemon=True).start()
    if not done.wait(seconds):
        raise TimeoutError("operation timed out")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


@dataclass
class DLQResult:
    """Failed messages, and the error of the last message processed."""

    dead_letters: list[str] = field(default_factory=list)
    error: Exception | None = None


def process_with_dlq(messages: Iterable[str], operation: Callable[[str], Any]) -> DLQResult:
    """Process every message, collecting the ones that fail."""
    result = DLQResult()
    for message in messages:
        try:
            operation(message)
            result.error = None
        except Exception as exc:
            result.dead_letters.append(message)
            result.error = exc
    return result