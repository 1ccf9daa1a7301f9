from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

logger = logging.getLogger("app.telemetry")


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
    span: dict[str, Any] = {"name": name, "attributes": dict(attributes or {})}
    started = time.perf_counter()
    try:
        yield span
    except Exception as exc:
        span["error"] = type(exc).__name__
        raise
    finally:
        span["durationMs"] = round((time.perf_counter() - started) * 1000, 3)
        logger.debug("span %s finished in %sms", name, span["durationMs"])
