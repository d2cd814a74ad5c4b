"""
inventory_engines.tracer -- Engine invocation tracer.

Responsibility:
    ``@traced_engine`` wraps a pure engine function and emits one DEBUG
    ``engine_trace`` record per call with the engine name and version, a
    fingerprint of the chosen inputs, the outcome and the duration.  Equal
    inputs give equal fingerprints whether they were passed by position or by
    keyword, so an allocation seen in production logs can be matched to a
    replay in a test.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; never changes arguments or results.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from inventory_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonical(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, str, UUID, Decimal)):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonical(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple, set, frozenset)):
        parts = [_canonical(v) for v in value]
        if isinstance(value, (set, frozenset)):
            parts.sort()
        return "[" + ",".join(parts) + "]"
    return repr(value)


def compute_input_fingerprint(fields: Mapping[str, Any]) -> str:
    """First 16 hex chars of SHA-256 over ``name=value`` pairs in the given order."""
    canonical = "|".join(f"{name}={_canonical(value)}" for name, value in fields.items())
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorator for pure engine functions.

        @traced_engine("fefo_allocate", "1.0", fingerprint_fields=("product_id", "requested_qty"))
        def allocate(product_id, requested_qty, snapshot, today): ...

    Fields not bound in a call (defaults included) are fingerprinted as null.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs).arguments
                fingerprint = compute_input_fingerprint(
                    {name: bound.get(name) for name in fingerprint_fields}
                )

            started = time.monotonic()
            outcome = "ok"
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                outcome = type(exc).__name__
                raise
            finally:
                _logger.debug(
                    "engine_trace",
                    extra={
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fingerprint,
                        "outcome": outcome,
                        "duration_ms": round((time.monotonic() - started) * 1000, 2),
                        "function": func.__qualname__,
                    },
                )

        return wrapper

    return decorator
