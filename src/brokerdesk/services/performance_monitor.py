# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Performance monitoring decorator for workflow operations."""

import inspect
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from beartype import beartype

from ..core.logging_utils import get_logger

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)


@beartype
def performance_monitor(
    operation_name: str,
    max_duration_ms: int = 2000,
    log_slow_operations: bool = True,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator that times an operation and logs when it runs slow or fails.

    Args:
        operation_name: Name of the operation for monitoring
        max_duration_ms: Alert threshold in milliseconds
        log_slow_operations: Whether to log slow operations
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)  # type: ignore[misc]
            except Exception as e:
                _log_metrics(
                    operation_name,
                    (time.perf_counter() - start_time) * 1000,
                    max_duration_ms,
                    log_slow_operations,
                    error=str(e),
                )
                raise
            _log_metrics(
                operation_name,
                (time.perf_counter() - start_time) * 1000,
                max_duration_ms,
                log_slow_operations,
            )
            return result

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_metrics(
                    operation_name,
                    (time.perf_counter() - start_time) * 1000,
                    max_duration_ms,
                    log_slow_operations,
                    error=str(e),
                )
                raise
            _log_metrics(
                operation_name,
                (time.perf_counter() - start_time) * 1000,
                max_duration_ms,
                log_slow_operations,
            )
            return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper  # type: ignore[return-value]
        return sync_wrapper

    return decorator


def _log_metrics(
    operation_name: str,
    duration_ms: float,
    max_duration_ms: int,
    log_slow_operations: bool,
    error: str | None = None,
) -> None:
    if error is not None:
        logger.warning(
            "%s failed after %.2fms: %s", operation_name, duration_ms, error
        )
    elif log_slow_operations and duration_ms > max_duration_ms:
        logger.warning(
            "Slow operation %s: %.2fms > %sms threshold",
            operation_name,
            duration_ms,
            max_duration_ms,
        )
    else:
        logger.debug("%s completed in %.2fms", operation_name, duration_ms)
