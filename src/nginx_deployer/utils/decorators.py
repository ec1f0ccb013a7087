"""Decorator utilities for cross-cutting concerns."""
import time
import logging
import functools
from typing import Any, Callable, Optional, TypeVar, cast

from nginx_deployer.models import OperationOutcome, RetryPolicy

# Setup logging
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_operation(description: str):
    """Decorator for timing and logging deployment operations."""
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.info(f"Starting: {description}")
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.info(f"Completed: {description} in {duration:.2f}s")
                return result
            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"Failed: {description} after {duration:.2f}s - {str(e)}")
                raise
        return cast(F, wrapper)
    return decorator


def retry_operation(operation: Callable[[], Any], policy: RetryPolicy,
                    stage: Optional[str] = None, description: Optional[str] = None,
                    logger_name: Optional[str] = None) -> OperationOutcome:
    """Run ``operation`` with a bounded number of attempts.

    The delay between attempts is fixed. Nothing is raised for a failing
    operation: the caller gets a failed outcome once ``policy.max_attempts``
    invocations have failed, and decides whether that is fatal.

    Args:
        operation: Zero-argument callable to invoke
        policy: Attempt ceiling and delay
        stage: Stage name recorded on the outcome
        description: Name used in log lines (defaults to the callable name)
        logger_name: Optional logger name (defaults to module logger)

    Returns:
        OperationOutcome with the operation's return value on success
    """
    retry_logger = logging.getLogger(logger_name) if logger_name else logger
    name = description or getattr(operation, '__name__', repr(operation))

    last_error = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            value = operation()
        except Exception as e:
            last_error = e
            if attempt == policy.max_attempts:
                break
            retry_logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} for {name} failed: {str(e)}. "
                f"Retrying in {policy.delay:.2f}s"
            )
            time.sleep(policy.delay)
            continue
        return OperationOutcome.success(value, stage=stage, attempts=attempt)

    retry_logger.error(f"All {policy.max_attempts} attempts failed for {name}: {str(last_error)}")
    return OperationOutcome.failure(
        str(last_error), stage=stage, attempts=policy.max_attempts, error=last_error
    )
