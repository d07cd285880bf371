import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from survey_harness.models import ExportJobStatus
from survey_harness.utils.logger import logger

T = TypeVar("T")


async def poll(
    fn: Callable[[], Awaitable[T]],
    done: Callable[[T], bool],
    max_attempts: int = 20,
    interval_seconds: float = 2.0,
    backoff_factor: float = 1.0,
    max_interval: Optional[float] = None,
) -> T:
    """
    Call an async function until `done(result)` holds or attempts run out.

    Errors raised by `fn` are not caught; the first one ends the polling.
    Sleeps happen between attempts only, never before the first call.

    Args:
        fn: The async call to repeat
        done: Predicate on each result
        max_attempts: Maximum number of calls
        interval_seconds: Delay after the first unfinished result
        backoff_factor: Multiplier applied to the delay after each attempt (1.0 = fixed interval)
        max_interval: Upper bound on the delay (None = no limit)

    Returns:
        The last observed result, finished or not

    Example:
    ```python
    job = await poll(
        lambda: harness.get_export_job(job_id),
        done=lambda job: job["status"].lower() == "completed",
        max_attempts=10,
    )
    ```
    """
    if max_attempts <= 0:
        raise ValueError("max_attempts must be greater than zero")

    result = await fn()
    for attempt in range(1, max_attempts):
        if done(result):
            return result

        delay = interval_seconds * (backoff_factor ** (attempt - 1))
        if max_interval is not None:
            delay = min(delay, max_interval)

        logger.debug(f"Poll attempt {attempt}/{max_attempts} not finished. Retrying in {delay:.1f}s...")
        await asyncio.sleep(delay)
        result = await fn()

    return result


async def wait_for_export_job(
    harness,
    job_id: Any,
    max_attempts: int = 20,
    interval_seconds: float = 2.0,
    backoff_factor: float = 1.0,
) -> Dict[str, Any]:
    """
    Re-read an export job until it reaches completed or failed.

    This lives with the tests' tooling on purpose: the harness reports a
    job's state once per call, and how long to wait is up to the caller.
    """
    def finished(job: Dict[str, Any]) -> bool:
        status = ExportJobStatus.parse(job.get("status") if isinstance(job, dict) else None)
        return status is not None and status.is_terminal

    job = await poll(
        lambda: harness.get_export_job(job_id),
        done=finished,
        max_attempts=max_attempts,
        interval_seconds=interval_seconds,
        backoff_factor=backoff_factor,
    )
    if not finished(job):
        status = job.get("status") if isinstance(job, dict) else job
        logger.info(f"Export job {job_id} still {status!r} after {max_attempts} attempts")
    return job
