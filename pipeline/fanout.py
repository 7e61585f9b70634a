"""
Fire all, collect all.

gather_settled runs every task in a thread pool and returns one Settled
per task, success or failure. A task's exception lands in its own slot;
nothing short-circuits, and the call returns only once every task has
settled (or the overall timeout has expired for the stragglers).
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional


class TaskTimeoutError(Exception):
    """Task had not settled when the batch deadline passed."""


@dataclass
class Settled:
    """Outcome of one task."""
    key: str
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def gather_settled(
    tasks: Mapping[str, Callable[[], Any]],
    max_workers: Optional[int] = None,
    timeout: Optional[float] = None,
    on_settled: Optional[Callable[[Settled], None]] = None,
) -> dict[str, Settled]:
    """
    Run tasks concurrently and wait for all of them.

    Args:
        tasks: key -> zero-arg callable
        max_workers: pool size, defaults to one thread per task
        timeout: overall deadline in seconds; unfinished tasks settle as
            TaskTimeoutError and are abandoned, not interrupted
        on_settled: called in the caller's thread as each task settles

    Returns:
        key -> Settled, in the same order as tasks
    """
    if not tasks:
        return {}

    settled: dict[str, Settled] = {}

    def _settle(outcome: Settled) -> None:
        settled[outcome.key] = outcome
        if on_settled:
            on_settled(outcome)

    executor = ThreadPoolExecutor(max_workers=max_workers or len(tasks))
    futures = {executor.submit(fn): key for key, fn in tasks.items()}
    timed_out = False

    try:
        for future in as_completed(futures, timeout=timeout):
            key = futures[future]
            try:
                outcome = Settled(key=key, value=future.result())
            except Exception as e:
                outcome = Settled(key=key, error=e)
            _settle(outcome)
    except FutureTimeout:
        timed_out = True
        for future, key in futures.items():
            if key not in settled:
                future.cancel()
                _settle(Settled(key=key, error=TaskTimeoutError(f"{key} did not finish within {timeout}s")))
    finally:
        # Stragglers keep running in the background; don't block on them
        executor.shutdown(wait=not timed_out, cancel_futures=timed_out)

    return {key: settled[key] for key in tasks}
