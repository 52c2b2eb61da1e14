import asyncio
from dataclasses import dataclass
import json
from typing import Any, Awaitable, Callable


@dataclass
class Observer:
    task: asyncio.Task
    outcome: asyncio.Future
    waiters: int = 0


# in-flight observers shared by every waiter in the process
observers: dict[str, Observer] = {}


def get_observer_key(kind: str, client_uid: str, observed_id: str) -> str:
    return json.dumps([kind, client_uid, observed_id])


def observe(
    key: str,
    start: Callable[[], Awaitable[Any]],
    timeout: float | None = None,
    on_timeout: Callable[[], BaseException] | None = None,
) -> Awaitable[Any]:
    """
    Join the observer registered under key, or start one.

    Lookup and registration happen without suspending, so concurrent
    callers always end up sharing a single task and its outcome. Each
    caller arms its own timer: when any timer fires, every waiter gets the
    error built by on_timeout and the task is cancelled. The task is also
    cancelled once its last waiter leaves. The entry is removed as soon as
    the outcome settles, so a later call starts fresh.
    """
    loop = asyncio.get_running_loop()
    observer = observers.get(key)
    if observer is None:
        observer = Observer(loop.create_task(start()), loop.create_future())
        observers[key] = observer
        observer.task.add_done_callback(
            lambda task: _settle(key, observer, task))
    observer.waiters += 1

    timer = None
    if timeout is not None:
        timer = loop.call_later(
            timeout, _expire, key, observer, on_timeout or asyncio.TimeoutError)
    return _wait(key, observer, timer)


async def _wait(
    key: str, observer: Observer, timer: asyncio.TimerHandle | None
) -> Any:
    try:
        # a cancelled waiter must not cancel the other waiters
        return await asyncio.shield(observer.outcome)
    finally:
        if timer is not None:
            timer.cancel()
        observer.waiters -= 1
        if observer.waiters == 0 and not observer.outcome.done():
            _remove_observer(key, observer)
            observer.task.cancel()


def _settle(key: str, observer: Observer, task: asyncio.Task) -> None:
    _remove_observer(key, observer)
    if observer.outcome.done():
        return
    if task.cancelled():
        observer.outcome.cancel()
    elif task.exception() is not None:
        observer.outcome.set_exception(task.exception())  # type: ignore
    else:
        observer.outcome.set_result(task.result())


def _expire(
    key: str, observer: Observer, on_timeout: Callable[[], BaseException]
) -> None:
    _remove_observer(key, observer)
    if not observer.outcome.done():
        observer.outcome.set_exception(on_timeout())
    observer.task.cancel()


def _remove_observer(key: str, observer: Observer) -> None:
    if observers.get(key) is observer:
        del observers[key]
