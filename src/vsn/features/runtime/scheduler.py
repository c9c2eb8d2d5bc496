from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import simpy

from vsn.core.commands import Schedule, SessionToken, TaskKind


@dataclass(slots=True)
class TaskHandle:
    kind: TaskKind
    token: SessionToken
    lock_id: int | None = None
    cancelled: bool = False


class TaskScheduler:
    """
    At most one task per kind, each a SimPy process behind a cancellation flag.

    Scheduling a kind cancels whatever of that kind is pending or running.
    Cancelled processes still wake up but do nothing, so no process is ever
    interrupted mid-flight.
    """

    def __init__(self, env: simpy.Environment) -> None:
        self.env = env
        self._pending: dict[TaskKind, TaskHandle] = {}
        self._running: dict[TaskKind, TaskHandle] = {}

    def schedule(self, cmd: Schedule, body: Callable[[TaskHandle], Any]) -> TaskHandle:
        self.cancel(cmd.task)
        handle = TaskHandle(kind=cmd.task, token=cmd.token, lock_id=cmd.lock_id)
        self._pending[cmd.task] = handle
        self.env.process(self._run(handle, float(cmd.delay_s), body))
        return handle

    def cancel(self, kind: TaskKind) -> bool:
        found = False
        for registry in (self._pending, self._running):
            handle = registry.pop(kind, None)
            if handle is not None:
                handle.cancelled = True
                found = True
        return found

    def pending(self, kind: TaskKind) -> TaskHandle | None:
        return self._pending.get(kind)

    def _run(self, handle: TaskHandle, delay_s: float, body: Callable[[TaskHandle], Any]):
        yield self.env.timeout(max(0.0, delay_s))
        if handle.cancelled:
            return

        if self._pending.get(handle.kind) is handle:
            del self._pending[handle.kind]
        self._running[handle.kind] = handle
        try:
            result = body(handle)
            if inspect.isgenerator(result):
                yield from result
        finally:
            if self._running.get(handle.kind) is handle:
                del self._running[handle.kind]
