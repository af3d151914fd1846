from __future__ import annotations

import asyncio
import time
from typing import AsyncIterator, List, Optional

from jobfit.core import ProgressEvent, Stage, TERMINAL_STAGES


class ProgressChannel:
    """
    Push-based progress stream for one request.

    Writers call emit/fail/done from the event loop; readers either poll
    ``latest`` or iterate ``subscribe()``, which replays history in order and
    then waits for new events until a terminal one arrives. Percentages never
    go down: a lower value is raised to the last one emitted.
    """

    def __init__(self):
        self._events: List[ProgressEvent] = []
        self._changed = asyncio.Event()
        self.started_at = time.monotonic()

    @property
    def events(self) -> List[ProgressEvent]:
        return list(self._events)

    @property
    def latest(self) -> Optional[ProgressEvent]:
        return self._events[-1] if self._events else None

    @property
    def percent(self) -> int:
        return self._events[-1].percent if self._events else 0

    @property
    def closed(self) -> bool:
        return bool(self._events) and self._events[-1].stage in TERMINAL_STAGES

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    def emit(self, stage: Stage, percent: int, message: str) -> ProgressEvent:
        if self.closed:
            raise RuntimeError("progress channel is closed")
        if stage != Stage.FAILED:
            percent = max(self.percent, min(100, int(percent)))
        event = ProgressEvent(stage=stage, percent=max(0, min(100, int(percent))), message=message)
        self._events.append(event)

        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        return event

    def fail(self, message: str) -> ProgressEvent:
        return self.emit(Stage.FAILED, self.percent, message)

    def done(self, message: str = "Done") -> ProgressEvent:
        return self.emit(Stage.DONE, 100, message)

    async def subscribe(self) -> AsyncIterator[ProgressEvent]:
        index = 0
        while True:
            changed = self._changed
            while index < len(self._events):
                yield self._events[index]
                index += 1
            if self.closed:
                return
            await changed.wait()
