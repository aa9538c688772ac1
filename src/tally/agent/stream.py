"""Streaming channel for reasoning steps."""

import asyncio
from collections.abc import AsyncIterator

from .models import ReasoningResult, ReasoningStep

_DONE = object()


class ReasoningStream:
    """Steps published by a running reasoning task, plus its final result.

    Iterate with ``async for step in stream`` to receive steps as they are
    appended; ``await stream.result()`` resolves once to the ReasoningResult.
    The two can be used independently: the result is available whether or
    not the steps were drained.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._task: asyncio.Task[ReasoningResult] | None = None

    def publish(self, step: ReasoningStep) -> None:
        """Called by the engine for every appended step."""
        self._queue.put_nowait(step)

    def attach(self, task: "asyncio.Task[ReasoningResult]") -> None:
        """Bind the task producing the steps and close the channel when it ends."""
        self._task = task
        task.add_done_callback(lambda _: self._queue.put_nowait(_DONE))

    async def __aiter__(self) -> AsyncIterator[ReasoningStep]:
        while True:
            item = await self._queue.get()
            if item is _DONE:
                return
            yield item  # type: ignore[misc]

    async def result(self) -> ReasoningResult:
        """Wait for the reasoning task and return its result."""
        if self._task is None:
            raise RuntimeError("stream has no reasoning task attached")
        return await asyncio.shield(self._task)

    def cancel(self) -> None:
        """Abort the in-flight provider/tool call chain."""
        if self._task is not None:
            self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()
