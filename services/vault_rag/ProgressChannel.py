import asyncio
from contextlib import contextmanager
from typing import AsyncIterator, Iterator

from shared.models.events import ProgressEvent, ProgressPhase


class ProgressChannel:
    """Fan-out of indexing progress events to any number of listeners.

    Every subscriber gets its own bounded queue. A slow subscriber loses its
    oldest events and never blocks the publisher.
    """

    def __init__(self, buffer_size: int = 100) -> None:
        self._buffer_size = buffer_size
        self._subscribers: list[asyncio.Queue[ProgressEvent]] = []

    def publish(self, event: ProgressEvent) -> None:
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)

    def chunking(self, total: int) -> None:
        self.publish(ProgressEvent(phase=ProgressPhase.CHUNKING, current=0, total=total))

    def embedding(self, current: int, total: int, document: str) -> None:
        self.publish(ProgressEvent(phase=ProgressPhase.EMBEDDING, current=current, total=total, current_document=document))

    def complete(self, total: int) -> None:
        self.publish(ProgressEvent(phase=ProgressPhase.COMPLETE, current=total, total=total))

    @contextmanager
    def subscribe(self) -> Iterator[asyncio.Queue[ProgressEvent]]:
        """Register a listener queue for the duration of the with-block."""
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=self._buffer_size)
        self._subscribers.append(queue)
        try:
            yield queue
        finally:
            self._subscribers.remove(queue)

    async def stream(self) -> AsyncIterator[ProgressEvent]:
        """Yield events until the consumer stops iterating."""
        with self.subscribe() as queue:
            while True:
                yield await queue.get()

    def get_subscriber_count(self) -> int:
        return len(self._subscribers)

    def resize(self, buffer_size: int) -> None:
        """Applies to subscribers registered from now on."""
        self._buffer_size = buffer_size
