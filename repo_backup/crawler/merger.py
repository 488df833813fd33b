"""Fan-in of several batch streams into one stream of repositories."""

import logging
import queue
import threading
from typing import Iterable, Iterator

from .models import Repo

logger = logging.getLogger(__name__)

# Marks the end of one input stream on the shared queue
_DONE = object()

_PUT_INTERVAL = 0.1


def merge(streams: Iterable[Iterable[list[Repo]]]) -> Iterator[Repo]:
    """Interleave batches from every stream, yielding individual repos.

    Every stream is drained on its own thread. Batches from one stream keep
    their order; there is no ordering across streams. The returned iterator
    ends once every input stream has ended, immediately if there are none.
    """
    streams = list(streams)
    if not streams:
        return

    out: queue.Queue = queue.Queue(maxsize=1)
    closed = threading.Event()

    def put(item) -> bool:
        # Give up once the consumer has gone away so workers never hang
        while not closed.is_set():
            try:
                out.put(item, timeout=_PUT_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def drain(stream: Iterable[list[Repo]]) -> None:
        try:
            for batch in stream:
                if not put(batch):
                    return
        except Exception:
            logger.exception("Stream %r failed", getattr(stream, "name", stream))
        finally:
            put(_DONE)

    for i, stream in enumerate(streams):
        threading.Thread(
            target=drain,
            args=(stream,),
            name=f"merge-{getattr(stream, 'name', i)}",
            daemon=True,
        ).start()

    remaining = len(streams)
    try:
        while remaining:
            item = out.get()
            if item is _DONE:
                remaining -= 1
                continue
            yield from item
    finally:
        closed.set()
