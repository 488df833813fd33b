"""Drive a page fetcher until the listing is exhausted."""

import logging
import threading
import time
from typing import Iterator

from .models import PageFetcher, Repo

logger = logging.getLogger(__name__)


class Paginator:
    """Iterate over the pages of one paginated listing.

    Each page is yielded as a single batch. The next page is only requested
    once the consumer asks for another batch, so at most one page per source
    is held in memory.

    Iteration stops when:

    * the fetcher raises; the error is logged and earlier batches stay valid,
    * ``cancel`` is set; a page fetched after cancellation is dropped,
    * the page index reaches the ``last_page`` reported by the fetcher.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        cancel: threading.Event,
        name: str = "source",
    ):
        self.fetch_page = fetch_page
        self.cancel = cancel
        self.name = name
        self.pages = 0
        self.records = 0
        self.error: Exception | None = None

    def __iter__(self) -> Iterator[list[Repo]]:
        start = time.monotonic()
        page = 0

        while not self.cancel.is_set():
            page_start = time.monotonic()
            try:
                result = self.fetch_page(self.cancel, page)
            except Exception as e:
                self.error = e
                logger.warning(
                    "Unable to retrieve page %d of %s: %s", page, self.name, e
                )
                break

            if self.cancel.is_set():
                logger.debug(
                    "Dropping page %d of %s after cancellation", page, self.name
                )
                break

            logger.debug(
                "Fetched page %d of %s in %.3fs (rate limit: %s, next page: %s)",
                page,
                self.name,
                time.monotonic() - page_start,
                result.rate_info,
                result.next_page,
            )

            self.pages += 1
            self.records += len(result.records)
            yield list(result.records)

            if page >= result.last_page:
                break
            page += 1

        logger.debug(
            "Fetched all pages of %s: %d pages, %d repos in %.3fs",
            self.name,
            self.pages,
            self.records,
            time.monotonic() - start,
        )
