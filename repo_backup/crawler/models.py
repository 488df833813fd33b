"""Shared data models for repository crawlers."""

import threading
from dataclasses import dataclass, field
from typing import Callable


PAGE_SIZE = 100


@dataclass(frozen=True)
class Repo:
    """A repository reference, independent of the provider it came from."""
    provider: str
    name: str
    url: str


@dataclass(frozen=True)
class RateInfo:
    """Rate limit state reported alongside a page. Diagnostic only."""
    limit: int | None = None
    remaining: int | None = None
    reset: int | None = None

    @classmethod
    def from_headers(cls, headers, prefix: str) -> "RateInfo | None":
        """Build from ``<prefix>-limit``/``-remaining``/``-reset`` headers."""
        lowered = {k.lower(): v for k, v in (headers or {}).items()}
        values = {
            key: _to_int(lowered.get(f"{prefix}-{key}"))
            for key in ("limit", "remaining", "reset")
        }
        if all(v is None for v in values.values()):
            return None
        return cls(**values)


@dataclass
class PageResult:
    """One page of normalized records plus its pagination cursor."""
    records: list[Repo] = field(default_factory=list)
    next_page: int | None = None
    last_page: int = 0
    rate_info: RateInfo | None = None


@dataclass(frozen=True)
class UpdateStats:
    """Statistics gathered while mirroring one repository."""
    bytes_downloaded: int = 0
    duration: float = 0.0


# (cancel, zero-based page index) -> PageResult; raises on failure
PageFetcher = Callable[[threading.Event, int], PageResult]


def _to_int(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
