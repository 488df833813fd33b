"""GitLab API client for project discovery."""

import logging
import threading

import gitlab

from ..config import GitLabConfig
from .models import PAGE_SIZE, PageResult, RateInfo, Repo
from .paginator import Paginator

logger = logging.getLogger(__name__)

GITLAB_PROVIDER = "gitlab.com"
GITLAB_URL = "https://gitlab.com"


class GitLabProvider:
    """Lists GitLab projects, optionally on a self-hosted instance."""

    def __init__(self, config: GitLabConfig, client: gitlab.Gitlab | None = None):
        self.config = config
        self.gl = client or gitlab.Gitlab(
            _base_url(config.host) if config.host else GITLAB_URL,
            private_token=config.api_key,
        )

    def provider(self) -> str:
        """The configured host override, else the public GitLab host.

        Any URL scheme and trailing slash in the override are dropped.
        """
        if not self.config.host:
            return GITLAB_PROVIDER
        return self.config.host.split("://", 1)[-1].strip("/")

    def filters(self) -> dict[str, bool]:
        """Project list filters, each the negation of its skip flag."""
        return {
            "starred": not self.config.skip_starred,
            "owned": not self.config.skip_owned,
            "membership": not self.config.skip_organisations,
        }

    def sources(self, cancel: threading.Event) -> list[Paginator]:
        logger.debug("GitLab filters for %s: %s", self.provider(), self.filters())
        return [Paginator(self.projects(), cancel, name=f"{self.provider()} projects")]

    def projects(self):
        """Page fetcher for ``GET /projects``."""
        filters = {k: str(v).lower() for k, v in self.filters().items()}

        def fetch(cancel: threading.Event, page: int) -> PageResult:
            # GitLab pages are numbered from 1
            response = self.gl.http_get(
                "/projects",
                query_data=dict(filters, page=page + 1, per_page=PAGE_SIZE),
                raw=True,
                obey_rate_limit=False,
                retry_transient_errors=False,
                max_retries=0,
            )
            provider = self.provider()
            records = [
                Repo(
                    provider=provider,
                    name=project["path_with_namespace"],
                    url=project["ssh_url_to_repo"],
                )
                for project in response.json() or []
            ]
            next_page, last_page = _header_pages(response.headers, page)
            return PageResult(
                records=records,
                next_page=next_page,
                last_page=last_page,
                rate_info=RateInfo.from_headers(response.headers, "ratelimit"),
            )

        return fetch


def _base_url(host: str) -> str:
    if "://" in host:
        return host.rstrip("/")
    return f"https://{host.rstrip('/')}"


def _header_pages(headers, page: int) -> tuple[int | None, int]:
    """Zero-based (next, last) page indices from GitLab pagination headers.

    ``X-Total-Pages`` is omitted for very large listings, in which case
    ``X-Next-Page`` decides whether there is more to fetch.
    """
    next_page = _to_page(headers.get("X-Next-Page"))
    total = _to_page(headers.get("X-Total-Pages"))

    if total is not None:
        last_page = max(total - 1, 0)
    elif next_page is not None:
        last_page = next_page - 1
    else:
        last_page = page

    return (next_page - 1 if next_page is not None else None), last_page


def _to_page(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        return None
