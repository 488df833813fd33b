"""GitHub API client for repository discovery."""

import logging
import threading
from urllib.parse import parse_qs, urlparse

from github import Auth, Github
from requests.utils import parse_header_links

from ..config import GitHubConfig
from .models import PAGE_SIZE, PageResult, RateInfo, Repo
from .paginator import Paginator

logger = logging.getLogger(__name__)

GITHUB_PROVIDER = "github.com"


class GitHubProvider:
    """Lists owned, organisation, collaborator and starred GitHub repos."""

    def __init__(self, config: GitHubConfig, client: Github | None = None):
        self.config = config
        # One request per page: PyGithub retries 403/5xx responses by default
        self.gh = client or Github(
            auth=Auth.Token(config.api_key),
            per_page=PAGE_SIZE,
            retry=None,
        )

    def provider(self) -> str:
        return GITHUB_PROVIDER

    def affiliations(self) -> list[str]:
        """Affiliations to request, in the order the API documents them."""
        affiliations = []
        if not self.config.skip_owned:
            affiliations.append("owner")
        if not self.config.skip_organisations:
            affiliations.append("organization_member")
        if not self.config.skip_collaborator:
            affiliations.append("collaborator")
        return affiliations

    def sources(self, cancel: threading.Event) -> list[Paginator]:
        """One paginator per enabled listing."""
        sources = []

        affiliations = self.affiliations()
        logger.debug(
            "GitHub affiliations: %s, starred: %s",
            ",".join(affiliations) or "none",
            not self.config.skip_starred,
        )
        if affiliations:
            sources.append(Paginator(
                self.owned_and_orgs(affiliations),
                cancel,
                name="github owned/org repos",
            ))
        if not self.config.skip_starred:
            sources.append(Paginator(
                self.starred(),
                cancel,
                name="github starred repos",
            ))

        return sources

    def owned_and_orgs(self, affiliations: list[str]):
        """Page fetcher for ``GET /user/repos``."""
        def fetch(cancel: threading.Event, page: int) -> PageResult:
            return self._get_page(
                "/user/repos",
                page,
                {"affiliation": ",".join(affiliations)},
            )
        return fetch

    def starred(self):
        """Page fetcher for ``GET /user/starred``."""
        def fetch(cancel: threading.Event, page: int) -> PageResult:
            return self._get_page("/user/starred", page, {})
        return fetch

    def _get_page(self, url: str, page: int, params: dict) -> PageResult:
        # GitHub pages are numbered from 1
        parameters = dict(params, page=page + 1, per_page=PAGE_SIZE)
        headers, data = self.gh.requester.requestJsonAndCheck(
            "GET", url, parameters=parameters
        )

        records = [self._to_repo(item) for item in data or []]
        next_page, last_page = _link_pages(headers.get("link"), page)

        return PageResult(
            records=records,
            next_page=next_page,
            last_page=last_page,
            rate_info=RateInfo.from_headers(headers, "x-ratelimit"),
        )

    def _to_repo(self, item: dict) -> Repo:
        return Repo(
            provider=GITHUB_PROVIDER,
            name=item["full_name"],
            url=item["ssh_url"],
        )


def _link_pages(link: str | None, page: int) -> tuple[int | None, int]:
    """Zero-based (next, last) page indices from a ``Link`` header.

    Without a ``last`` relation the current page is the last one unless a
    ``next`` relation says otherwise.
    """
    pages = {}
    for value in parse_header_links(link or ""):
        number = _page_param(value.get("url", ""))
        if number is not None and value.get("rel"):
            pages[value["rel"]] = number - 1

    next_page = pages.get("next")
    last_page = pages.get("last", next_page if next_page is not None else page)
    return next_page, last_page


def _page_param(url: str) -> int | None:
    values = parse_qs(urlparse(url).query).get("page")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None
