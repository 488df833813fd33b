"""Wire configured providers into a single stream of repositories."""

import logging
import threading
from typing import Iterator

import gitlab
from github import Github

from ..config import Config
from .github_client import GitHubProvider
from .gitlab_client import GitLabProvider
from .merger import merge
from .models import Repo
from .paginator import Paginator

logger = logging.getLogger(__name__)


def build_sources(
    config: Config,
    cancel: threading.Event,
    github_client: Github | None = None,
    gitlab_client: gitlab.Gitlab | None = None,
) -> list[Paginator]:
    """Create one paginator per logical source of every enabled provider.

    ``config`` must already be validated.
    """
    sources: list[Paginator] = []

    if config.github is not None:
        sources.extend(GitHubProvider(config.github, github_client).sources(cancel))
    if config.gitlab is not None:
        sources.extend(GitLabProvider(config.gitlab, gitlab_client).sources(cancel))

    logger.info(
        "Fetching from %d source(s): %s",
        len(sources),
        ", ".join(s.name for s in sources) or "none",
    )
    return sources


def fetch_repos(
    config: Config,
    cancel: threading.Event,
    github_client: Github | None = None,
    gitlab_client: gitlab.Gitlab | None = None,
) -> Iterator[Repo]:
    """Stream every repository from every configured provider.

    The config is validated up front, so a missing credential raises
    ``ConfigError`` before any request is made. A source that fails part way
    simply stops contributing; the others carry on. Setting ``cancel`` ends
    the stream within one page per source.
    """
    config.validate()
    sources = build_sources(config, cancel, github_client, gitlab_client)
    return _stream(sources)


def _stream(sources: list[Paginator]) -> Iterator[Repo]:
    count = 0
    for repo in merge(sources):
        count += 1
        yield repo

    logger.info(
        "Found %d repositories (%d pages)", count, sum(s.pages for s in sources)
    )
    for source in sources:
        if source.error is not None:
            logger.warning("%s stopped early: %s", source.name, source.error)
