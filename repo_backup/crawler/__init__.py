"""Repository crawler module."""

from .models import PageResult, RateInfo, Repo, UpdateStats
from .github_client import GitHubProvider
from .gitlab_client import GitLabProvider
from .merger import merge
from .orchestrator import build_sources, fetch_repos
from .paginator import Paginator
from .repo_manager import MirrorError, MirrorSummary, RepoManager

__all__ = [
    "Repo",
    "PageResult",
    "RateInfo",
    "UpdateStats",
    "GitHubProvider",
    "GitLabProvider",
    "Paginator",
    "merge",
    "build_sources",
    "fetch_repos",
    "RepoManager",
    "MirrorError",
    "MirrorSummary",
]
