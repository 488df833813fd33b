"""Shared test fixtures."""

import threading

import pytest

from repo_backup.config import Config, GeneralConfig, GitHubConfig, GitLabConfig

from fakes import FakeGithub, FakeGitlab, FakeRequester, github_repo, gitlab_project


@pytest.fixture
def cancel():
    return threading.Event()


@pytest.fixture
def github_config():
    return GitHubConfig(api_key="gh-token")


@pytest.fixture
def gitlab_config():
    return GitLabConfig(api_key="gl-token")


@pytest.fixture
def config(tmp_path, github_config, gitlab_config):
    """A valid config with both providers enabled."""
    return Config(
        general=GeneralConfig(root=str(tmp_path / "mirror")),
        github=github_config,
        gitlab=gitlab_config,
    )


@pytest.fixture
def github_client():
    requester = FakeRequester({
        "/user/repos": [
            [github_repo("me/alpha"), github_repo("me/beta")],
            [github_repo("org/gamma")],
        ],
        "/user/starred": [
            [github_repo("someone/starred")],
        ],
    })
    return FakeGithub(requester)


@pytest.fixture
def gitlab_client():
    return FakeGitlab([
        [gitlab_project("me/project-a"), gitlab_project("group/project-b")],
        [gitlab_project("group/sub/project-c")],
    ])
