"""Tests for the repository mirror stage."""

import subprocess
import threading
from pathlib import Path

import pytest

from repo_backup.crawler import repo_manager
from repo_backup.crawler.models import Repo
from repo_backup.crawler.repo_manager import MirrorError, RepoManager

from fakes import make_repos


class FakeGit:
    """Records git invocations, failing for URLs listed in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.commands: list[tuple[list[str], Path]] = []
        self._lock = threading.Lock()

    def __call__(self, cmd, cwd=None, **kwargs):
        with self._lock:
            self.commands.append((list(cmd), Path(cwd)))
        if any(url in cmd for url in self.failing):
            return subprocess.CompletedProcess(cmd, 128, "", "fatal: repository not found\n")
        if cmd[:2] == ["git", "clone"]:
            git_dir = Path(cmd[-1]) / ".git"
            git_dir.mkdir(parents=True)
            (git_dir / "HEAD").write_text("ref: refs/heads/main\n")
        return subprocess.CompletedProcess(cmd, 0, "", "")


@pytest.fixture
def fake_git(monkeypatch):
    git = FakeGit()
    monkeypatch.setattr(repo_manager.subprocess, "run", git)
    return git


def test_repo_path_uses_host_and_name(tmp_path):
    manager = RepoManager(tmp_path)

    assert manager.get_repo_path(Repo("github.com", "a/b", "")) == tmp_path / "github.com" / "a/b"
    assert (
        manager.get_repo_path(Repo("https://git.example.com/", "g/p", ""))
        == tmp_path / "git.example.com" / "g/p"
    )


def test_blacklist_matches_provider_and_name(tmp_path):
    manager = RepoManager(tmp_path, blacklist=[r"^github\.com/big-org/", "archive"])

    assert manager.is_blacklisted(Repo("github.com", "big-org/x", ""))
    assert manager.is_blacklisted(Repo("gitlab.com", "me/archive-2019", ""))
    assert not manager.is_blacklisted(Repo("gitlab.com", "big-org/x", ""))


def test_download_clones_missing_repo(tmp_path, fake_git):
    repo = Repo("github.com", "me/project", "git@github.com:me/project.git")
    manager = RepoManager(tmp_path)

    stats = manager.download(repo)

    [(cmd, cwd)] = fake_git.commands
    dest = tmp_path / "github.com" / "me" / "project"
    assert cmd == ["git", "clone", "--recurse-submodules", repo.url, str(dest)]
    assert cwd == dest.parent
    assert stats.bytes_downloaded > 0
    assert stats.duration >= 0


def test_download_pulls_existing_repo(tmp_path, fake_git):
    repo = Repo("github.com", "me/project", "git@github.com:me/project.git")
    dest = tmp_path / "github.com" / "me" / "project"
    (dest / ".git").mkdir(parents=True)

    RepoManager(tmp_path).download(repo)

    assert [cmd for cmd, _ in fake_git.commands] == [
        ["git", "pull", "--all"],
        ["git", "submodule", "update", "--recursive", "--init"],
    ]
    assert all(cwd == dest for _, cwd in fake_git.commands)


def test_download_failure_raises(tmp_path, fake_git):
    repo = Repo("github.com", "me/gone", "git@github.com:me/gone.git")
    fake_git.failing.add(repo.url)

    with pytest.raises(MirrorError, match="repository not found"):
        RepoManager(tmp_path).download(repo)


def test_mirror_skips_blacklisted_and_duplicates(tmp_path, fake_git):
    repos = make_repos("me", 3)
    stream = iter(repos + [repos[0], Repo("github.com", "skip/me", "git@github.com:skip/me.git")])
    manager = RepoManager(tmp_path, concurrency=2, blacklist=["^github.com/skip/"])

    summary = manager.mirror(stream, threading.Event(), show_progress=False)

    assert summary.succeeded == 3
    assert summary.skipped == 2
    assert summary.failed == 0
    assert len(fake_git.commands) == 3


def test_mirror_counts_failures(tmp_path, fake_git):
    repos = make_repos("me", 4)
    fake_git.failing.add(repos[1].url)

    summary = RepoManager(tmp_path).mirror(iter(repos), threading.Event(), show_progress=False)

    assert summary.succeeded == 3
    assert summary.failed == 1
    assert summary.errors[0].repo == repos[1]


def test_error_threshold_cancels_the_run(tmp_path, fake_git):
    repos = make_repos("me", 10)
    fake_git.failing.update(r.url for r in repos)
    cancel = threading.Event()

    summary = RepoManager(tmp_path, concurrency=1).mirror(
        iter(repos), cancel, error_threshold=2, show_progress=False
    )

    assert cancel.is_set()
    assert summary.failed == 2
    assert summary.skipped == 8


def test_unwritable_destination_is_a_per_repo_failure(tmp_path, fake_git):
    (tmp_path / "github.com").mkdir()
    (tmp_path / "github.com" / "blocked").write_text("not a directory\n")
    blocked = Repo("github.com", "blocked/x", "git@github.com:blocked/x.git")
    ok = Repo("github.com", "ok/y", "git@github.com:ok/y.git")

    summary = RepoManager(tmp_path, concurrency=1).mirror(
        iter([blocked, ok]), threading.Event(), show_progress=False
    )

    assert summary.succeeded == 1
    assert summary.failed == 1
    assert summary.errors[0].repo == blocked
    assert summary.errors[0].command is None
    assert (tmp_path / "github.com" / "ok" / "y" / ".git").is_dir()
    assert [cmd[-1] for cmd, _ in fake_git.commands] == [str(tmp_path / "github.com" / "ok" / "y")]
