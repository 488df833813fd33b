"""Repository mirroring: clone new repositories, update existing ones."""

import logging
import re
import subprocess
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from .models import Repo, UpdateStats

console = Console()
logger = logging.getLogger(__name__)


class MirrorError(Exception):
    """Mirroring a repository failed, in git or on the local filesystem."""

    def __init__(self, repo: Repo, detail: str, command: list[str] | None = None):
        self.repo = repo
        self.command = command
        self.detail = detail.strip()
        if command:
            message = f"({repo.name}) `{' '.join(command)}` failed: {self.detail}"
        else:
            message = f"({repo.name}) {self.detail}"
        super().__init__(message)


@dataclass
class MirrorSummary:
    """Outcome of mirroring a stream of repositories."""
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    bytes_downloaded: int = 0
    errors: list[MirrorError] = field(default_factory=list)


class RepoManager:
    """Manages local mirrors under ``root/<host>/<owner>/<project>``."""

    def __init__(
        self,
        base_path: Path | str,
        concurrency: int = 4,
        blacklist: list[str] | None = None,
        timeout: int = 600,
    ):
        self.base_path = Path(base_path)
        self.concurrency = concurrency
        self.blacklist = [re.compile(p) for p in (blacklist or [])]
        self.timeout = timeout

    def get_repo_path(self, repo: Repo) -> Path:
        """Get local path for a repository."""
        host = repo.provider
        if "://" in host:
            host = host.split("://", 1)[1]
        return self.base_path / host.strip("/") / repo.name

    def is_blacklisted(self, repo: Repo) -> bool:
        """Check ``provider/name`` against the blacklist patterns."""
        key = f"{repo.provider}/{repo.name}"
        return any(pattern.search(key) for pattern in self.blacklist)

    def download(self, repo: Repo) -> UpdateStats:
        """Clone ``repo`` if it is missing locally, otherwise pull it.

        Submodules are cloned or updated as well. Raises ``MirrorError`` if a
        git command fails or the destination cannot be prepared.
        """
        try:
            return self._download(repo)
        except OSError as e:
            raise MirrorError(repo, str(e)) from e

    def _download(self, repo: Repo) -> UpdateStats:
        start = time.monotonic()
        local_path = self.get_repo_path(repo)
        before = _dir_size(local_path / ".git")

        if not (local_path / ".git").exists():
            local_path.parent.mkdir(parents=True, exist_ok=True)
            self._git(
                repo,
                ["git", "clone", "--recurse-submodules", repo.url, str(local_path)],
                cwd=local_path.parent,
            )
        else:
            self._git(repo, ["git", "pull", "--all"], cwd=local_path)
            self._git(
                repo,
                ["git", "submodule", "update", "--recursive", "--init"],
                cwd=local_path,
            )

        stats = UpdateStats(
            bytes_downloaded=max(_dir_size(local_path / ".git") - before, 0),
            duration=time.monotonic() - start,
        )
        logger.debug(
            "Downloaded %s to %s (%d bytes in %.1fs)",
            repo.name,
            local_path,
            stats.bytes_downloaded,
            stats.duration,
        )
        return stats

    def mirror(
        self,
        repos: Iterable[Repo],
        cancel: threading.Event,
        error_threshold: int = 0,
        show_progress: bool = True,
    ) -> MirrorSummary:
        """Mirror repositories as they arrive, ``concurrency`` at a time.

        Blacklisted repositories and destinations already handled in this run
        are skipped. Once ``error_threshold`` failures (0 = unlimited) have
        been seen, ``cancel`` is set and the remaining repositories are
        skipped.
        """
        summary = MirrorSummary()
        seen: set[Path] = set()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TextColumn("{task.completed} done"),
            console=console,
            disable=not show_progress,
        ) as progress:
            task = progress.add_task("Mirroring repos...", total=None)

            def record(future: Future, repo: Repo) -> None:
                try:
                    stats = future.result()
                except MirrorError as e:
                    summary.failed += 1
                    summary.errors.append(e)
                    progress.console.print(f"  [red]✗[/red] {repo.name}: {e.detail}")
                    logger.warning("Error backing up %s: %s", repo.url, e)
                    if error_threshold and summary.failed >= error_threshold:
                        if not cancel.is_set():
                            logger.error(
                                "Too many errors were encountered (%d). Bailing",
                                summary.failed,
                            )
                        cancel.set()
                else:
                    summary.succeeded += 1
                    summary.bytes_downloaded += stats.bytes_downloaded
                    progress.console.print(f"  [green]✓[/green] {repo.name}")
                progress.advance(task)

            with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
                pending: dict[Future, Repo] = {}

                for repo in repos:
                    path = self.get_repo_path(repo)
                    if cancel.is_set() or path in seen or self.is_blacklisted(repo):
                        summary.skipped += 1
                        continue
                    seen.add(path)

                    pending[executor.submit(self.download, repo)] = repo
                    if len(pending) >= self.concurrency:
                        done, _ = wait(pending, return_when=FIRST_COMPLETED)
                        for future in done:
                            record(future, pending.pop(future))

                for future in wait(pending).done:
                    record(future, pending[future])

        return summary

    def _git(self, repo: Repo, cmd: list[str], cwd: Path) -> None:
        logger.debug("(%s) Running %s in %s", repo.name, " ".join(cmd), cwd)
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise MirrorError(repo, "timed out", cmd)
        except OSError as e:
            raise MirrorError(repo, f"unable to execute: {e}", cmd)

        if result.returncode != 0:
            raise MirrorError(
                repo, result.stderr or f"exit status {result.returncode}", cmd
            )


def _dir_size(path: Path) -> int:
    if not path.exists():
        return 0
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())
