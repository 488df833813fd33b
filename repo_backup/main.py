"""Main entry point for repo-backup."""

import argparse
import json
import signal
import threading
from pathlib import Path

import toml
import yaml
from rich.console import Console

from .config import Config, ConfigError, example_config, load_config as parse_config
from .crawler.orchestrator import fetch_repos
from .crawler.repo_manager import MirrorSummary, RepoManager
from .logger import configure_logging

console = Console()

DEFAULT_CONFIG = "~/.repo-backup.yaml"


def load_config(config_path: Path) -> Config:
    """Load the configuration file, exiting with every problem on failure."""
    config_path = config_path.expanduser()
    if not config_path.exists():
        console.print(f"[red]Error:[/red] Config file not found: {config_path}")
        console.print(
            f"Run `repo-backup --example-config > {DEFAULT_CONFIG}` and fill in your API keys."
        )
        raise SystemExit(1)

    try:
        return parse_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] Invalid config file {config_path}")
        for error in e.errors:
            console.print(f"  - {error}", markup=False)
        raise SystemExit(1)
    except (yaml.YAMLError, toml.TomlDecodeError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] Unable to parse {config_path}")
        console.print(f"  {e}", markup=False)
        raise SystemExit(1)


def print_example_config() -> None:
    text = yaml.safe_dump(example_config().to_dict(), sort_keys=False)
    console.print(text, markup=False, highlight=False, soft_wrap=True, end="")


def run_list(config: Config, cancel: threading.Event) -> int:
    """Enumerate repositories without downloading them."""
    count = 0
    for repo in fetch_repos(config, cancel):
        console.print(f"  {repo.provider}/{repo.name} [dim]{repo.url}[/dim]")
        count += 1

    console.print(f"\n[bold]Found {count} repositories[/bold]")
    return count


def run_mirror(config: Config, cancel: threading.Event) -> MirrorSummary:
    """Enumerate repositories and mirror each one under the root directory."""
    general = config.general
    manager = RepoManager(
        base_path=general.root,
        concurrency=general.threads,
        blacklist=general.blacklist,
    )

    summary = manager.mirror(
        fetch_repos(config, cancel),
        cancel,
        error_threshold=general.error_threshold,
    )

    console.print(
        f"\n[bold]Mirrored {summary.succeeded} repositories[/bold] "
        f"({summary.failed} failed, {summary.skipped} skipped, "
        f"{summary.bytes_downloaded / 1_048_576:.1f} MiB downloaded)"
    )
    return summary


def _install_interrupt_handler(cancel: threading.Event) -> None:
    """First Ctrl-C cancels the run cleanly, the second one aborts."""
    def handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        console.print("[yellow]Cancelling, waiting for in-flight work...[/yellow]")
        cancel.set()

    signal.signal(signal.SIGINT, handler)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="repo-backup - Mirror your GitHub and GitLab repositories locally"
    )
    parser.add_argument(
        "--config", "-c",
        default=DEFAULT_CONFIG,
        help=f"Path to a YAML, TOML or JSON configuration file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Verbose output (repeat for more verbosity)",
    )
    parser.add_argument(
        "--example-config",
        action="store_true",
        help="Print an example config and exit",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Only list repositories (don't clone or update)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Stop fetching repositories after this many seconds",
    )

    args = parser.parse_args(argv)

    if args.example_config:
        print_example_config()
        return 0

    configure_logging(args.verbose)
    config = load_config(Path(args.config))

    cancel = threading.Event()
    _install_interrupt_handler(cancel)

    timer = None
    if args.timeout:
        timer = threading.Timer(args.timeout, cancel.set)
        timer.daemon = True
        timer.start()

    try:
        if args.list:
            run_list(config, cancel)
            return 0

        summary = run_mirror(config, cancel)
        return 1 if summary.failed else 0
    finally:
        if timer is not None:
            timer.cancel()


if __name__ == "__main__":
    raise SystemExit(main())
