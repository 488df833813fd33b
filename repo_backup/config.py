"""Configuration loading and validation for repo-backup."""

import json
import os
import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

import toml
import yaml


class ConfigError(Exception):
    """One or more configuration sections are invalid."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(self._describe())

    def _describe(self) -> str:
        if not self.errors:
            return "No errors occurred"
        if len(self.errors) == 1:
            return self.errors[0]
        head = ", ".join(self.errors[:-1])
        return f"{len(self.errors)} errors occurred: {head} and {self.errors[-1]}"


@dataclass
class GeneralConfig:
    """Settings shared by every provider."""
    root: str = ""
    blacklist: list[str] = field(default_factory=list)
    threads: int = 4
    error_threshold: int = 0

    def validate(self) -> list[str]:
        errors = _type_errors(self, "general")
        if not self.root:
            errors.append("No root provided")
        if _is_int(self.threads) and self.threads < 1:
            errors.append("general.threads must be at least 1")
        if _is_int(self.error_threshold) and self.error_threshold < 0:
            errors.append("general.error-threshold must not be negative")
        if isinstance(self.blacklist, list):
            for pattern in self.blacklist:
                if not isinstance(pattern, str):
                    continue
                try:
                    re.compile(pattern)
                except re.error as e:
                    errors.append(f"Invalid blacklist pattern {pattern!r}: {e}")
        return errors


@dataclass
class GitHubConfig:
    """GitHub settings. Each skip flag drops one kind of repository."""
    api_key: str = ""
    skip_owned: bool = False
    skip_starred: bool = False
    skip_organisations: bool = False
    skip_collaborator: bool = False

    def validate(self) -> list[str]:
        errors = _type_errors(self, "github")
        if not self.api_key:
            errors.append("Missing GitHub API key")
        return errors


@dataclass
class GitLabConfig:
    """GitLab settings. ``host`` points at a self-hosted instance."""
    api_key: str = ""
    host: str = ""
    skip_starred: bool = False
    skip_owned: bool = False
    skip_organisations: bool = False

    def validate(self) -> list[str]:
        errors = _type_errors(self, "gitlab")
        if not self.api_key:
            errors.append("Missing GitLab API key")
        return errors


@dataclass
class Config:
    """The overall configuration."""
    general: GeneralConfig = field(default_factory=GeneralConfig)
    github: GitHubConfig | None = None
    gitlab: GitLabConfig | None = None

    def validate(self) -> None:
        """Check every present section, raising one error listing all problems."""
        errors: list[str] = []
        for section in (self.general, self.github, self.gitlab):
            if section is not None:
                errors.extend(section.validate())
        if errors:
            raise ConfigError(errors)

    @classmethod
    def from_dict(cls, data: dict | None) -> "Config":
        """Build a config from parsed file contents.

        Keys may be written in kebab-case (``api-key``) or snake_case.
        Unknown keys and malformed sections are reported together.
        """
        data = _normalize_keys(data or {})
        errors: list[str] = []

        general = _build_section(GeneralConfig, "general", data.get("general"), errors)
        github = gitlab = None
        if data.get("github") is not None:
            github = _build_section(GitHubConfig, "github", data["github"], errors)
        if data.get("gitlab") is not None:
            gitlab = _build_section(GitLabConfig, "gitlab", data["gitlab"], errors)

        for key in data:
            if key not in ("general", "github", "gitlab"):
                errors.append(f"Unknown section [{key}]")

        if errors:
            raise ConfigError(errors)

        if isinstance(general.root, str):
            general.root = os.path.expandvars(os.path.expanduser(general.root))
        return cls(general=general, github=github, gitlab=gitlab)

    def to_dict(self) -> dict:
        """Serialize with kebab-case keys, leaving out absent sections."""
        out = {"general": asdict(self.general)}
        if self.github is not None:
            out["github"] = asdict(self.github)
        if self.gitlab is not None:
            out["gitlab"] = asdict(self.gitlab)
        return _kebab_keys(out)


def load_config(path: Path | str) -> Config:
    """Load and validate a YAML, TOML or JSON config file."""
    path = Path(path).expanduser()
    text = path.read_text()

    suffix = path.suffix.lower()
    if suffix == ".toml":
        data = toml.loads(text)
    elif suffix == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)

    if data is not None and not isinstance(data, dict):
        raise ConfigError([f"{path} does not contain a mapping"])

    config = Config.from_dict(data)
    config.validate()
    return config


def example_config() -> Config:
    """An example configuration with every provider enabled."""
    return Config(
        general=GeneralConfig(root="/srv/repos", blacklist=["^github.com/some-org/"]),
        github=GitHubConfig(api_key="your API key", skip_starred=True),
        gitlab=GitLabConfig(api_key="your API key", host="gitlab.com"),
    )


def _build_section(cls, name: str, raw, errors: list[str]):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        errors.append(f"[{name}] must be a table")
        return cls()

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    for key in unknown:
        errors.append(f"Unknown key '{key}' in [{name}]")

    return cls(**{k: v for k, v in raw.items() if k in known})


def _normalize_keys(value):
    if isinstance(value, dict):
        return {
            str(k).replace("-", "_"): _normalize_keys(v) for k, v in value.items()
        }
    return value


def _kebab_keys(value):
    if isinstance(value, dict):
        return {k.replace("_", "-"): _kebab_keys(v) for k, v in value.items()}
    return value


def _type_errors(section, name: str) -> list[str]:
    """Report fields whose values do not match their declared type.

    String fields may be left empty (``None``); the required ones are
    checked by the section itself.
    """
    errors = []
    for f in fields(section):
        value = getattr(section, f.name)
        key = f"{name}.{f.name.replace('_', '-')}"
        if f.type is bool and not isinstance(value, bool):
            errors.append(f"{key} must be true or false")
        elif f.type is int and not _is_int(value):
            errors.append(f"{key} must be an integer")
        elif f.type is str and not isinstance(value, (str, type(None))):
            errors.append(f"{key} must be a string")
        elif f.type == list[str] and not (
            isinstance(value, list) and all(isinstance(v, str) for v in value)
        ):
            errors.append(f"{key} must be a list of strings")
    return errors


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
