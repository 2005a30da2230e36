"""Configuration loading and validation for cl-trigger.

Repository settings come from the ``codereview.cfg`` file at the root of the
git working tree (the same file git-codereview reads). An optional YAML file
can override them and carries credentials, policy and logging settings.
Missing credentials are looked up with ``git credential fill`` and finally
from environment variables.
"""

import logging
import os
from pathlib import Path
import re
import subprocess
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator
import yaml

from .models import DispatchTarget, TriggerKind
from .policy import APPROVED_VALUE, TRYBOT_LABEL


logger = logging.getLogger(__name__)

CODEREVIEW_CFG = "codereview.cfg"

# Checked in order; the first present entry names the unity repository
UNITY_KEYS = ["cue-unity-new", "cue-unity"]

DEFAULT_CONFIG_PATH = Path("~/.cl_trigger/config.yaml")


class ConfigError(Exception):
    """Raised when configuration is missing or invalid."""

    pass


class GerritConfig(BaseModel):
    """Gerrit server configuration."""

    url: str
    project: str = ""
    username: Optional[str] = None
    password: Optional[str] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("username", "password")
    @classmethod
    def resolve_env_var(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return _resolve_env_var(v)


class GitHubConfig(BaseModel):
    """GitHub repository that runs the trybot workflow."""

    url: str
    owner: str
    repo: str
    username: Optional[str] = None
    token: Optional[str] = None
    api_url: Optional[str] = None  # None means api.github.com

    @field_validator("username", "token")
    @classmethod
    def resolve_env_var(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return _resolve_env_var(v)


class UnityConfig(BaseModel):
    """GitHub repository that runs the unity compatibility tests."""

    owner: str
    repo: str


class PolicyConfig(BaseModel):
    """When an already tested revision is skipped."""

    label: str = TRYBOT_LABEL
    approved_value: int = APPROVED_VALUE


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    file: Optional[str] = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Level must be one of: {valid_levels}")
        return v

    @property
    def resolved_file(self) -> Optional[Path]:
        if self.file:
            return Path(self.file).expanduser()
        return None


class Config(BaseModel):
    """Main configuration model."""

    gerrit: GerritConfig
    github: GitHubConfig
    unity: Optional[UnityConfig] = None
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def project(self) -> str:
        """Gerrit project, defaulting to the GitHub owner/repo."""
        return self.gerrit.project or f"{self.github.owner}/{self.github.repo}"

    def trybot_target(self) -> DispatchTarget:
        return DispatchTarget(owner=self.github.owner, repo=self.github.repo, kind=TriggerKind.TRYBOT)

    def unity_target(self) -> Optional[DispatchTarget]:
        if self.unity is None:
            return None
        return DispatchTarget(owner=self.unity.owner, repo=self.unity.repo, kind=TriggerKind.UNITY)

    def dispatch_targets(self, include_unity: bool = True) -> list[DispatchTarget]:
        """Targets to notify for each triggered revision."""
        targets = [self.trybot_target()]
        unity = self.unity_target()
        if include_unity and unity is not None:
            targets.append(unity)
        return targets


def _resolve_env_var(value: str) -> str:
    """Resolve environment variable references in config values.

    Supports ${VAR_NAME} syntax.
    """
    pattern = r"\$\{([^}]+)\}"
    match = re.match(pattern, value)
    if match:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise ValueError(f"Environment variable {var_name} not set")
        return env_value
    return value


def parse_codereview_cfg(text: str, source: str = CODEREVIEW_CFG) -> dict[str, str]:
    """Parse ``key: value`` lines. Blank lines and ``#`` comments are ignored.

    Raises:
        ConfigError: On a line without a colon.
    """
    cfg = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(":")
        if not sep:
            raise ConfigError(f"bad config line in {source}; expected 'key: value': {line!r}")
        cfg[key.strip()] = value.strip()
    return cfg


def read_codereview_cfg(root: Path) -> dict[str, str]:
    """Read codereview.cfg from the root of a working tree."""
    path = root / CODEREVIEW_CFG
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigError(f"failed to load config from {path}: {e}") from e
    return parse_codereview_cfg(text, str(path))


def gerrit_url_to_server(url: str) -> tuple[str, str]:
    """Split a Gerrit project URL into server URL and project name.

    Example: ``https://review.example.com/org/repo`` ->
    ``("https://review.example.com", "org/repo")``.
    """
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ConfigError(f"failed to derive Gerrit server from {url!r}")
    server = f"{parsed.scheme}://{parsed.netloc}"
    return server, parsed.path.strip("/")


def github_url_to_parts(url: str) -> tuple[str, str]:
    """Split ``https://github.com/owner/repo`` into ``(owner, repo)``."""
    parsed = urlparse(url)
    parts = parsed.path.strip("/").split("/")
    if not parsed.netloc or len(parts) != 2 or not all(parts):
        raise ConfigError(f"failed to derive GitHub owner and repo from {url!r}")
    owner, repo = parts
    return owner, repo.removesuffix(".git")


def github_api_url(url: str) -> Optional[str]:
    """API base URL for the host of ``url``; None for github.com."""
    parsed = urlparse(url)
    if parsed.netloc in ("github.com", "www.github.com"):
        return None
    return f"{parsed.scheme}://{parsed.netloc}/api/v3"


def git_credentials(url: str, cwd: Path | None = None) -> tuple[str, str]:
    """Ask the configured git credential helpers for a username and password.

    Returns:
        ``(username, password)``; either may be empty.

    Raises:
        ConfigError: If ``git credential fill`` fails or prints unexpected output.
    """
    parsed = urlparse(url)
    request = f"protocol={parsed.scheme}\nhost={parsed.netloc}\npath={parsed.path.lstrip('/')}\n"

    # Never prompt on the terminal; a missing credential falls back to env vars
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    try:
        result = subprocess.run(
            ["git", "credential", "fill"],
            input=request,
            capture_output=True,
            text=True,
            cwd=cwd,
            env=env,
        )
    except FileNotFoundError as e:
        raise ConfigError("git is not installed") from e
    if result.returncode != 0:
        raise ConfigError(f"git credential fill failed for {parsed.netloc}: {result.stderr.strip()}")

    username = password = ""
    for line in result.stdout.splitlines():
        if not line:
            continue
        key, sep, value = line.partition("=")
        if not sep:
            raise ConfigError(f"invalid git credential output line: {line!r}")
        if key == "username":
            username = value
        elif key == "password":
            password = value
        elif key in ("protocol", "host", "path"):
            continue
        else:
            # e.g. an oauth helper we don't understand
            raise ConfigError(f"unknown git credential output key: {key!r}")
    return username, password


def _lookup_credentials(url: str, user_var: str, password_var: str, cwd: Path | None) -> tuple[str, str]:
    try:
        username, password = git_credentials(url, cwd)
    except ConfigError as e:
        logger.debug(f"git credential lookup failed: {e}")
        username = password = ""

    if username and password:
        logger.debug(f"Using git credentials for {url}")
        return username, password

    username = os.environ.get(user_var, "")
    password = os.environ.get(password_var, "")
    if not username or not password:
        raise ConfigError(f"configure a git credential helper for {url} or set {user_var} and {password_var}")
    return username, password


def _from_codereview_cfg(cfg: dict[str, str]) -> dict[str, Any]:
    gerrit_url = cfg.get("gerrit")
    if not gerrit_url:
        raise ConfigError("missing Gerrit server in codereview config")
    github_url = cfg.get("github")
    if not github_url:
        raise ConfigError("missing GitHub repo in codereview config")

    server, project = gerrit_url_to_server(gerrit_url)
    owner, repo = github_url_to_parts(github_url)
    raw: dict[str, Any] = {
        "gerrit": {"url": server, "project": project},
        "github": {"url": github_url, "owner": owner, "repo": repo, "api_url": github_api_url(github_url)},
    }

    for key in UNITY_KEYS:
        if cfg.get(key):
            unity_owner, unity_repo = github_url_to_parts(cfg[key])
            raw["unity"] = {"owner": unity_owner, "repo": unity_repo}
            break

    return raw


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    repo_root: Path,
    config_path: Optional[Path] = None,
    resolve_credentials: bool = True,
) -> Config:
    """Load configuration for the repository at ``repo_root``.

    Args:
        repo_root: Root of the git working tree holding codereview.cfg.
        config_path: Optional YAML override file. If None, the default
            location is used when it exists.
        resolve_credentials: Fill in missing Gerrit and GitHub credentials.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If configuration is missing, invalid, or incomplete.
    """
    raw = _from_codereview_cfg(read_codereview_cfg(repo_root))

    if config_path is None and DEFAULT_CONFIG_PATH.expanduser().exists():
        config_path = DEFAULT_CONFIG_PATH
    if config_path is not None:
        config_path = Path(config_path).expanduser()
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        with open(config_path) as f:
            overrides = yaml.safe_load(f) or {}
        if not isinstance(overrides, dict):
            raise ConfigError(f"Config file must contain a mapping: {config_path}")
        logger.debug(f"Applying overrides from {config_path}")
        raw = _merge(raw, overrides)

    try:
        config = Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    if resolve_credentials:
        fill_credentials(config, repo_root)
    return config


def fill_credentials(config: Config, cwd: Path | None = None) -> None:
    """Complete missing Gerrit and GitHub credentials in place."""
    gerrit = config.gerrit
    if not (gerrit.username and gerrit.password):
        gerrit.username, gerrit.password = _lookup_credentials(
            f"{gerrit.url}/{gerrit.project}", "GERRIT_USER", "GERRIT_PASSWORD", cwd
        )

    github = config.github
    if not github.token:
        github.username, github.token = _lookup_credentials(github.url, "GITHUB_USER", "GITHUB_PAT", cwd)
