"""Shared test fixtures for cl-trigger."""

from collections.abc import Generator
from pathlib import Path

from click.testing import CliRunner
from git import Repo
import pytest

from .mocks import MockGerritClient, RecordingSink


CODEREVIEW_CFG = """\
# test repository
gerrit: https://review.example.com/org/proj
github: https://github.com/org/proj
cue-unity: https://github.com/org/unity
"""

CONFIG_YAML = """\
gerrit:
  username: "gerrit-user"
  password: "gerrit-secret"
github:
  username: "github-user"
  token: "github-token"
"""


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner for testing commands."""
    return CliRunner()


@pytest.fixture
def mock_gerrit() -> MockGerritClient:
    """Create a mock Gerrit client with no changes."""
    return MockGerritClient()


@pytest.fixture
def recording_sink() -> RecordingSink:
    """Create a sink that records deliveries."""
    return RecordingSink()


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at an empty directory so a user config is never picked up."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var in ("GERRIT_USER", "GERRIT_PASSWORD", "GITHUB_USER", "GITHUB_PAT", "CL_TRIGGER_DEBUG"):
        monkeypatch.delenv(var, raising=False)
    return home


def commit_file(repo: Repo, name: str, message: str) -> str:
    """Write a file named ``name`` and commit it with ``message``.

    Returns:
        The new commit's SHA.
    """
    path = Path(repo.working_tree_dir) / name
    path.write_text(f"{name}\n")
    repo.index.add([name])
    return repo.index.commit(message).hexsha


@pytest.fixture
def temp_git_repo(tmp_path: Path) -> Generator[tuple[Path, Repo], None, None]:
    """Create a temporary git repository tracking an ``origin/main`` upstream.

    Yields:
        Tuple of (repo_path, Repo instance).
    """
    origin_path = tmp_path / "origin.git"
    Repo.init(origin_path, bare=True)

    repo_path = tmp_path / "test_repo"
    repo_path.mkdir()

    # Initialize repo
    repo = Repo.init(repo_path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    commit_file(repo, "README.md", "Initial commit")
    repo.git.branch("-M", "main")

    origin = repo.create_remote("origin", str(origin_path))
    origin.push("main:main")
    origin.fetch()
    repo.heads.main.set_tracking_branch(origin.refs.main)

    yield repo_path, repo

    # Cleanup is handled by tmp_path fixture


@pytest.fixture
def configured_repo(temp_git_repo: tuple[Path, Repo], monkeypatch: pytest.MonkeyPatch) -> tuple[Path, Repo]:
    """Temp repository with a codereview.cfg, used as the working directory."""
    repo_path, repo = temp_git_repo
    (repo_path / "codereview.cfg").write_text(CODEREVIEW_CFG)
    monkeypatch.chdir(repo_path)
    return repo_path, repo


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a YAML config file holding credentials.

    Returns:
        Path to the config file.
    """
    config_path = tmp_path / "config.yaml"
    config_path.write_text(CONFIG_YAML)
    return config_path


# Markers for slow tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
