from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from git import Actor, Repo


def pytest_sessionstart(session):  # type: ignore[override]
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))
    os.environ.setdefault("PYTHONPATH", str(src))
    # Keep test runs from writing log files under ~/.branchwatch
    os.environ.setdefault("BRANCHWATCH_LOG_DISABLE_FILE", "1")


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio to use asyncio backend only.

    git() hands the subprocess call to asyncio.to_thread, which trio can't run.
    """
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Point config discovery at an empty home and reset the config cache."""
    from branchwatch import config_loader

    home = tmp_path_factory.mktemp("home")
    monkeypatch.setattr(
        config_loader, "_user_config_file", lambda: home / ".branchwatch" / "config.toml"
    )
    for env_var in config_loader.ENV_MAPPING:
        monkeypatch.delenv(env_var, raising=False)
    config_loader.clear_config_cache()
    yield
    config_loader.clear_config_cache()


ACTOR = Actor("Jane Doe", "jane@example.com")


def commit_file(repo: Repo, filename: str, content: str, message: str):
    """Write a file and commit it with a fixed author and committer."""
    (Path(repo.working_tree_dir) / filename).write_text(content)
    repo.index.add([filename])
    return repo.index.commit(message, author=ACTOR, committer=ACTOR)


@pytest.fixture
def work_repo(tmp_path: Path, monkeypatch) -> Repo:
    """A repository on ``main`` tracking ``origin/main`` in a bare remote."""
    # Stop git from discovering a repository above tmp_path
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path.parent))

    remote_path = tmp_path / "remote.git"
    Repo.init(remote_path, bare=True)

    repo = Repo.init(tmp_path / "work")
    commit_file(repo, "README.md", "# work\n", "Initial commit")
    repo.git.branch("-M", "main")
    repo.create_remote("origin", remote_path.as_posix())
    repo.git.push("-u", "origin", "main")
    return repo
