import logging
import os
import pathlib
import shutil
import subprocess

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
requires_non_root = pytest.mark.skipif(
    hasattr(os, "geteuid") and os.geteuid() == 0,
    reason="permission bits are not enforced for root",
)


def make_tree(root: pathlib.Path, files: dict[str, str | bytes]) -> pathlib.Path:
    """Create files under root; values are file contents."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


def git(repo: pathlib.Path, *args: str, timestamp: int | None = None) -> str:
    env = dict(os.environ)
    if timestamp is not None:
        env["GIT_AUTHOR_DATE"] = f"{timestamp} +0000"
        env["GIT_COMMITTER_DATE"] = f"{timestamp} +0000"
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=True,
        capture_output=True,
        text=True,
        env=env,
    )
    return result.stdout.strip()


def commit_all(repo: pathlib.Path, message: str, timestamp: int) -> str:
    """Stage everything, commit at a fixed time and return the commit hash."""
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "--no-verify", "-m", message, timestamp=timestamp)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch):
    """Keep the user's git configuration and global excludes out of the tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test Author")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "author@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test Committer")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "committer@example.com")
    yield
    base = logging.getLogger("allmycircuits")
    for handler in list(base.handlers):
        base.removeHandler(handler)
    base.setLevel(logging.NOTSET)


@pytest.fixture
def git_repo(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "config", "commit.gpgsign", "false")
    return repo
