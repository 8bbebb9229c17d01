"""pytest configuration for git-tools tests.

Registers custom markers and provides a throwaway git repository fixture.
"""

import subprocess

import pytest

BRANCH = "feature/FLYF-228-login-form"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "git: Tests that need a git executable and a scratch repository"
    )
    config.addinivalue_line(
        "markers",
        "http: Tests that drive the FastAPI app"
    )


def git(repo, *args):
    return subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True
    ).stdout


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """Provide a fresh repository on a FLYF-228 branch with one commit.

    The working directory is switched to the repository so that tools
    called without an explicit path operate on it.
    """
    path = tmp_path / "repo"
    path.mkdir()
    git(path, "init", "-q")
    git(path, "checkout", "-q", "-b", BRANCH)
    git(path, "config", "user.name", "Tester")
    git(path, "config", "user.email", "tester@example.com")
    git(path, "config", "commit.gpgsign", "false")

    (path / "app.js").write_text(
        "function greet(name) {\n"
        "    return name;\n"
        "}\n",
        encoding="utf-8"
    )
    (path / "util.js").write_text("const a = 1;\n", encoding="utf-8")
    git(path, "add", "-A")
    git(path, "commit", "-q", "-m", "Initial commit")

    monkeypatch.chdir(path)
    yield path
