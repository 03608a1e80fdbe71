import json
from pathlib import Path
from typing import Callable

import pytest

from autofix_api.models.vulnerability import VulnerabilityFix

from fakes import INITIAL_MANIFEST, git


@pytest.fixture
def init_repo(tmp_path: Path) -> Callable[..., Path]:
    """Create a working copy on `main` with a package.json and a bare `origin` remote."""

    def _init(name: str = "repo", manifest: dict = INITIAL_MANIFEST) -> Path:
        remote = tmp_path / f"{name}-remote.git"
        git(tmp_path, "init", "--bare", str(remote))

        repo = tmp_path / name
        repo.mkdir()
        git(repo, "init")
        git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
        git(repo, "config", "user.name", "Test User")
        git(repo, "config", "user.email", "test@example.com")
        git(repo, "config", "commit.gpgsign", "false")
        (repo / "package.json").write_text(json.dumps(manifest, indent=2) + "\n")
        (repo / "README.md").write_text("# demo\n")
        git(repo, "add", "-A")
        git(repo, "commit", "-m", "Initial commit")
        git(repo, "remote", "add", "origin", str(remote))
        git(repo, "push", "-u", "origin", "main")
        return repo

    return _init


@pytest.fixture
def working_copy(init_repo) -> Path:
    return init_repo()


@pytest.fixture
def make_vuln(tmp_path: Path) -> Callable[..., VulnerabilityFix]:
    def _make(**overrides) -> VulnerabilityFix:
        data = {
            "alert_id": 1,
            "cve_id": "CVE-2024-1597",
            "package_name": "postgresql",
            "current_version": "16.1",
            "fixed_version": "16.2",
            "vulnerability_type": "SQL Injection",
            "severity": "high",
            "description": "SQL injection via line comment generation.",
            "repository_url": "https://github.com/acme/shop",
            "repository_path": str(tmp_path),
        }
        data.update(overrides)
        return VulnerabilityFix(**data)

    return _make
