"""Hand-written doubles shared by the test modules."""

import json
import shutil
import subprocess
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest

from autofix_api.agents.reasoning import ReasoningService
from autofix_api.agents.strategist import fallback_strategy
from autofix_api.models.remediation import (
    FileChange,
    FixProposal,
    FixStrategy,
    GeneratedChange,
    GeneratedTest,
    StrategyAnalysis,
)
from autofix_api.services.github import GitHubService


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git CLI not available")


def git(cwd: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return completed.stdout.strip()


INITIAL_MANIFEST = {
    "name": "demo-app",
    "version": "1.0.0",
    "dependencies": {
        "express": "^4.18.2",
        "postgresql": "^16.1",
    },
    "devDependencies": {
        "jest": "^29.0.0",
    },
}


class FakeReasoning(ReasoningService):
    def __init__(
        self,
        analysis: Optional[StrategyAnalysis] = None,
        proposal: Optional[FixProposal] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.analysis = analysis or StrategyAnalysis()
        self.proposal = proposal or FixProposal()
        self.error = error
        self.delay = delay
        self.manifests: List[Dict[str, Any]] = []

    def analyze_strategy(self, vuln):
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.analysis

    def propose_fix(self, vuln, strategy, manifest):
        self.manifests.append(manifest)
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.proposal


class FakeGitHubAPI:
    """Records requests and answers like the GitHub REST API."""

    def __init__(self, fail: Optional[Dict[tuple, int]] = None, pulls: Optional[List[dict]] = None):
        self.fail = fail or {}
        self.pulls = pulls or []
        self.requests: List[tuple] = []
        self.next_number = 42

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))

        for (method, suffix), status in self.fail.items():
            if request.method == method and path.endswith(suffix):
                return httpx.Response(status, json={"message": "Validation Failed"})

        parts = path.strip("/").split("/")
        if request.method == "POST" and path.endswith("/pulls"):
            number = self.next_number
            self.next_number += 1
            return httpx.Response(201, json={
                "number": number,
                "html_url": f"https://github.com/{parts[1]}/{parts[2]}/pull/{number}",
            })
        if request.method == "POST" and path.endswith("/labels"):
            return httpx.Response(200, json=[{"name": name} for name in body["labels"]])
        if request.method == "POST" and path.endswith("/comments"):
            return httpx.Response(201, json={"id": 1, "body": body["body"]})
        if request.method == "GET" and path.endswith("/pulls"):
            return httpx.Response(200, json=self.pulls)
        if request.method == "GET" and len(parts) == 3:
            return httpx.Response(200, json={"default_branch": "develop"})
        return httpx.Response(404, json={"message": "Not Found"})

    def service(self) -> GitHubService:
        return GitHubService(
            token="test-token",
            api_url="https://api.github.test",
            transport=httpx.MockTransport(self.handler),
        )

    def calls(self, method: str, suffix: str) -> List[tuple]:
        return [r for r in self.requests if r[0] == method and r[1].endswith(suffix)]


def make_change(
    files: Optional[List[FileChange]] = None,
    tests: Optional[List[GeneratedTest]] = None,
    branch_name: str = "security-fix-cve-2024-1597",
    strategy: Optional[FixStrategy] = None,
) -> GeneratedChange:
    return GeneratedChange(
        title="Security: Fix CVE-2024-1597 in postgresql",
        body="Bumps postgresql.",
        branch_name=branch_name,
        files=files if files is not None else [
            FileChange(path="package.json", operation="update", content='{"dependencies": {"postgresql": "^16.2"}}\n')
        ],
        tests=tests or [],
        strategy=strategy or fallback_strategy(),
    )
