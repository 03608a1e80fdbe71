import asyncio
from pathlib import Path
from typing import Optional
from ..errors import AutoFixError
from ..models.remediation import GeneratedChange
from ..models.vulnerability import VulnerabilityFix
from ..services.git import GitWorkingCopy
from ..config import settings
from ..logger import get_logger
from .mutator import resolve_targets, write_entries

logger = get_logger(__name__)

class TestAttacher:
    """Adds generated test files to an existing fix branch as a follow-up commit. Best effort."""

    def __init__(
        self,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
        push_branches: Optional[bool] = None,
        remote: Optional[str] = None,
        git_timeout: Optional[float] = None,
    ):
        self.author_name = author_name or settings.COMMIT_AUTHOR_NAME
        self.author_email = author_email or settings.COMMIT_AUTHOR_EMAIL
        self.push_branches = settings.PUSH_BRANCHES if push_branches is None else push_branches
        self.remote = remote or settings.GIT_REMOTE
        self.git_timeout = git_timeout

    async def attach_tests(self, vuln: VulnerabilityFix, change: GeneratedChange, branch_name: str) -> bool:
        """
        Commits the generated tests onto `branch_name` and switches back to the starting ref.

        Returns:
            bool: True when a test commit was made; False for no tests or a (logged) failure.
        """
        if not change.tests:
            return False

        repo = GitWorkingCopy(vuln.repository_path, self.git_timeout)
        start_ref = None
        on_branch = False
        try:
            targets = resolve_targets(Path(vuln.repository_path), change.tests)
            start_ref = await repo.current_ref()
            await repo.checkout(branch_name)
            on_branch = True
            await asyncio.to_thread(write_entries, targets)
            await repo.add_all()
            await repo.commit(f"Add automated tests for {vuln.cve_id} fix", self.author_name, self.author_email)
            if self.push_branches:
                await repo.push(branch_name, self.remote)
        except Exception as e:
            logger.error(f"Error adding automated tests for {vuln.cve_id}: {e}", exc_info=True)
            if start_ref:
                await self._restore(repo, start_ref, discard=on_branch)
            return False

        logger.info(f"Added {len(change.tests)} test file(s) to {branch_name}")
        await self._restore(repo, start_ref)
        return True

    async def _restore(self, repo: GitWorkingCopy, start_ref: str, discard: bool = False):
        try:
            if discard:
                await repo.reset_hard()
                await repo.clean()
            await repo.checkout(start_ref)
        except AutoFixError as e:
            logger.warning(f"Could not switch {repo.path} back to {start_ref}: {e}")
