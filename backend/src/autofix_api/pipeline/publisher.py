from typing import List, Optional
from ..errors import AutoFixError, HostingAPIError, PublishError
from ..models.remediation import BRANCH_PREFIX, ChangeRequest, GeneratedChange
from ..models.rules import OpenFixPR
from ..models.vulnerability import VulnerabilityFix
from ..services.git import GitWorkingCopy
from ..services.github import GitHubService, parse_repo_url
from ..config import settings
from ..logger import get_logger

logger = get_logger(__name__)

class ChangeRequestPublisher:
    def __init__(
        self,
        github: GitHubService,
        push_branches: Optional[bool] = None,
        remote: Optional[str] = None,
        base_branch: Optional[str] = None,
        resolve_default_branch: Optional[bool] = None,
        git_timeout: Optional[float] = None,
    ):
        self.github = github
        self.push_branches = settings.PUSH_BRANCHES if push_branches is None else push_branches
        self.remote = remote or settings.GIT_REMOTE
        self.base_branch = base_branch or settings.BASE_BRANCH
        self.resolve_default_branch = settings.RESOLVE_DEFAULT_BRANCH if resolve_default_branch is None else resolve_default_branch
        self.git_timeout = git_timeout

    async def publish(self, vuln: VulnerabilityFix, change: GeneratedChange, branch_name: str, base_branch: Optional[str] = None) -> ChangeRequest:
        """
        Pushes the fix branch and opens a pull request against the base branch.

        The branch and commit are left in place when this fails so the fix can be recovered.

        Args:
            vuln (VulnerabilityFix): Supplies the repository URL and working copy.
            change (GeneratedChange): Supplies the PR title and body.
            branch_name (str): The committed fix branch.
            base_branch (Optional[str]): Target branch; resolved from settings or the hosting API when None.

        Returns:
            ChangeRequest: URL and number of the opened pull request.

        Raises:
            InvalidRepositoryUrlError: If owner/repo cannot be derived from the URL.
            PublishError: If pushing or opening the pull request fails.
        """
        owner, repo = parse_repo_url(vuln.repository_url)

        try:
            if self.push_branches:
                logger.info(f"Pushing {branch_name} to {self.remote}")
                await GitWorkingCopy(vuln.repository_path, self.git_timeout).push(branch_name, self.remote)

            base = base_branch or await self.resolve_base_branch(owner, repo)
            pr = await self.github.create_pull_request(
                owner, repo,
                title=change.title,
                body=change.body,
                head=branch_name,
                base=base
            )
        except AutoFixError as e:
            logger.error(f"Error creating pull request for {vuln.cve_id}: {e}")
            raise PublishError(f"Failed to create pull request: {e}") from e

        logger.info(f"Opened pull request #{pr.number} for {vuln.cve_id}: {pr.url}")
        return pr

    async def base_branch_for(self, vuln: VulnerabilityFix) -> str:
        """The branch fixes for this repository start from and target."""
        owner, repo = parse_repo_url(vuln.repository_url)
        return await self.resolve_base_branch(owner, repo)

    async def resolve_base_branch(self, owner: str, repo: str) -> str:
        if not self.resolve_default_branch:
            return self.base_branch
        try:
            branch = await self.github.get_default_branch(owner, repo)
            logger.info(f"Resolved default branch for {owner}/{repo}: {branch}")
            return branch
        except HostingAPIError as e:
            logger.warning(f"Failed to resolve default branch for {owner}/{repo}, using '{self.base_branch}': {e}")
            return self.base_branch

    async def list_open_fix_prs(self, repository_url: str) -> List[OpenFixPR]:
        """Open pull requests that look like security fixes. Empty when the lookup fails."""
        owner, repo = parse_repo_url(repository_url)
        try:
            prs = await self.github.list_pull_requests(owner, repo, state="open")
        except HostingAPIError as e:
            logger.error(f"Failed to list pull requests for {owner}/{repo}: {e}")
            return []

        return [
            OpenFixPR(
                number=pr["number"],
                title=pr.get("title", ""),
                url=pr.get("html_url", ""),
                branch=pr.get("head", {}).get("ref", ""),
                created_at=pr.get("created_at")
            )
            for pr in prs or []
            if "security" in pr.get("title", "").lower()
            or pr.get("head", {}).get("ref", "").startswith(BRANCH_PREFIX)
        ]
