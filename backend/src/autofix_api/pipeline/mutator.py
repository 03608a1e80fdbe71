import asyncio
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union
from ..errors import AutoFixError, UnsafePathError, WorkingCopyError
from ..models.remediation import CommitInfo, FileChange, FixType, GeneratedChange, GeneratedTest, ensure_safe_path
from ..models.vulnerability import VulnerabilityFix
from ..services.git import GitWorkingCopy
from ..config import settings
from ..logger import get_logger

logger = get_logger(__name__)

Entry = Union[FileChange, GeneratedTest]


def resolve_targets(root: Path, entries: Iterable[Entry]) -> List[Tuple[Path, Entry]]:
    """
    Maps every entry to an absolute path inside `root`, validating all of them before
    anything is written.

    Raises:
        UnsafePathError: If any entry would land outside the working copy.
    """
    resolved_root = root.resolve()
    targets = []
    for entry in entries:
        target = (resolved_root / ensure_safe_path(entry.path)).resolve()
        if target != resolved_root and resolved_root not in target.parents:
            raise UnsafePathError(f"Path escapes the repository root: {entry.path}")
        targets.append((target, entry))
    return targets


def write_entries(targets: List[Tuple[Path, Entry]]):
    for target, entry in targets:
        if entry.operation == "delete":
            if target.exists():
                target.unlink()
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(entry.content, encoding="utf-8")


_FIX_ACTIONS = {
    FixType.VERSION_UPDATE: "updating {pkg} to {fixed}",
    FixType.DEPENDENCY_REPLACEMENT: "replacing {pkg}@{current}",
    FixType.CODE_PATCH: "patching the affected usage of {pkg}@{current}",
    FixType.CONFIGURATION_CHANGE: "changing the configuration around {pkg}@{current}",
}


def fix_summary(vuln: VulnerabilityFix, fix_type: FixType) -> str:
    action = _FIX_ACTIONS.get(fix_type, _FIX_ACTIONS[FixType.VERSION_UPDATE])
    detail = action.format(pkg=vuln.package_name, fixed=vuln.fixed_version, current=vuln.current_version)
    return f"Fixes {vuln.cve_id} by {detail}"


def commit_message(vuln: VulnerabilityFix, change: GeneratedChange, author_name: str, author_email: str) -> str:
    strategy = change.strategy
    return f"""{change.title}

{fix_summary(vuln, strategy.type)}

Advisory: {vuln.cve_id}
Package: {vuln.package_name}
Security Impact: {vuln.severity.value} severity vulnerability
Fix Strategy: {strategy.type.value}
Impact Level: {strategy.impact}
Breaking Changes: {"Yes" if strategy.breaking_changes else "No"}

Co-authored-by: {author_name} <{author_email}>"""


class WorkingCopyMutator:
    def __init__(
        self,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
        base_branch: Optional[str] = None,
        git_timeout: Optional[float] = None,
    ):
        self.author_name = author_name or settings.COMMIT_AUTHOR_NAME
        self.author_email = author_email or settings.COMMIT_AUTHOR_EMAIL
        self.base_branch = base_branch or settings.BASE_BRANCH
        self.git_timeout = git_timeout

    async def apply_and_commit(self, vuln: VulnerabilityFix, change: GeneratedChange, base_branch: Optional[str] = None) -> CommitInfo:
        """
        Creates the fix branch from the base branch, applies the change set and commits it.

        The working copy is returned to the ref it started on afterwards, so the next item on
        the same repository reads and branches from clean state. On failure the half-applied
        change is discarded first; the failed branch itself is kept.

        Args:
            vuln (VulnerabilityFix): Supplies the working copy path and commit metadata.
            change (GeneratedChange): The change to materialise.
            base_branch (Optional[str]): Branch the fix starts from; the configured base when None.

        Returns:
            CommitInfo: The branch actually used (suffixed when the name was taken) and the commit SHA.

        Raises:
            UnsafePathError: If the change set escapes the repository; nothing is touched.
            WorkingCopyError: If any git step or file write fails.
        """
        # Validate every path before touching the working copy
        targets = resolve_targets(Path(vuln.repository_path), change.files)

        repo = GitWorkingCopy(vuln.repository_path, self.git_timeout)
        start_ref = None
        branch_created = False
        try:
            start_ref = await repo.current_ref()
            start_point = await self._start_point(repo, base_branch or self.base_branch)
            branch_name = await self._unique_branch_name(repo, change.branch_name)
            logger.info(f"Creating branch {branch_name} from {start_point or start_ref} in {vuln.repository_path}")
            await repo.create_branch(branch_name, start_point)
            branch_created = True

            await asyncio.to_thread(write_entries, targets)
            await repo.add_all()
            await repo.commit(
                commit_message(vuln, change, self.author_name, self.author_email),
                self.author_name,
                self.author_email
            )
            commit_sha = await repo.head_commit()
        except (AutoFixError, OSError) as e:
            logger.error(f"Error creating fix branch for {vuln.cve_id}: {e}")
            if branch_created:
                await self._restore(repo, start_ref)
            raise WorkingCopyError(f"Failed to create fix branch: {e}") from e

        logger.info(f"Committed {commit_sha[:12]} on {branch_name} ({len(targets)} file(s))")
        await self._return_to(repo, start_ref)
        return CommitInfo(branch_name=branch_name, commit_sha=commit_sha)

    async def _start_point(self, repo: GitWorkingCopy, base: str) -> Optional[str]:
        if await repo.ref_exists(base):
            return base
        logger.warning(f"Base branch '{base}' not found in {repo.path}, branching from the current HEAD")
        return None

    async def _restore(self, repo: GitWorkingCopy, start_ref: str):
        """Discards the half-applied change and returns to the starting ref."""
        try:
            await repo.reset_hard()
            await repo.clean()
            await repo.checkout(start_ref)
        except AutoFixError as e:
            logger.error(f"Failed to restore {repo.path} to {start_ref}: {e}")

    async def _return_to(self, repo: GitWorkingCopy, start_ref: str):
        try:
            await repo.checkout(start_ref)
        except AutoFixError as e:
            logger.warning(f"Could not switch {repo.path} back to {start_ref}: {e}")

    async def _unique_branch_name(self, repo: GitWorkingCopy, base: str) -> str:
        name = base
        suffix = 2
        while await repo.branch_exists(name):
            name = f"{base}-{suffix}"
            suffix += 1
        return name
