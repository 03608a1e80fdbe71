import asyncio
from typing import Any, Dict, List, Optional
from pydantic import ValidationError
from ..models.remediation import (
    FileChange,
    FixProposal,
    FixStrategy,
    GeneratedChange,
    GeneratedTest,
    ProposedFile,
    fallback_branch_name,
    sanitize_branch_name,
)
from ..models.vulnerability import VulnerabilityFix
from ..services.manifest import bump_dependency, read_manifest, render_manifest
from ..config import settings
from ..logger import get_logger
from .reasoning import ReasoningService

logger = get_logger(__name__)


def default_title(vuln: VulnerabilityFix) -> str:
    return f"Security: Fix {vuln.cve_id} in {vuln.package_name}"


def fallback_body(vuln: VulnerabilityFix, strategy: FixStrategy) -> str:
    testing = (
        "Please run the full test suite before merging." if strategy.test_required
        else "Please verify the fix manually."
    )
    return f"""## Security Fix: {vuln.cve_id}

### Summary
This automated PR fixes a {vuln.severity.value} severity vulnerability in `{vuln.package_name}`.

### Vulnerability Details
- **Advisory**: {vuln.cve_id}
- **Package**: {vuln.package_name}@{vuln.current_version}
- **Affected Version**: {vuln.current_version}
- **Fixed Version**: {vuln.fixed_version}
- **Severity**: {vuln.severity.value}
- **Type**: {vuln.vulnerability_type or "unspecified"}

### Changes Made
- Updated `{vuln.package_name}` from `{vuln.current_version}` to `^{vuln.fixed_version}`

### Fix Strategy
- **Type**: {strategy.type.value}
- **Confidence**: {strategy.confidence}%
- **Impact**: {strategy.impact}
- **Breaking Changes**: {"Yes" if strategy.breaking_changes else "No"}
- **Tests Required**: {"Yes" if strategy.test_required else "No"}

### Security Impact
{vuln.description or "See the advisory for details."}

### Testing
{testing}

### Rollback Plan
{strategy.rollback_plan}

---
*This PR was automatically generated by the security autofix pipeline.*
"""


class FixSynthesizer:
    def __init__(self, reasoning: Optional[ReasoningService] = None, timeout: Optional[float] = None, manifest_file: Optional[str] = None):
        self.reasoning = reasoning
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        self.manifest_file = manifest_file or settings.MANIFEST_FILE

    async def synthesize(self, vuln: VulnerabilityFix, strategy: FixStrategy) -> GeneratedChange:
        """
        Turns a vulnerability and its strategy into a concrete change. Never raises for
        reasoning-service problems; each missing piece falls back to the manifest-only version bump.

        Args:
            vuln (VulnerabilityFix): The vulnerability to fix.
            strategy (FixStrategy): The strategy decided for it.

        Returns:
            GeneratedChange: Title, body, branch name, file changes and optional tests.
        """
        manifest = await asyncio.to_thread(read_manifest, vuln.repository_path, self.manifest_file)

        if self.reasoning is None:
            logger.info(f"No reasoning service configured. Generating manifest-only fix for {vuln.cve_id}")
            return self.fallback_change(vuln, strategy, manifest)

        try:
            proposal = await asyncio.wait_for(
                asyncio.to_thread(self.reasoning.propose_fix, vuln, strategy, manifest),
                timeout=self.timeout
            )
        except Exception as e:
            logger.error(f"Error generating fix implementation for {vuln.cve_id}: {e!r}")
            return self.fallback_change(vuln, strategy, manifest)

        return self._from_proposal(vuln, strategy, manifest, proposal)

    def fallback_change(self, vuln: VulnerabilityFix, strategy: FixStrategy, manifest: Dict[str, Any]) -> GeneratedChange:
        return GeneratedChange(
            title=default_title(vuln),
            body=fallback_body(vuln, strategy),
            branch_name=fallback_branch_name(vuln.cve_id),
            files=self._manifest_files(vuln, manifest),
            tests=[],
            strategy=strategy
        )

    def _manifest_files(self, vuln: VulnerabilityFix, manifest: Dict[str, Any]) -> List[FileChange]:
        updated, touched = bump_dependency(manifest, vuln.package_name, vuln.fixed_version)
        if not touched:
            logger.warning(f"{vuln.package_name} is not declared in {self.manifest_file}; manifest left unchanged")
        return [FileChange(path=self.manifest_file, operation="update", content=render_manifest(updated))]

    def _from_proposal(self, vuln: VulnerabilityFix, strategy: FixStrategy, manifest: Dict[str, Any], proposal: FixProposal) -> GeneratedChange:
        title = (proposal.title or "").strip() or default_title(vuln)
        body = (proposal.body or "").strip() or fallback_body(vuln, strategy)
        branch_name = sanitize_branch_name(proposal.branch_name or "") or fallback_branch_name(vuln.cve_id)

        files = _convert_files(proposal.files)
        if not files:
            logger.warning(f"Fix proposal for {vuln.cve_id} has no usable file changes. Falling back to manifest update")
            files = self._manifest_files(vuln, manifest)

        return GeneratedChange(
            title=title,
            body=body,
            branch_name=branch_name,
            files=files,
            tests=_convert_tests(proposal.tests),
            strategy=strategy
        )


def _convert_files(proposed: Optional[List[ProposedFile]]) -> Optional[List[FileChange]]:
    if not proposed:
        return None
    try:
        return [
            FileChange(path=p.path, operation=(p.operation or "update").lower(), content=p.content or "")
            for p in proposed
            if (p.operation or "").lower() == "delete" or p.content is not None
        ]
    except ValidationError as e:
        logger.warning(f"Discarding proposed file changes: {e}")
        return None


def _convert_tests(proposed: Optional[List[ProposedFile]]) -> List[GeneratedTest]:
    if not proposed:
        return []
    try:
        return [
            GeneratedTest(path=p.path, content=p.content, operation=(p.operation or "create").lower())
            for p in proposed
        ]
    except ValidationError as e:
        logger.warning(f"Discarding proposed test files: {e}")
        return []
