import asyncio
import time
from typing import Awaitable, Callable, List, Optional
from ..models.remediation import FixPRResult, PipelineResult
from ..models.vulnerability import VulnerabilityFix
from ..pipeline.annotator import ChangeRequestAnnotator
from ..pipeline.attacher import TestAttacher
from ..pipeline.mutator import WorkingCopyMutator
from ..pipeline.publisher import ChangeRequestPublisher
from ..services.github import GitHubService
from ..config import settings
from ..logger import get_logger
from .generator import FixSynthesizer
from .reasoning import get_reasoning_service
from .strategist import StrategyAnalyzer

logger = get_logger(__name__)

DEADLINE_EXCEEDED = "Batch deadline exceeded"

class Orchestrator:
    def __init__(
        self,
        analyzer: StrategyAnalyzer,
        synthesizer: FixSynthesizer,
        mutator: WorkingCopyMutator,
        publisher: ChangeRequestPublisher,
        attacher: TestAttacher,
        annotator: ChangeRequestAnnotator,
        delay_seconds: Optional[float] = None,
        deadline_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.analyzer = analyzer
        self.synthesizer = synthesizer
        self.mutator = mutator
        self.publisher = publisher
        self.attacher = attacher
        self.annotator = annotator
        self.delay_seconds = settings.BATCH_DELAY_SECONDS if delay_seconds is None else delay_seconds
        self.deadline_seconds = settings.BATCH_DEADLINE_SECONDS if deadline_seconds is None else deadline_seconds
        self.sleep = sleep
        self.clock = clock

    async def generate_fix_pr(self, vuln: VulnerabilityFix) -> FixPRResult:
        """
        Runs the whole pipeline for one vulnerability.

        1. Decides the fix strategy (falls back when the reasoning service is unavailable).
        2. Synthesizes the change set.
        3. Resolves the base branch, creates the fix branch from it and commits the change.
        4. Pushes the branch and opens the pull request.
        5. Adds generated tests when the strategy asks for them (best effort).
        6. Labels and comments on the pull request (best effort).

        Args:
            vuln (VulnerabilityFix): The vulnerability to remediate.

        Returns:
            FixPRResult: The opened pull request, its branch and the strategy used.

        Raises:
            AutoFixError: From base-branch resolution, the branch/commit or the publish stage.
        """
        logger.info(f"Generating fix PR for {vuln.cve_id} ({vuln.package_name} {vuln.current_version} -> {vuln.fixed_version})")

        strategy = await self.analyzer.analyze(vuln)
        change = await self.synthesizer.synthesize(vuln, strategy)
        base_branch = await self.publisher.base_branch_for(vuln)
        commit = await self.mutator.apply_and_commit(vuln, change, base_branch)
        pr = await self.publisher.publish(vuln, change, commit.branch_name, base_branch)

        if strategy.test_required:
            await self.attacher.attach_tests(vuln, change, commit.branch_name)

        await self.annotator.annotate(pr.number, vuln, strategy)

        return FixPRResult(
            pr_url=pr.url,
            pr_number=pr.number,
            branch_name=commit.branch_name,
            strategy=strategy
        )

    async def process(self, vuln: VulnerabilityFix) -> PipelineResult:
        """Per-item failure boundary: every outcome becomes a PipelineResult."""
        try:
            result = await self.generate_fix_pr(vuln)
        except Exception as e:
            logger.error(f"Fix PR for {vuln.cve_id} failed: {e}")
            return PipelineResult(vulnerability=vuln, error=str(e) or type(e).__name__)
        return PipelineResult(vulnerability=vuln, result=result)

    async def run_batch(self, vulns: List[VulnerabilityFix], deadline_seconds: Optional[float] = None) -> List[PipelineResult]:
        """
        Processes vulnerabilities one at a time, in order, waiting `delay_seconds` between
        items to stay under the hosting API rate limits.

        The deadline is only checked between items; items not started in time are reported
        as failures so the output always has one result per input.

        Args:
            vulns (List[VulnerabilityFix]): The vulnerabilities to remediate.
            deadline_seconds (Optional[float]): Overrides the configured batch deadline.

        Returns:
            List[PipelineResult]: One result per input, in input order.
        """
        budget = self.deadline_seconds if deadline_seconds is None else deadline_seconds
        deadline = self.clock() + budget if budget is not None else None

        def expired() -> bool:
            return deadline is not None and self.clock() >= deadline

        logger.info(f"Batch fix PR generation for {len(vulns)} vulnerabilities")
        results = []
        for index, vuln in enumerate(vulns):
            if index > 0 and self.delay_seconds > 0 and not expired():
                await self.sleep(self.delay_seconds)

            if expired():
                logger.warning(f"Skipping {vuln.cve_id}: {DEADLINE_EXCEEDED.lower()}")
                results.append(PipelineResult(vulnerability=vuln, error=DEADLINE_EXCEEDED))
                continue

            results.append(await self.process(vuln))

        succeeded = sum(1 for r in results if r.succeeded)
        logger.info(f"Batch complete: {succeeded}/{len(results)} fix PRs opened")
        return results

    async def batch_generate_fix_prs(self, vulns: List[VulnerabilityFix]) -> List[PipelineResult]:
        return await self.run_batch(vulns)


def build_orchestrator() -> Orchestrator:
    """Wires the pipeline from settings. The reasoning service is shared and may be None."""
    reasoning = get_reasoning_service()
    github = GitHubService()
    return Orchestrator(
        analyzer=StrategyAnalyzer(reasoning),
        synthesizer=FixSynthesizer(reasoning),
        mutator=WorkingCopyMutator(),
        publisher=ChangeRequestPublisher(github),
        attacher=TestAttacher(),
        annotator=ChangeRequestAnnotator(github),
    )
