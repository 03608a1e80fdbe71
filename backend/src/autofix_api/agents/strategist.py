import asyncio
from typing import Optional
from ..models.remediation import FixStrategy, FixType, StrategyAnalysis
from ..models.vulnerability import VulnerabilityFix
from ..config import settings
from ..logger import get_logger
from .reasoning import ReasoningService

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 80
ERRORED_CONFIDENCE = 50
DEFAULT_ROLLBACK_PLAN = "Standard rollback procedure - revert to previous version if issues occur"
ERRORED_ROLLBACK_PLAN = "Standard rollback procedure"

_IMPACT_LEVELS = ("low", "medium", "high")


def fallback_strategy(errored: bool = False) -> FixStrategy:
    """
    The deterministic strategy used when the reasoning service cannot help.

    Args:
        errored (bool): True when the service was configured but failed, which lowers confidence.
    """
    return FixStrategy(
        type=FixType.VERSION_UPDATE,
        confidence=ERRORED_CONFIDENCE if errored else DEFAULT_CONFIDENCE,
        impact="medium",
        breaking_changes=False,
        test_required=True,
        rollback_plan=ERRORED_ROLLBACK_PLAN if errored else DEFAULT_ROLLBACK_PLAN,
    )


def strategy_from_analysis(analysis: StrategyAnalysis) -> FixStrategy:
    """Builds a strategy from a service response, defaulting each absent or invalid field on its own."""
    try:
        fix_type = FixType(str(analysis.type).strip().lower())
    except ValueError:
        fix_type = FixType.VERSION_UPDATE

    if analysis.confidence is None:
        confidence = DEFAULT_CONFIDENCE
    else:
        confidence = max(0, min(100, int(round(analysis.confidence))))

    impact = (analysis.impact or "").strip().lower()
    if impact not in _IMPACT_LEVELS:
        impact = "medium"

    return FixStrategy(
        type=fix_type,
        confidence=confidence,
        impact=impact,
        breaking_changes=False if analysis.breaking_changes is None else analysis.breaking_changes,
        test_required=True if analysis.test_required is None else analysis.test_required,
        rollback_plan=(analysis.rollback_plan or "").strip() or DEFAULT_ROLLBACK_PLAN,
    )


class StrategyAnalyzer:
    def __init__(self, reasoning: Optional[ReasoningService] = None, timeout: Optional[float] = None):
        self.reasoning = reasoning
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS

    async def analyze(self, vuln: VulnerabilityFix) -> FixStrategy:
        """
        Decides how to remediate a vulnerability. Never raises.

        Args:
            vuln (VulnerabilityFix): The vulnerability to remediate.

        Returns:
            FixStrategy: The service's recommendation, or the fallback strategy.
        """
        if self.reasoning is None:
            logger.info(f"No reasoning service configured. Using fallback strategy for {vuln.cve_id}")
            return fallback_strategy()

        try:
            analysis = await asyncio.wait_for(
                asyncio.to_thread(self.reasoning.analyze_strategy, vuln),
                timeout=self.timeout
            )
            strategy = strategy_from_analysis(analysis)
        except Exception as e:
            logger.error(f"Error analyzing fix strategy for {vuln.cve_id}: {e!r}")
            return fallback_strategy(errored=True)

        logger.info(f"Strategy for {vuln.cve_id}: {strategy.type.value} (confidence {strategy.confidence}%, impact {strategy.impact})")
        return strategy
