import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type, TypeVar
from agno.agent import Agent
from pydantic import BaseModel, ValidationError
from ..services.llm_provider import LLMProvider, get_provider
from ..models.remediation import FixProposal, FixStrategy, StrategyAnalysis
from ..models.vulnerability import VulnerabilityFix
from ..errors import ReasoningServiceError
from ..config import settings
from ..logger import get_logger

logger = get_logger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class ReasoningService(ABC):
    """Capability interface over the reasoning/generation backend."""

    @abstractmethod
    def analyze_strategy(self, vuln: VulnerabilityFix) -> StrategyAnalysis:
        """Recommends a remediation strategy. Raises on failure."""

    @abstractmethod
    def propose_fix(self, vuln: VulnerabilityFix, strategy: FixStrategy, manifest: Dict[str, Any]) -> FixProposal:
        """Drafts the change request and its file changes. Raises on failure."""


def build_strategy_prompt(vuln: VulnerabilityFix) -> str:
    return f"""
Analyze this vulnerability and recommend the best fix strategy:

Vulnerability: {vuln.cve_id}
Package: {vuln.package_name}@{vuln.current_version}
Fixed Version: {vuln.fixed_version}
Type: {vuln.vulnerability_type}
Severity: {vuln.severity.value}
Description: {vuln.description}

Recommend:
1. Fix type (version_update, dependency_replacement, code_patch, configuration_change)
2. Confidence level (0-100)
3. Impact level (low, medium, high)
4. Whether breaking changes are expected
5. Whether additional tests are required
6. Rollback plan
"""


def build_fix_prompt(vuln: VulnerabilityFix, strategy: FixStrategy, manifest: Dict[str, Any]) -> str:
    return f"""
Generate a fix for this vulnerability:

Vulnerability: {vuln.cve_id}
Package: {vuln.package_name}@{vuln.current_version}
Fixed Version: {vuln.fixed_version}
Strategy: {strategy.model_dump_json()}

Current {settings.MANIFEST_FILE}:
{json.dumps(manifest, indent=2)}

Generate:
1. PR title (clear, descriptive)
2. PR body (Markdown: explanation, security impact, testing notes)
3. Branch name (lowercase letters, digits and hyphens only)
4. Modified files with their full content and an operation (create, update, delete)
5. Additional test files if needed

All paths must be relative to the repository root.
"""


class AgnoReasoningService(ReasoningService):
    def __init__(self, provider: LLMProvider, model_id: Optional[str] = None):
        """
        Builds the two personas used by the pipeline on top of one provider.

        Args:
            provider (LLMProvider): The configured LLM provider.
            model_id (Optional[str]): Model override; the provider default is used when None.
        """
        self.strategist = Agent(
            model=provider.get_model(model_id),
            description="You are a senior DevOps engineer specializing in automated security fixes.",
            instructions=[
                "Analyze the vulnerability and recommend how it should be remediated.",
                "Prefer the smallest change that removes the vulnerability.",
                "Flag breaking changes whenever the fixed version crosses a major version.",
                "Return ONLY the JSON object defined by the schema."
            ],
            output_schema=StrategyAnalysis,
        )
        self.fix_author = Agent(
            model=provider.get_model(model_id),
            description="You are an expert in automated security fixes and pull request generation.",
            instructions=[
                "Create production-ready, minimal-impact fixes with proper version constraints.",
                "Every file entry must carry the COMPLETE new file content, not a diff.",
                "Only touch files that are needed for the fix.",
                "Return ONLY the JSON object defined by the schema."
            ],
            output_schema=FixProposal,
        )

    def analyze_strategy(self, vuln: VulnerabilityFix) -> StrategyAnalysis:
        logger.info(f"Requesting fix strategy for {vuln.cve_id}")
        response = self.strategist.run(build_strategy_prompt(vuln))
        return _coerce(response.content, StrategyAnalysis)

    def propose_fix(self, vuln: VulnerabilityFix, strategy: FixStrategy, manifest: Dict[str, Any]) -> FixProposal:
        logger.info(f"Requesting fix proposal for {vuln.cve_id} ({strategy.type.value})")
        response = self.fix_author.run(build_fix_prompt(vuln, strategy, manifest))
        return _coerce(response.content, FixProposal)


def _coerce(content: Any, schema: Type[ResponseT]) -> ResponseT:
    """Accepts a parsed model, a dict, or a JSON string; anything else is a malformed response."""
    if isinstance(content, schema):
        return content
    try:
        if isinstance(content, dict):
            return schema.model_validate(content)
        if isinstance(content, str):
            return schema.model_validate_json(content)
    except ValidationError as e:
        raise ReasoningServiceError(f"Malformed {schema.__name__} response: {e}") from e
    raise ReasoningServiceError(f"Unexpected {schema.__name__} response type: {type(content).__name__}")


def get_reasoning_service() -> Optional[ReasoningService]:
    """Returns the configured reasoning service, or None when no LLM provider is configured."""
    provider = get_provider()
    if provider is None:
        return None
    return AgnoReasoningService(provider, settings.LLM_MODEL_ID)
