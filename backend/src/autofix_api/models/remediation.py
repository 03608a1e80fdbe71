import re
from enum import Enum
from pathlib import PurePosixPath, PureWindowsPath
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from ..errors import UnsafePathError
from .vulnerability import VulnerabilityFix

BRANCH_PREFIX = "security-fix-"

_UNSAFE_REF_CHARS = re.compile(r"[^a-z0-9-]")


def ensure_safe_path(path: str) -> str:
    """
    Rejects paths that could escape the repository root.

    Args:
        path (str): A path relative to the repository root.

    Returns:
        str: The path, normalised to forward slashes.

    Raises:
        UnsafePathError: If the path is empty, absolute or contains a '..' segment.
    """
    if not path or not path.strip():
        raise UnsafePathError("Empty path in change set")
    normalized = path.replace("\\", "/")
    if PurePosixPath(normalized).is_absolute() or PureWindowsPath(path).drive:
        raise UnsafePathError(f"Absolute path not allowed in change set: {path}")
    if ".." in PurePosixPath(normalized).parts:
        raise UnsafePathError(f"Path escapes the repository root: {path}")
    return normalized


def sanitize_branch_name(name: str) -> str:
    """Lower-cases a ref name and replaces every character outside [a-z0-9-] with a hyphen."""
    slug = _UNSAFE_REF_CHARS.sub("-", name.lower())
    # Leading hyphens read as options to git
    return slug.lstrip("-")


def fallback_branch_name(advisory_id: str) -> str:
    return f"{BRANCH_PREFIX}{sanitize_branch_name(advisory_id) or 'advisory'}"


class FixType(str, Enum):
    VERSION_UPDATE = "version_update"
    DEPENDENCY_REPLACEMENT = "dependency_replacement"
    CODE_PATCH = "code_patch"
    CONFIGURATION_CHANGE = "configuration_change"


ImpactLevel = Literal["low", "medium", "high"]


class FixStrategy(BaseModel):
    """The decided approach and risk profile for one vulnerability."""
    model_config = ConfigDict(frozen=True)

    type: FixType
    confidence: int = Field(..., ge=0, le=100)
    impact: ImpactLevel
    breaking_changes: bool
    test_required: bool
    rollback_plan: str


class FileChange(BaseModel):
    path: str = Field(..., description="Path relative to the repository root")
    operation: Literal["create", "update", "delete"]
    content: str = Field("", description="Full replacement content (ignored for delete)")

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        return ensure_safe_path(value)


class GeneratedTest(BaseModel):
    path: str
    content: str
    operation: Literal["create", "update"] = "create"

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        return ensure_safe_path(value)


class GeneratedChange(BaseModel):
    title: str
    body: str
    branch_name: str
    files: List[FileChange]
    tests: List[GeneratedTest] = Field(default_factory=list)
    strategy: FixStrategy

    @field_validator("branch_name")
    @classmethod
    def _check_branch_name(cls, value: str) -> str:
        if not value or _UNSAFE_REF_CHARS.search(value) or value.startswith("-"):
            raise ValueError(f"Branch name is not a safe ref: {value!r}")
        return value


# --- Reasoning service responses ---
# Every field is optional and loosely typed: the consumer defaults each one independently.

class StrategyAnalysis(BaseModel):
    type: Optional[str] = None
    confidence: Optional[float] = None
    impact: Optional[str] = None
    breaking_changes: Optional[bool] = None
    test_required: Optional[bool] = None
    rollback_plan: Optional[str] = None


class ProposedFile(BaseModel):
    path: Optional[str] = None
    content: Optional[str] = None
    operation: Optional[str] = None


class FixProposal(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    branch_name: Optional[str] = None
    files: Optional[List[ProposedFile]] = None
    tests: Optional[List[ProposedFile]] = None


# --- Pipeline outputs ---

class CommitInfo(BaseModel):
    branch_name: str
    commit_sha: str


class ChangeRequest(BaseModel):
    url: str
    number: int


class FixPRResult(BaseModel):
    pr_url: str
    pr_number: int
    branch_name: str
    strategy: FixStrategy


class PipelineResult(BaseModel):
    """Outcome for one vulnerability: `result` on success, `error` on failure."""
    vulnerability: VulnerabilityFix
    result: Optional[FixPRResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None and self.error is None
