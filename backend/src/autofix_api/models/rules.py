from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from .vulnerability import Severity


def _now() -> datetime:
    return datetime.now(timezone.utc)


class AutoFixRuleRequest(BaseModel):
    name: str
    description: str = ""
    severity_threshold: Severity = Severity.MEDIUM
    auto_merge: bool = False
    target_repositories: List[str] = Field(default_factory=list)
    conditions: Dict[str, Any] = Field(default_factory=dict)


class AutoFixRule(AutoFixRuleRequest):
    id: Optional[int] = None
    user_id: str
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class OpenFixPR(BaseModel):
    number: int
    title: str
    url: str
    branch: str
    created_at: Optional[str] = None
