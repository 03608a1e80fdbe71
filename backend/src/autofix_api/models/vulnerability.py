from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(Severity).index(self)


class VulnerabilityFix(BaseModel):
    """One remediation target handed to the pipeline by the scanner or the UI."""
    model_config = ConfigDict(frozen=True)

    alert_id: Optional[int] = Field(None, description="Identifier of the originating alert, if any")
    cve_id: str = Field(..., description="Advisory identifier (CVE or GHSA id)")
    package_name: str = Field(..., description="Affected dependency")
    current_version: str
    fixed_version: str
    vulnerability_type: str = Field("", description="Vulnerability category (e.g. SQL Injection)")
    severity: Severity
    description: str = ""
    repository_url: str = Field(..., description="Clone/web URL of the upstream repository")
    repository_path: str = Field(..., description="Local path of the working copy")

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value):
        # Scanners report severities in upper case
        if isinstance(value, str):
            return value.strip().lower()
        return value
