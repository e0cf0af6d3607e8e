"""
Compliance report model.

Produced identically by the pre- and post-remediation checks and written
once under the job's report key.

Dependencies: pydantic
System role: Accessibility check output contract
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field


class CheckPhase(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class IssueSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ComplianceIssue(BaseModel):
    """One finding of the checker."""

    model_config = ConfigDict(frozen=True)

    rule: str = Field(description="Rule identifier, e.g. 'figure-alt-text'")
    severity: IssueSeverity
    message: str
    page: int | None = Field(default=None, description="1-based page number when page-scoped")


class ComplianceReport(BaseModel):
    """Structured accessibility check result."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    phase: CheckPhase
    document_key: str
    page_count: int = Field(default=0, ge=0)
    issues: tuple[ComplianceIssue, ...] = ()

    @computed_field
    @property
    def passed(self) -> bool:
        return not any(issue.severity is IssueSeverity.ERROR for issue in self.issues)

    def errors(self) -> list[ComplianceIssue]:
        return [issue for issue in self.issues if issue.severity is IssueSeverity.ERROR]

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(indent=2).encode("utf-8")
