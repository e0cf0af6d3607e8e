"""
Job outcome model.

Returned by the orchestrator for every job and persisted under the job's
outcome key. Serialized with camelCase keys for callers.

Dependencies: pydantic
System role: Return type for RemediationPipeline.run()
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from remediation.core.exceptions import ErrorKind

from .compliance_report import ComplianceReport
from .job import JobState
from .remediation_result import RemediationResult


class JobOutcome(BaseModel):
    """Result of running one job through the pipeline."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str = Field(description="Job identifier")
    input_key: str = Field(description="Key of the input document")
    state: JobState = Field(description="Terminal state: Done or Failed")
    final_key: str | None = Field(default=None, description="Compliant document key when Done")
    pre_check_report: ComplianceReport | None = None
    post_check_report: ComplianceReport | None = None
    failed_chunks: list[int] = Field(default_factory=list)
    failed_stage: JobState | None = Field(default=None, description="State the job failed in")
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    warnings: list[str] = Field(default_factory=list)
    state_history: list[JobState] = Field(default_factory=list)
    chunk_results: list[RemediationResult] = Field(default_factory=list)
    processing_time_ms: float = Field(default=0.0, description="Wall time of the run")

    @property
    def succeeded(self) -> bool:
        return self.state is JobState.DONE

    @property
    def compliant(self) -> bool | None:
        """Post-check verdict; None when the job never reached the post-check."""
        if self.post_check_report is None:
            return None
        return self.post_check_report.passed

    def to_response(self) -> dict:
        """JSON-safe dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True, indent=2).encode("utf-8")
