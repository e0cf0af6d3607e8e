"""
Per-chunk remediation outcome.

Dependencies: pydantic
System role: Fan-in record aggregated by the orchestrator before merge
"""

from enum import Enum

from pydantic import BaseModel, Field

from remediation.core.exceptions import ErrorKind


class ChunkStage(str, Enum):
    """Worker stages run for every chunk, in this order."""

    AUTOTAG = "autotag"
    ALT_TEXT = "alt_text"


class ResultStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class RemediationResult(BaseModel):
    """Outcome of remediating one chunk."""

    chunk_index: int = Field(ge=0)
    status: ResultStatus
    stage: ChunkStage | None = Field(default=None, description="Last stage attempted")
    output_key: str | None = Field(default=None, description="Enriched key on success")
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    attempts: int = Field(default=0, ge=0, description="Attempts used by the last stage")

    @classmethod
    def succeeded(cls, chunk_index: int, output_key: str, attempts: int = 1) -> "RemediationResult":
        return cls(
            chunk_index=chunk_index,
            status=ResultStatus.SUCCEEDED,
            stage=ChunkStage.ALT_TEXT,
            output_key=output_key,
            attempts=attempts,
        )

    @classmethod
    def failed(
        cls,
        chunk_index: int,
        stage: ChunkStage,
        error_kind: ErrorKind,
        error_message: str,
        attempts: int = 1,
    ) -> "RemediationResult":
        return cls(
            chunk_index=chunk_index,
            status=ResultStatus.FAILED,
            stage=stage,
            error_kind=error_kind,
            error_message=error_message,
            attempts=attempts,
        )

    @classmethod
    def skipped(cls, chunk_index: int, reason: str) -> "RemediationResult":
        return cls(chunk_index=chunk_index, status=ResultStatus.SKIPPED, error_message=reason)

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCEEDED

    @property
    def is_failure(self) -> bool:
        return self.status is ResultStatus.FAILED
