"""
Job invocation event schema.

The orchestrator's only entry contract: an input key plus an optional job
id. S3 notifications and SQS records are normalized into this shape by the
Lambda event parser.

Dependencies: pydantic
System role: Data validation and contract definition
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .job import new_job_id


class JobEvent(BaseModel):
    """Request to remediate one document."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "inputKey": "pdf/batch1/report.pdf",
                "jobId": "3f6c0d1e2a7b4c8d9e0f1a2b3c4d5e6f",
            }
        },
    )

    input_key: str = Field(..., alias="inputKey", description="Key of the uploaded document")
    job_id: str = Field(default_factory=new_job_id, alias="jobId")

    @field_validator("input_key")
    @classmethod
    def _strip_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("inputKey must not be empty")
        return value

    @field_validator("job_id", mode="before")
    @classmethod
    def _default_job_id(cls, value):
        # Explicit null / empty string in the payload means "generate one".
        return value or new_job_id()
