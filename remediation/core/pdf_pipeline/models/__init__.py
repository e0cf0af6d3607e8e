"""
Models for the remediation pipeline.

Exports: JobContext, JobState, Manifest, ChunkDescriptor, ChunkArtifact,
RemediationResult, ComplianceReport, JobEvent, JobOutcome
"""

from .compliance_report import CheckPhase, ComplianceIssue, ComplianceReport, IssueSeverity
from .job import ALLOWED_TRANSITIONS, JobContext, JobState, can_transition
from .job_event import JobEvent
from .manifest import ChunkArtifact, ChunkDescriptor, ChunkState, Manifest
from .pipeline_result import JobOutcome
from .remediation_result import ChunkStage, RemediationResult, ResultStatus

__all__ = [
    "ALLOWED_TRANSITIONS",
    "CheckPhase",
    "ChunkArtifact",
    "ChunkDescriptor",
    "ChunkStage",
    "ChunkState",
    "ComplianceIssue",
    "ComplianceReport",
    "IssueSeverity",
    "JobContext",
    "JobEvent",
    "JobOutcome",
    "JobState",
    "Manifest",
    "RemediationResult",
    "ResultStatus",
    "can_transition",
]
