"""
PDF remediation pipeline.

Self-contained Lambda-ready module for checking, splitting, tagging,
enriching, merging and titling PDF documents.

Dependencies: pikepdf, langchain_google_genai, pydantic, tenacity
System role: Document remediation pipeline entrypoint
"""

from .configs import (
    RemediationPipelineSettings,
    get_pipeline_settings,
)
from .entrypoint import RemediationPipeline
from .keys import DEFAULT_LAYOUT, KeyLayout, KeyStage, derive_base_name, derive_folder_path
from .models import JobContext, JobEvent, JobOutcome, JobState

__all__ = [
    "DEFAULT_LAYOUT",
    "JobContext",
    "JobEvent",
    "JobOutcome",
    "JobState",
    "KeyLayout",
    "KeyStage",
    "RemediationPipeline",
    "RemediationPipelineSettings",
    "derive_base_name",
    "derive_folder_path",
    "get_pipeline_settings",
]
