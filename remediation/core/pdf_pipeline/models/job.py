"""
Job context and state machine states.

JobContext is the single immutable value passed to every stage. Stages
never rebuild folder or base name from partial data; they read them here
and ask the key layout for keys.

Dependencies: pydantic
System role: Job identity threaded through every stage
"""

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..keys import DEFAULT_LAYOUT, KeyLayout
from .manifest import Manifest


class JobState(str, Enum):
    """Orchestrator states."""

    PRE_CHECK = "PreCheck"
    SPLITTING = "Splitting"
    REMEDIATING = "Remediating"
    MERGING = "Merging"
    TITLE_GENERATION = "TitleGeneration"
    POST_CHECK = "PostCheck"
    DONE = "Done"
    FAILED = "Failed"


TERMINAL_STATES = frozenset({JobState.DONE, JobState.FAILED})

ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PRE_CHECK: frozenset({JobState.SPLITTING, JobState.FAILED}),
    JobState.SPLITTING: frozenset({JobState.REMEDIATING, JobState.FAILED}),
    JobState.REMEDIATING: frozenset({JobState.MERGING, JobState.FAILED}),
    JobState.MERGING: frozenset({JobState.TITLE_GENERATION, JobState.FAILED}),
    JobState.TITLE_GENERATION: frozenset({JobState.POST_CHECK, JobState.FAILED}),
    JobState.POST_CHECK: frozenset({JobState.DONE, JobState.FAILED}),
    JobState.DONE: frozenset(),
    JobState.FAILED: frozenset(),
}


def can_transition(current: JobState, target: JobState) -> bool:
    """True when the state machine allows current -> target."""
    return target in ALLOWED_TRANSITIONS[current]


def new_job_id() -> str:
    return uuid.uuid4().hex


class JobContext(BaseModel):
    """Immutable identity of one remediation job."""

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(description="Unique id of this invocation")
    input_key: str = Field(description="Full key of the uploaded document")
    folder_path: str = Field(default="", description="Folder between input root and file; '' at root")
    base_name: str = Field(description="File name without folder or extension")
    manifest: Manifest | None = Field(default=None, description="Set once splitting succeeded")

    @classmethod
    def from_input_key(
        cls,
        input_key: str,
        job_id: str | None = None,
        layout: KeyLayout = DEFAULT_LAYOUT,
    ) -> "JobContext":
        """
        Build the context for an input key.

        Raises:
            InvalidInputKeyError: Key does not follow the input layout
        """
        folder_path, base_name = layout.parse_input_key(input_key)
        return cls(
            job_id=job_id or new_job_id(),
            input_key=input_key,
            folder_path=folder_path,
            base_name=base_name,
        )

    def with_manifest(self, manifest: Manifest) -> "JobContext":
        """Return a copy carrying the split manifest."""
        return self.model_copy(update={"manifest": manifest})

    def require_manifest(self) -> Manifest:
        if self.manifest is None:
            raise ValueError(f"Job {self.job_id} has no manifest yet")
        return self.manifest
