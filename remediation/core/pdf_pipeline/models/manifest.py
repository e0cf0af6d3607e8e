"""
Manifest and chunk artifact models.

The manifest is the ordered record of a job's chunks. Chunk indices are
contiguous from 0 and define merge order.

Dependencies: pydantic
System role: Split output contract consumed by remediation and merge
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChunkDescriptor(BaseModel):
    """One entry of a manifest."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0, description="0-based position, defines merge order")
    chunk_key: str = Field(description="Key of the split chunk")
    total_chunks: int = Field(ge=1)
    first_page: int = Field(ge=0, description="0-based index of the chunk's first page in the input")
    page_count: int = Field(ge=1)


class Manifest(BaseModel):
    """Ordered chunk list for one job."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    input_key: str
    page_count: int = Field(ge=1)
    chunk_size: int = Field(ge=1)
    chunks: list[ChunkDescriptor] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_chunks(self) -> "Manifest":
        total = len(self.chunks)
        indices = [chunk.chunk_index for chunk in self.chunks]
        if indices != list(range(total)):
            raise ValueError(f"Chunk indices must be contiguous 0..{total - 1}, got {indices}")
        if any(chunk.total_chunks != total for chunk in self.chunks):
            raise ValueError("total_chunks disagrees with the number of chunks")
        next_page = 0
        for chunk in self.chunks:
            if chunk.first_page != next_page:
                raise ValueError(f"Chunk {chunk.chunk_index} does not start at page {next_page}")
            next_page += chunk.page_count
        if next_page != self.page_count:
            raise ValueError(f"Chunks cover {next_page} pages, document has {self.page_count}")
        return self

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    def chunk(self, chunk_index: int) -> ChunkDescriptor:
        return self.chunks[chunk_index]


class ChunkState(str, Enum):
    """Forward-only lifecycle of one chunk."""

    SPLIT = "Split"
    AUTOTAGGED = "Autotagged"
    ENRICHED = "Enriched"
    MERGED = "Merged"


_CHUNK_ORDER = [ChunkState.SPLIT, ChunkState.AUTOTAGGED, ChunkState.ENRICHED, ChunkState.MERGED]


class ChunkArtifact(BaseModel):
    """Keys and progress of one unit of parallel work."""

    chunk_index: int = Field(ge=0)
    chunk_key: str
    autotag_key: str
    enriched_key: str
    state: ChunkState = ChunkState.SPLIT

    def advance(self, target: ChunkState) -> "ChunkArtifact":
        """
        Return a copy in the next state.

        Raises:
            ValueError: target is not the immediate successor of the current state
        """
        current = _CHUNK_ORDER.index(self.state)
        if _CHUNK_ORDER.index(target) != current + 1:
            raise ValueError(f"Chunk {self.chunk_index} cannot move {self.state.value} -> {target.value}")
        return self.model_copy(update={"state": target})
