"""
Autotag worker: chunk -> structurally tagged chunk.

Reads the split chunk, sends it through the document service and writes
the result to the chunk's autotag key. The chunk key is never written.

Dependencies: None (document service is injected)
System role: First worker stage of every chunk task
"""

import logging

from remediation.boundary.blob_store import BlobStore
from remediation.boundary.pdf.document_service import DocumentService
from remediation.core.exceptions import BlobNotFoundError, DocumentServiceError

from ..keys import KeyLayout
from ..models import JobContext
from ..retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class AutotagTask:
    """Tag one chunk."""

    def __init__(
        self,
        blob_store: BlobStore,
        layout: KeyLayout,
        document_service: DocumentService,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._blob_store = blob_store
        self._layout = layout
        self._document_service = document_service
        self._retry_policy = retry_policy or RetryPolicy()

    def run(self, context: JobContext, chunk_index: int) -> tuple[str, int]:
        """
        Tag a chunk and write it to its autotag key.

        Args:
            context: Job context
            chunk_index: Index of the chunk in the job's manifest

        Returns:
            tuple[str, int]: Autotag key and attempts used by the tagging call

        Raises:
            DocumentServiceError: Chunk missing or tagging failed permanently
            TransientServiceError: Retry budget exhausted
        """
        chunk_key = self._layout.chunk_key(context.folder_path, context.base_name, chunk_index)
        output_key = self._layout.autotag_key(context.folder_path, context.base_name, chunk_index)

        try:
            chunk_bytes, _ = call_with_retry(
                self._blob_store.get,
                chunk_key,
                policy=self._retry_policy,
                operation="autotag.read_chunk",
            )
        except BlobNotFoundError as e:
            raise DocumentServiceError(f"Chunk {chunk_index} not found: {chunk_key}") from e

        tagged, attempts = call_with_retry(
            self._document_service.autotag,
            chunk_bytes,
            policy=self._retry_policy,
            operation="autotag.tag",
        )
        call_with_retry(
            self._blob_store.put,
            output_key,
            tagged,
            policy=self._retry_policy,
            operation="autotag.write",
        )

        logger.info(
            f"{__name__}:run - Chunk {chunk_index} tagged",
            extra={"job_id": context.job_id, "output_key": output_key, "attempts": attempts},
        )
        return output_key, attempts
