"""
Split task: input document -> fixed-size page chunks + manifest.

Every chunk is built in memory before anything is written, so an
unreadable input leaves no chunks behind. The manifest is written last;
its presence marks a completed split.

Dependencies: pikepdf
System role: First stage after the pre-check
"""

import logging

import pikepdf

from remediation.boundary.blob_store import BlobStore
from remediation.boundary.pdf.pdf_io import open_pdf, save_pdf
from remediation.core.exceptions import BlobNotFoundError, MalformedInputError

from ..keys import KeyLayout
from ..models import ChunkDescriptor, JobContext, Manifest
from ..retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


def plan_chunks(page_count: int, chunk_size: int) -> list[tuple[int, int]]:
    """
    Page ranges for a document.

    Args:
        page_count: Pages in the document (>= 1)
        chunk_size: Pages per chunk (>= 1); the last chunk may be smaller

    Returns:
        list[tuple[int, int]]: (first_page, page_count) per chunk, in page order
    """
    if page_count < 1:
        raise ValueError("page_count must be >= 1")
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    return [
        (first, min(chunk_size, page_count - first))
        for first in range(0, page_count, chunk_size)
    ]


class SplitTask:
    """Split one job's input into chunks."""

    def __init__(
        self,
        blob_store: BlobStore,
        layout: KeyLayout,
        chunk_size: int,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize split task.

        Args:
            blob_store: Storage for input, chunks and manifest
            layout: Key layout
            chunk_size: Pages per chunk
            retry_policy: Retry policy for storage calls
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self._blob_store = blob_store
        self._layout = layout
        self._chunk_size = chunk_size
        self._retry_policy = retry_policy or RetryPolicy()

    def split(self, context: JobContext) -> Manifest:
        """
        Split the job's input document.

        Args:
            context: Job context

        Returns:
            Manifest: Ordered chunk descriptors (at least one)

        Raises:
            MalformedInputError: Input missing, unreadable, or without pages
        """
        try:
            data, _ = call_with_retry(
                self._blob_store.get,
                context.input_key,
                policy=self._retry_policy,
                operation="split.read_input",
            )
        except BlobNotFoundError as e:
            raise MalformedInputError("Input document not found", context.input_key) from e

        chunk_payloads = self._build_chunks(context, data)
        total = len(chunk_payloads)

        descriptors = []
        for index, (first_page, page_count, payload) in enumerate(chunk_payloads):
            chunk_key = self._layout.chunk_key(context.folder_path, context.base_name, index)
            call_with_retry(
                self._blob_store.put,
                chunk_key,
                payload,
                policy=self._retry_policy,
                operation="split.write_chunk",
            )
            descriptors.append(
                ChunkDescriptor(
                    chunk_index=index,
                    chunk_key=chunk_key,
                    total_chunks=total,
                    first_page=first_page,
                    page_count=page_count,
                )
            )

        manifest = Manifest(
            job_id=context.job_id,
            input_key=context.input_key,
            page_count=sum(count for _, count, _ in chunk_payloads),
            chunk_size=self._chunk_size,
            chunks=descriptors,
        )
        call_with_retry(
            self._blob_store.put,
            self._layout.manifest_key(context.folder_path, context.base_name),
            manifest.model_dump_json(indent=2).encode("utf-8"),
            policy=self._retry_policy,
            operation="split.write_manifest",
        )
        logger.info(
            f"{__name__}:split - Split into {total} chunks",
            extra={"job_id": context.job_id, "page_count": manifest.page_count},
        )
        return manifest

    def _build_chunks(self, context: JobContext, data: bytes) -> list[tuple[int, int, bytes]]:
        """Render every chunk to bytes; nothing is written here."""
        try:
            source = open_pdf(data)
        except pikepdf.PdfError as e:
            raise MalformedInputError(f"Input is not a readable PDF: {e}", context.input_key) from e

        with source:
            page_count = len(source.pages)
            if page_count == 0:
                raise MalformedInputError("Input document has no pages", context.input_key)

            payloads = []
            for first_page, count in plan_chunks(page_count, self._chunk_size):
                with pikepdf.new() as chunk:
                    chunk.pages.extend(source.pages[first_page:first_page + count])
                    lang = source.Root.get("/Lang")
                    if lang is not None:
                        chunk.Root["/Lang"] = pikepdf.String(str(lang))
                    try:
                        payloads.append((first_page, count, save_pdf(chunk)))
                    except pikepdf.PdfError as e:
                        raise MalformedInputError(
                            f"Pages {first_page}-{first_page + count - 1} cannot be written: {e}",
                            context.input_key,
                        ) from e
            return payloads
