"""
Title task: merged document -> final compliant document.

Generates a document title and writes it to the document information
dictionary and the XMP dc:title, then promotes the result to the final
key. Title generation is best-effort: when it fails, the merged bytes are
promoted unchanged and a warning is returned instead of an error.

Dependencies: pikepdf
System role: Enrichment stage between merge and post-check
"""

import logging

import pikepdf

from remediation.boundary.blob_store import BlobStore
from remediation.boundary.genai.generative_client import GenerationKind, GenerativeService
from remediation.boundary.pdf.document_service import DocumentService
from remediation.boundary.pdf.pdf_io import as_dictionary, open_pdf, save_pdf
from remediation.core.exceptions import (
    EnrichmentDegradedError,
    ServiceError,
    TransientServiceError,
)
from remediation.observability.log_utils import log_with_context

from ..keys import KeyLayout
from ..models import JobContext
from ..retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


def apply_title(pdf_bytes: bytes, title: str) -> bytes:
    """
    Write a title into a PDF's metadata.

    Sets /Title in the information dictionary, dc:title in XMP and
    /DisplayDocTitle so viewers show the title instead of the file name.
    Page content is not touched.
    """
    with open_pdf(pdf_bytes) as pdf:
        pdf.docinfo["/Title"] = pikepdf.String(title)
        with pdf.open_metadata(set_pikepdf_as_editor=False) as meta:
            meta["dc:title"] = title
        prefs = as_dictionary(pdf.Root.get("/ViewerPreferences"))
        if prefs is None:
            pdf.Root["/ViewerPreferences"] = pikepdf.Dictionary(DisplayDocTitle=True)
        else:
            prefs["/DisplayDocTitle"] = True
        return save_pdf(pdf)


class TitleTask:
    """Title the merged document and promote it to the final key."""

    def __init__(
        self,
        blob_store: BlobStore,
        layout: KeyLayout,
        document_service: DocumentService,
        generative_service: GenerativeService,
        retry_policy: RetryPolicy | None = None,
        context_chars: int = 4000,
    ) -> None:
        """
        Initialize title task.

        Args:
            blob_store: Storage for merged and final documents
            layout: Key layout
            document_service: Text extraction for the title prompt
            generative_service: Title generation
            retry_policy: Retry policy for external calls
            context_chars: Characters of document text sent to the model
        """
        self._blob_store = blob_store
        self._layout = layout
        self._document_service = document_service
        self._generative_service = generative_service
        self._retry_policy = retry_policy or RetryPolicy()
        self._context_chars = context_chars

    def run(self, context: JobContext) -> tuple[str, list[str]]:
        """
        Produce the final compliant document.

        Args:
            context: Job context

        Returns:
            tuple[str, list[str]]: Final key and warnings (empty when titled)

        Raises:
            BlobStoreError: Merged document cannot be read or final key written
        """
        merged_key = self._layout.merged_key(context.folder_path, context.base_name)
        final_key = self._layout.final_key(context.folder_path, context.base_name)

        merged, _ = call_with_retry(
            self._blob_store.get,
            merged_key,
            policy=self._retry_policy,
            operation="title.read_merged",
        )

        warnings: list[str] = []
        try:
            payload = self._titled(context, merged)
        except EnrichmentDegradedError as e:
            log_with_context(
                logger,
                logging.WARNING,
                f"{__name__}:run - Promoting merged document without a title",
                job_id=context.job_id,
                reason=e.message,
            )
            warnings.append(f"{e.kind.value}: {e.message}")
            payload = merged

        call_with_retry(
            self._blob_store.put,
            final_key,
            payload,
            policy=self._retry_policy,
            operation="title.write_final",
        )
        logger.info(
            f"{__name__}:run - Final document written",
            extra={"job_id": context.job_id, "final_key": final_key},
        )
        return final_key, warnings

    def _titled(self, context: JobContext, merged: bytes) -> bytes:
        """Return the merged bytes with a generated title, or raise EnrichmentDegradedError."""
        try:
            pages, _ = call_with_retry(
                self._document_service.extract_text,
                merged,
                policy=self._retry_policy,
                operation="title.extract_text",
            )
            text = "\n".join(page.strip() for page in pages if page.strip())
            content = f"File name: {context.base_name}\n\n{text[: self._context_chars]}"
            title, _ = call_with_retry(
                self._generative_service.generate,
                content,
                GenerationKind.TITLE,
                policy=self._retry_policy,
                operation="title.generate",
            )
        except (ServiceError, TransientServiceError) as e:
            raise EnrichmentDegradedError(
                f"Title generation failed: {e.message}",
                details={"job_id": context.job_id},
            ) from e

        try:
            return apply_title(merged, title)
        except pikepdf.PdfError as e:
            raise EnrichmentDegradedError(
                f"Title could not be written: {e}",
                details={"job_id": context.job_id},
            ) from e
