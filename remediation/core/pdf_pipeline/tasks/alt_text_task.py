"""
Alt-text worker: tagged chunk -> enriched chunk.

Fills in what the tagging pass leaves empty: /Alt on Figure elements and
/Contents on link annotations (mirrored onto the Link element). Existing
text is kept. Output goes to the chunk's enriched key.

Dependencies: pikepdf
System role: Second worker stage of every chunk task
"""

import logging

import pikepdf

from remediation.boundary.blob_store import BlobStore
from remediation.boundary.genai.generative_client import GenerationKind, GenerativeService
from remediation.boundary.pdf.document_service import DocumentService
from remediation.boundary.pdf.pdf_io import (
    as_list,
    iter_struct_elements,
    link_uri,
    open_pdf,
    page_link_annotations,
    save_pdf,
    tag_name,
)
from remediation.core.exceptions import BlobNotFoundError, DocumentServiceError

from ..keys import KeyLayout
from ..models import JobContext
from ..retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

PAGE_CONTEXT_CHARS = 1500


class AltTextTask:
    """Generate alternative text for one tagged chunk."""

    def __init__(
        self,
        blob_store: BlobStore,
        layout: KeyLayout,
        document_service: DocumentService,
        generative_service: GenerativeService,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Initialize alt-text task.

        Args:
            blob_store: Storage for tagged and enriched chunks
            layout: Key layout
            document_service: Page text extraction for prompt context
            generative_service: Alt text and link text generation
            retry_policy: Retry policy for every external call
        """
        self._blob_store = blob_store
        self._layout = layout
        self._document_service = document_service
        self._generative_service = generative_service
        self._retry_policy = retry_policy or RetryPolicy()

    def run(self, context: JobContext, chunk_index: int) -> tuple[str, int]:
        """
        Enrich a tagged chunk and write it to its enriched key.

        Args:
            context: Job context
            chunk_index: Index of the chunk in the job's manifest

        Returns:
            tuple[str, int]: Enriched key and the most attempts any call needed

        Raises:
            DocumentServiceError: Tagged chunk missing or unreadable
            GenerationError: Generation failed permanently
            TransientServiceError: Retry budget exhausted
        """
        input_key = self._layout.autotag_key(context.folder_path, context.base_name, chunk_index)
        output_key = self._layout.enriched_key(context.folder_path, context.base_name, chunk_index)

        try:
            tagged, _ = call_with_retry(
                self._blob_store.get,
                input_key,
                policy=self._retry_policy,
                operation="alt_text.read_chunk",
            )
        except BlobNotFoundError as e:
            raise DocumentServiceError(f"Tagged chunk {chunk_index} not found: {input_key}") from e

        page_texts, attempts = call_with_retry(
            self._document_service.extract_text,
            tagged,
            policy=self._retry_policy,
            operation="alt_text.extract_text",
        )

        first_page = 0
        if context.manifest is not None:
            first_page = context.manifest.chunk(chunk_index).first_page

        try:
            pdf = open_pdf(tagged)
        except pikepdf.PdfError as e:
            raise DocumentServiceError(f"Cannot open tagged chunk {chunk_index}: {e}") from e

        with pdf:
            page_numbers = {page.obj.objgen: i for i, page in enumerate(pdf.pages)}
            figures, max_attempts = self._describe_figures(
                pdf, page_numbers, page_texts, first_page, context.base_name
            )
            links, link_attempts = self._describe_links(pdf, page_texts, first_page)
            attempts = max(attempts, max_attempts, link_attempts)
            try:
                enriched = save_pdf(pdf)
            except pikepdf.PdfError as e:
                raise DocumentServiceError(f"Cannot write enriched chunk {chunk_index}: {e}") from e

        call_with_retry(
            self._blob_store.put,
            output_key,
            enriched,
            policy=self._retry_policy,
            operation="alt_text.write",
        )
        logger.info(
            f"{__name__}:run - Chunk {chunk_index} enriched ({figures} figures, {links} links)",
            extra={"job_id": context.job_id, "output_key": output_key},
        )
        return output_key, attempts

    def _generate(self, content: str, kind: GenerationKind) -> tuple[str, int]:
        return call_with_retry(
            self._generative_service.generate,
            content,
            kind,
            policy=self._retry_policy,
            operation=f"alt_text.generate_{kind.value}",
        )

    def _describe_figures(
        self,
        pdf: pikepdf.Pdf,
        page_numbers: dict[tuple[int, int], int],
        page_texts: list[str],
        first_page: int,
        base_name: str,
    ) -> tuple[int, int]:
        """Set /Alt on every Figure element lacking it."""
        struct_root = pdf.Root.get("/StructTreeRoot")
        count = attempts = 0
        for element in iter_struct_elements(struct_root):
            if tag_name(element.get("/S")) != "Figure" or element.get("/Alt") is not None:
                continue
            page_ref = element.get("/Pg")
            local_index = page_numbers.get(page_ref.objgen, 0) if page_ref is not None else 0
            text = page_texts[local_index] if local_index < len(page_texts) else ""
            content = (
                f"Figure {count + 1} on page {first_page + local_index + 1} of '{base_name}'.\n"
                f"Text on the page:\n{text[:PAGE_CONTEXT_CHARS]}"
            )
            alt, used = self._generate(content, GenerationKind.ALT_TEXT)
            element["/Alt"] = pikepdf.String(alt)
            attempts = max(attempts, used)
            count += 1
        return count, attempts

    def _describe_links(
        self,
        pdf: pikepdf.Pdf,
        page_texts: list[str],
        first_page: int,
    ) -> tuple[int, int]:
        """Set /Contents on link annotations and /Alt on their Link elements."""
        generated: dict[str, str] = {}
        count = attempts = 0
        for local_index, page in enumerate(pdf.pages):
            for annot in page_link_annotations(page):
                if annot.get("/Contents") is not None:
                    continue
                uri = link_uri(annot)
                cache_key = uri or f"#page-{local_index}"
                if cache_key not in generated:
                    if uri:
                        content = f"URL: {uri}"
                    else:
                        text = page_texts[local_index] if local_index < len(page_texts) else ""
                        content = (
                            f"Internal link on page {first_page + local_index + 1}.\n"
                            f"Text on the page:\n{text[:PAGE_CONTEXT_CHARS]}"
                        )
                    generated[cache_key], used = self._generate(content, GenerationKind.LINK_TEXT)
                    attempts = max(attempts, used)
                annot["/Contents"] = pikepdf.String(generated[cache_key])
                count += 1

        struct_root = pdf.Root.get("/StructTreeRoot")
        for element in iter_struct_elements(struct_root):
            if tag_name(element.get("/S")) != "Link" or element.get("/Alt") is not None:
                continue
            for child in as_list(element.get("/K")):
                if not isinstance(child, pikepdf.Dictionary) or tag_name(child.get("/Type")) != "OBJR":
                    continue
                annot = child.get("/Obj")
                if annot is not None and annot.get("/Contents") is not None:
                    element["/Alt"] = pikepdf.String(str(annot.Contents))
                    break
        return count, attempts
