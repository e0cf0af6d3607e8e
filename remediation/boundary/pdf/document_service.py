"""
Document service: structural tagging and text extraction.

The pipeline talks to a DocumentService protocol. PikePdfDocumentService is
the local implementation: it marks the document as tagged and builds a
structure tree with Figure and Link elements that the enrichment stage
fills in. Text extraction goes through LangChain's PyPDFLoader.

Dependencies: pikepdf, langchain_community.document_loaders
System role: External document-processing collaborator (per-chunk)
"""

import logging
import os
import shutil
import tempfile
from typing import Protocol, runtime_checkable

import pikepdf
from langchain_community.document_loaders import PyPDFLoader

from remediation.boundary.pdf.pdf_io import (
    as_dictionary,
    open_pdf,
    page_images,
    save_pdf,
    tag_name,
)
from remediation.core.exceptions import DocumentServiceError

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentService(Protocol):
    """Structural tagging and extraction for one PDF."""

    def autotag(self, chunk_bytes: bytes) -> bytes:
        """Return a tagged copy of the chunk."""
        ...

    def extract_text(self, pdf_bytes: bytes) -> list[str]:
        """Return the text of each page, in page order."""
        ...


class PikePdfDocumentService:
    """Tag PDFs locally with pikepdf and extract text with PyPDFLoader."""

    def __init__(self, default_language: str = "en-US") -> None:
        """
        Initialize document service.

        Args:
            default_language: Value written to /Lang when the document has none
        """
        self._default_language = default_language

    def autotag(self, chunk_bytes: bytes) -> bytes:
        """
        Build a structure tree for the chunk.

        Any existing structure tree is replaced, so tagging the same bytes
        twice yields identical output.

        Args:
            chunk_bytes: Untagged (or previously tagged) chunk PDF

        Returns:
            bytes: Tagged PDF

        Raises:
            DocumentServiceError: Chunk cannot be opened or written
        """
        try:
            pdf = open_pdf(chunk_bytes)
        except pikepdf.PdfError as e:
            raise DocumentServiceError(f"Cannot open chunk for tagging: {e}") from e

        with pdf:
            root = pdf.Root
            root["/MarkInfo"] = pikepdf.Dictionary(Marked=True)
            if root.get("/Lang") is None:
                root["/Lang"] = pikepdf.String(self._default_language)
            prefs = as_dictionary(root.get("/ViewerPreferences"))
            if prefs is None:
                root["/ViewerPreferences"] = pikepdf.Dictionary(DisplayDocTitle=True)
            else:
                prefs["/DisplayDocTitle"] = True

            struct_root = pdf.make_indirect(
                pikepdf.Dictionary(Type=pikepdf.Name.StructTreeRoot)
            )
            document = pdf.make_indirect(
                pikepdf.Dictionary(
                    Type=pikepdf.Name.StructElem,
                    S=pikepdf.Name.Document,
                    P=struct_root,
                    K=pikepdf.Array(),
                )
            )
            struct_root["/K"] = document

            figures = links = 0
            for page in pdf.pages:
                for _name in page_images(page):
                    document["/K"].append(
                        pdf.make_indirect(
                            pikepdf.Dictionary(
                                Type=pikepdf.Name.StructElem,
                                S=pikepdf.Name.Figure,
                                P=document,
                                Pg=page.obj,
                            )
                        )
                    )
                    figures += 1
                links += self._tag_links(pdf, page, document)

            root["/StructTreeRoot"] = struct_root
            logger.debug(
                f"{__name__}:autotag - Tagged {len(pdf.pages)} pages, "
                f"{figures} figures, {links} links"
            )
            try:
                return save_pdf(pdf)
            except pikepdf.PdfError as e:
                raise DocumentServiceError(f"Cannot write tagged chunk: {e}") from e

    def extract_text(self, pdf_bytes: bytes) -> list[str]:
        """
        Extract page text.

        Args:
            pdf_bytes: PDF document

        Returns:
            list[str]: One string per page

        Raises:
            DocumentServiceError: When extraction fails
        """
        temp_dir = tempfile.mkdtemp(prefix="remediation_")
        local_path = os.path.join(temp_dir, "document.pdf")
        try:
            with open(local_path, "wb") as f:
                f.write(pdf_bytes)
            documents = PyPDFLoader(local_path).load()
            return [doc.page_content or "" for doc in documents]
        except Exception as e:
            raise DocumentServiceError(f"Failed to extract text: {e}") from e
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

    @staticmethod
    def _tag_links(pdf: pikepdf.Pdf, page: pikepdf.Page, document) -> int:
        """Add a Link element per link annotation, referencing it via OBJR."""
        annots = page.obj.get("/Annots")
        if annots is None:
            return 0
        count = 0
        for position, annot in enumerate(list(annots)):
            if tag_name(annot.get("/Subtype")) != "Link":
                continue
            if not annot.is_indirect:
                annot = pdf.make_indirect(annot)
                annots[position] = annot
            objr = pikepdf.Dictionary(Type=pikepdf.Name.OBJR, Obj=annot, Pg=page.obj)
            document["/K"].append(
                pdf.make_indirect(
                    pikepdf.Dictionary(
                        Type=pikepdf.Name.StructElem,
                        S=pikepdf.Name.Link,
                        P=document,
                        Pg=page.obj,
                        K=objr,
                    )
                )
            )
            count += 1
        return count
