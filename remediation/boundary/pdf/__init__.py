"""PDF adapters: byte I/O helpers and the document (tagging) service."""

from remediation.boundary.pdf.document_service import DocumentService, PikePdfDocumentService

__all__ = ["DocumentService", "PikePdfDocumentService"]
