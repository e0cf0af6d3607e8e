"""
Boundary adapters for external collaborators.

Blob storage, the document (tagging/extraction) service and the
generative service live here; the pipeline only sees their protocols.
"""

from remediation.boundary.blob_store import BlobStore, InMemoryBlobStore

__all__ = ["BlobStore", "InMemoryBlobStore"]
