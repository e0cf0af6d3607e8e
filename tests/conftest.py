"""
Shared test fixtures and configuration for entire test suite.

Provides: In-memory PDFs built with pikepdf, blob store, fake document and
generative services, fast pipeline settings
Dependencies: pytest, pikepdf
System role: Test infrastructure and fixture management
"""

import threading

import pikepdf
import pytest

from remediation.boundary.blob_store import InMemoryBlobStore
from remediation.boundary.genai.generative_client import GenerationKind
from remediation.boundary.pdf.document_service import PikePdfDocumentService
from remediation.boundary.pdf.pdf_io import open_pdf, save_pdf
from remediation.core.exceptions import DocumentServiceError, GenerationError, TransientServiceError
from remediation.core.pdf_pipeline.configs import RemediationPipelineSettings
from remediation.core.pdf_pipeline.retry import RetryPolicy

BASE_WIDTH = 600


def build_pdf(
    pages: int = 3,
    images_on: tuple[int, ...] = (),
    links_on: tuple[int, ...] = (),
    lang: str | None = None,
    title: str | None = None,
) -> bytes:
    """
    Build a PDF in memory.

    Page i is BASE_WIDTH + i points wide so page order can be verified
    after split and merge.
    """
    pdf = pikepdf.new()
    font = pdf.make_indirect(
        pikepdf.Dictionary(
            Type=pikepdf.Name.Font,
            Subtype=pikepdf.Name.Type1,
            BaseFont=pikepdf.Name.Helvetica,
        )
    )
    for i in range(pages):
        page = pdf.add_blank_page(page_size=(BASE_WIDTH + i, 800))
        resources = pikepdf.Dictionary(Font=pikepdf.Dictionary(F1=font))
        content = f"BT /F1 12 Tf 72 720 Td (Page {i + 1} text) Tj ET\n"
        if i in images_on:
            image = pikepdf.Stream(
                pdf,
                b"\xff\x00\x00",
                Type=pikepdf.Name.XObject,
                Subtype=pikepdf.Name.Image,
                Width=1,
                Height=1,
                ColorSpace=pikepdf.Name.DeviceRGB,
                BitsPerComponent=8,
            )
            resources["/XObject"] = pikepdf.Dictionary(Im0=image)
            content += "q 100 0 0 100 72 500 cm /Im0 Do Q\n"
        page.obj["/Resources"] = resources
        page.obj["/Contents"] = pdf.make_stream(content.encode("latin-1"))
        if i in links_on:
            page.obj["/Annots"] = pikepdf.Array(
                [
                    pikepdf.Dictionary(
                        Type=pikepdf.Name.Annot,
                        Subtype=pikepdf.Name.Link,
                        Rect=[72, 700, 200, 715],
                        A=pikepdf.Dictionary(
                            S=pikepdf.Name.URI,
                            URI=pikepdf.String(f"https://example.com/page-{i + 1}"),
                        ),
                    )
                ]
            )
    if lang:
        pdf.Root["/Lang"] = pikepdf.String(lang)
    if title:
        pdf.docinfo["/Title"] = pikepdf.String(title)
    return save_pdf(pdf)


def page_widths(data: bytes) -> list[int]:
    """Widths of every page, in page order."""
    with open_pdf(data) as pdf:
        return [int(page.mediabox[2]) for page in pdf.pages]


class FakeDocumentService:
    """
    Real pikepdf tagging with scripted failures.

    Chunks are identified by the width of their first page. Text extraction
    returns one line per page without touching a PDF parser.
    """

    def __init__(self, fail_widths=(), transient_widths=None) -> None:
        self._tagger = PikePdfDocumentService()
        self.fail_widths = set(fail_widths)
        self.transient_widths = dict(transient_widths or {})
        self.autotag_calls: list[int] = []
        self.on_autotag = None
        self._lock = threading.Lock()

    def autotag(self, chunk_bytes: bytes) -> bytes:
        width = page_widths(chunk_bytes)[0]
        with self._lock:
            self.autotag_calls.append(width)
            remaining = self.transient_widths.get(width, 0)
            if remaining:
                self.transient_widths[width] = remaining - 1
        if self.on_autotag is not None:
            self.on_autotag(width)
        if remaining:
            raise TransientServiceError("Tagging service throttled", service="document")
        if width in self.fail_widths:
            raise DocumentServiceError(f"Tagging rejected chunk starting at width {width}")
        return self._tagger.autotag(chunk_bytes)

    def extract_text(self, pdf_bytes: bytes) -> list[str]:
        return [f"Text of page {width - BASE_WIDTH + 1}" for width in page_widths(pdf_bytes)]


class FakeGenerativeService:
    """Deterministic text generation with scripted failures."""

    def __init__(self, fail_kinds=(), transient_failures: int = 0) -> None:
        self.fail_kinds = set(fail_kinds)
        self.transient_failures = transient_failures
        self.calls: list[tuple[GenerationKind, str]] = []
        self._lock = threading.Lock()

    def generate(self, content: str, kind: GenerationKind) -> str:
        with self._lock:
            self.calls.append((kind, content))
            if self.transient_failures:
                self.transient_failures -= 1
                raise TransientServiceError("429 quota exceeded", service="genai")
        if kind in self.fail_kinds:
            raise GenerationError(f"No {kind.value} available")
        first_line = content.splitlines()[0] if content else ""
        return f"Generated {kind.value}: {first_line[:60]}"


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def document_service():
    return FakeDocumentService()


@pytest.fixture
def generative_service():
    return FakeGenerativeService()


@pytest.fixture
def fast_retry():
    return RetryPolicy(max_attempts=3, initial_backoff=0, max_backoff=0)


@pytest.fixture
def settings():
    """Pipeline settings with small chunks and no backoff delay."""
    return RemediationPipelineSettings(
        _env_file=None,
        bucket="test-bucket",
        chunk_size=2,
        max_concurrency=2,
        max_attempts=3,
        backoff_initial_seconds=0,
        backoff_max_seconds=0,
        chunk_timeout_seconds=30,
    )


@pytest.fixture
def pdf_factory():
    """Callable building test PDFs (see build_pdf)."""
    return build_pdf


@pytest.fixture
def read_widths():
    """Callable returning page widths of PDF bytes."""
    return page_widths


@pytest.fixture
def document_service_factory():
    """Callable building a FakeDocumentService with scripted failures."""
    return FakeDocumentService


@pytest.fixture
def generative_service_factory():
    """Callable building a FakeGenerativeService with scripted failures."""
    return FakeGenerativeService
