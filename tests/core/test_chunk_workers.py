"""Tests for the autotag and alt-text worker stages."""

import pikepdf
import pytest

from remediation.boundary.genai.generative_client import GenerationKind
from remediation.boundary.pdf.pdf_io import iter_struct_elements, open_pdf, save_pdf, tag_name
from remediation.core.exceptions import DocumentServiceError, GenerationError, TransientServiceError
from remediation.core.pdf_pipeline.keys import DEFAULT_LAYOUT
from remediation.core.pdf_pipeline.models import JobContext
from remediation.core.pdf_pipeline.tasks import AltTextTask, AutotagTask, SplitTask


@pytest.fixture
def split_context(blob_store, fast_retry, pdf_factory):
    """Context for pdf/batch1/doc.pdf split into 2-page chunks."""
    blob_store.put(
        "pdf/batch1/doc.pdf",
        pdf_factory(pages=3, images_on=(0, 2), links_on=(1,)),
    )
    context = JobContext.from_input_key("pdf/batch1/doc.pdf", job_id="job-1")
    manifest = SplitTask(blob_store, DEFAULT_LAYOUT, chunk_size=2, retry_policy=fast_retry).split(context)
    return context.with_manifest(manifest)


def _struct_elements(data, structure_type):
    with open_pdf(data) as pdf:
        return [
            {key: str(element[key]) for key in ("/Alt",) if element.get(key) is not None}
            for element in iter_struct_elements(pdf.Root.get("/StructTreeRoot"))
            if tag_name(element.get("/S")) == structure_type
        ]


class TestAutotagTask:
    def test_writes_autotag_key_and_keeps_chunk(self, blob_store, document_service, fast_retry, split_context):
        chunk_before = blob_store.get("temp/batch1/doc/doc_chunk_0.pdf")
        task = AutotagTask(blob_store, DEFAULT_LAYOUT, document_service, fast_retry)

        key, attempts = task.run(split_context, 0)

        assert key == "temp/batch1/doc/output_autotag/doc_chunk_0.pdf"
        assert attempts == 1
        assert blob_store.get("temp/batch1/doc/doc_chunk_0.pdf") == chunk_before
        with open_pdf(blob_store.get(key)) as pdf:
            assert bool(pdf.Root.MarkInfo.Marked) is True
            assert "/StructTreeRoot" in pdf.Root
        assert len(_struct_elements(blob_store.get(key), "Figure")) == 1
        assert len(_struct_elements(blob_store.get(key), "Link")) == 1

    def test_is_idempotent(self, blob_store, document_service, fast_retry, split_context):
        task = AutotagTask(blob_store, DEFAULT_LAYOUT, document_service, fast_retry)

        key, _ = task.run(split_context, 1)
        first = blob_store.get(key)
        task.run(split_context, 1)

        assert blob_store.get(key) == first

    def test_retries_transient_errors(self, blob_store, fast_retry, split_context, document_service_factory):
        service = document_service_factory(transient_widths={600: 2})
        task = AutotagTask(blob_store, DEFAULT_LAYOUT, service, fast_retry)

        _, attempts = task.run(split_context, 0)

        assert attempts == 3
        assert service.autotag_calls == [600, 600, 600]

    def test_exhausted_retries_raise(self, blob_store, fast_retry, split_context, document_service_factory):
        service = document_service_factory(transient_widths={602: 5})
        task = AutotagTask(blob_store, DEFAULT_LAYOUT, service, fast_retry)

        with pytest.raises(TransientServiceError) as exc_info:
            task.run(split_context, 1)

        assert exc_info.value.details["attempts"] == 3
        assert not blob_store.exists("temp/batch1/doc/output_autotag/doc_chunk_1.pdf")

    def test_missing_chunk(self, blob_store, document_service, fast_retry, split_context):
        task = AutotagTask(blob_store, DEFAULT_LAYOUT, document_service, fast_retry)

        with pytest.raises(DocumentServiceError):
            task.run(split_context, 5)


class TestAltTextTask:
    def _tag(self, blob_store, document_service, fast_retry, context, index):
        AutotagTask(blob_store, DEFAULT_LAYOUT, document_service, fast_retry).run(context, index)

    def test_fills_figure_alt_text(self, blob_store, document_service, generative_service, fast_retry, split_context):
        self._tag(blob_store, document_service, fast_retry, split_context, 1)
        task = AltTextTask(blob_store, DEFAULT_LAYOUT, document_service, generative_service, fast_retry)

        key, _ = task.run(split_context, 1)

        assert key == "temp/batch1/doc/FINAL_doc_chunk_1.pdf"
        figures = _struct_elements(blob_store.get(key), "Figure")
        # Chunk 1 starts at document page 3
        assert figures == [{"/Alt": "Generated altText: Figure 1 on page 3 of 'doc'."}]
        kinds = [kind for kind, _ in generative_service.calls]
        assert kinds == [GenerationKind.ALT_TEXT]

    def test_fills_link_text(self, blob_store, document_service, generative_service, fast_retry, split_context):
        self._tag(blob_store, document_service, fast_retry, split_context, 0)
        task = AltTextTask(blob_store, DEFAULT_LAYOUT, document_service, generative_service, fast_retry)

        key, _ = task.run(split_context, 0)

        expected = "Generated linkText: URL: https://example.com/page-2"
        with open_pdf(blob_store.get(key)) as pdf:
            annot = pdf.pages[1].obj.Annots[0]
            assert str(annot.Contents) == expected
        assert _struct_elements(blob_store.get(key), "Link") == [{"/Alt": expected}]

    def test_link_text_reaches_link_with_mixed_children(
        self, blob_store, document_service, generative_service, fast_retry, split_context
    ):
        self._tag(blob_store, document_service, fast_retry, split_context, 0)
        autotag_key = DEFAULT_LAYOUT.autotag_key("batch1", "doc", 0)
        with open_pdf(blob_store.get(autotag_key)) as pdf:
            for element in iter_struct_elements(pdf.Root.StructTreeRoot):
                if tag_name(element.get("/S")) == "Link":
                    element["/K"] = pikepdf.Array([0, element.K])
            blob_store.put(autotag_key, save_pdf(pdf))
        task = AltTextTask(blob_store, DEFAULT_LAYOUT, document_service, generative_service, fast_retry)

        key, _ = task.run(split_context, 0)

        expected = "Generated linkText: URL: https://example.com/page-2"
        assert _struct_elements(blob_store.get(key), "Link") == [{"/Alt": expected}]

    def test_is_idempotent(self, blob_store, document_service, generative_service, fast_retry, split_context):
        self._tag(blob_store, document_service, fast_retry, split_context, 0)
        task = AltTextTask(blob_store, DEFAULT_LAYOUT, document_service, generative_service, fast_retry)

        key, _ = task.run(split_context, 0)
        first = blob_store.get(key)
        task.run(split_context, 0)

        assert blob_store.get(key) == first
        assert blob_store.exists("temp/batch1/doc/output_autotag/doc_chunk_0.pdf")

    def test_generation_failure_propagates(
        self, blob_store, document_service, fast_retry, split_context, generative_service_factory
    ):
        self._tag(blob_store, document_service, fast_retry, split_context, 0)
        generator = generative_service_factory(fail_kinds={GenerationKind.ALT_TEXT})
        task = AltTextTask(blob_store, DEFAULT_LAYOUT, document_service, generator, fast_retry)

        with pytest.raises(GenerationError):
            task.run(split_context, 0)

        assert not blob_store.exists("temp/batch1/doc/FINAL_doc_chunk_0.pdf")

    def test_transient_generation_is_retried(
        self, blob_store, document_service, fast_retry, split_context, generative_service_factory
    ):
        self._tag(blob_store, document_service, fast_retry, split_context, 1)
        generator = generative_service_factory(transient_failures=1)
        task = AltTextTask(blob_store, DEFAULT_LAYOUT, document_service, generator, fast_retry)

        _, attempts = task.run(split_context, 1)

        assert attempts == 2

    def test_requires_tagged_chunk(self, blob_store, document_service, generative_service, fast_retry, split_context):
        task = AltTextTask(blob_store, DEFAULT_LAYOUT, document_service, generative_service, fast_retry)

        with pytest.raises(DocumentServiceError):
            task.run(split_context, 0)
