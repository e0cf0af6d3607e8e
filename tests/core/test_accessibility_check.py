"""Tests for the accessibility checker."""

from unittest.mock import patch

import pikepdf
import pytest

from remediation.boundary.pdf.document_service import PikePdfDocumentService
from remediation.boundary.pdf.pdf_io import open_pdf, save_pdf
from remediation.core.pdf_pipeline.models import CheckPhase, IssueSeverity, JobContext
from remediation.core.pdf_pipeline.tasks import AccessibilityCheckTask, apply_title


@pytest.fixture
def context():
    return JobContext.from_input_key("pdf/doc.pdf", job_id="job-1")


def _rules(report):
    return [issue.rule for issue in report.issues]


def test_untagged_document_fails(blob_store, fast_retry, context, pdf_factory):
    blob_store.put("pdf/doc.pdf", pdf_factory(pages=2, links_on=(1,)))

    report = AccessibilityCheckTask(blob_store, fast_retry).check(context, "pdf/doc.pdf", CheckPhase.BEFORE)

    assert report.passed is False
    assert report.page_count == 2
    assert report.phase is CheckPhase.BEFORE
    assert _rules(report) == [
        "tagged-pdf",
        "structure-tree",
        "document-language",
        "document-title",
        "display-doc-title",
        "link-alt-text",
    ]
    link_issue = report.issues[-1]
    assert link_issue.page == 2
    assert report.issues[4].severity is IssueSeverity.WARNING


def test_tagged_document_reports_missing_alt_text(blob_store, fast_retry, context, pdf_factory):
    tagged = PikePdfDocumentService().autotag(pdf_factory(pages=3, images_on=(2,), title="Doc"))
    blob_store.put("pdf/doc.pdf", tagged)

    report = AccessibilityCheckTask(blob_store, fast_retry).check(context, "pdf/doc.pdf", CheckPhase.BEFORE)

    assert _rules(report) == ["figure-alt-text"]
    assert report.issues[0].page == 3


def test_remediated_document_passes(blob_store, fast_retry, context, pdf_factory):
    tagged = PikePdfDocumentService().autotag(pdf_factory(pages=1, images_on=(0,)))
    with open_pdf(tagged) as pdf:
        figure = pdf.Root.StructTreeRoot.K.K[0]
        figure["/Alt"] = pikepdf.String("A red square")
        tagged = save_pdf(pdf)
    blob_store.put("result/COMPLIANT_doc.pdf", apply_title(tagged, "Doc"))

    report = AccessibilityCheckTask(blob_store, fast_retry).check(
        context, "result/COMPLIANT_doc.pdf", CheckPhase.AFTER
    )

    assert report.passed is True
    assert report.issues == ()
    assert report.model_dump()["passed"] is True


def test_warnings_do_not_fail_report(blob_store, fast_retry, context, pdf_factory):
    tagged = PikePdfDocumentService().autotag(pdf_factory(pages=1, title="Doc"))
    with open_pdf(tagged) as pdf:
        del pdf.Root["/ViewerPreferences"]
        tagged = save_pdf(pdf)
    blob_store.put("pdf/doc.pdf", tagged)

    report = AccessibilityCheckTask(blob_store, fast_retry).check(context, "pdf/doc.pdf", CheckPhase.BEFORE)

    assert _rules(report) == ["display-doc-title"]
    assert report.passed is True


def test_missing_document_yields_failing_report(blob_store, fast_retry, context):
    report = AccessibilityCheckTask(blob_store, fast_retry).check(context, "pdf/doc.pdf", CheckPhase.BEFORE)

    assert report.passed is False
    assert _rules(report) == ["document-readable"]


def test_unparseable_document_yields_failing_report(blob_store, fast_retry, context):
    blob_store.put("pdf/doc.pdf", b"this is not a pdf")

    report = AccessibilityCheckTask(blob_store, fast_retry).check(context, "pdf/doc.pdf", CheckPhase.BEFORE)

    assert _rules(report) == ["document-readable"]
    assert report.page_count == 0


def test_non_dictionary_catalog_entries_are_reported(blob_store, fast_retry, context, pdf_factory):
    with open_pdf(pdf_factory(pages=1)) as pdf:
        pdf.Root["/MarkInfo"] = True
        pdf.Root["/ViewerPreferences"] = True
        pdf.Root["/StructTreeRoot"] = 5
        blob_store.put("pdf/doc.pdf", save_pdf(pdf))

    report = AccessibilityCheckTask(blob_store, fast_retry).check(context, "pdf/doc.pdf", CheckPhase.BEFORE)

    assert _rules(report) == [
        "tagged-pdf",
        "structure-tree",
        "document-language",
        "document-title",
        "display-doc-title",
    ]


def test_inspection_error_yields_failing_report(blob_store, fast_retry, context, pdf_factory):
    blob_store.put("pdf/doc.pdf", pdf_factory(pages=1))

    with patch(
        "remediation.core.pdf_pipeline.tasks.accessibility_check_task.check_document",
        side_effect=AttributeError("'bool' object has no attribute 'get'"),
    ):
        report = AccessibilityCheckTask(blob_store, fast_retry).check(
            context, "pdf/doc.pdf", CheckPhase.BEFORE
        )

    assert report.passed is False
    assert _rules(report) == ["document-readable"]
    assert "AttributeError" in report.issues[0].message
