"""
Accessibility checker.

Stateless: reads a document and returns a ComplianceReport. It never
modifies the document and never raises for a bad document; an unreadable
or missing file produces a failing report so the informational pre-check
cannot block the pipeline.

Rules (in report order):
    document-readable   error    document can be fetched and opened
    tagged-pdf          error    /MarkInfo /Marked is true
    structure-tree      error    /StructTreeRoot exists and has children
    document-language   error    /Lang is set
    document-title      error    information dictionary has a /Title
    display-doc-title   warning  /ViewerPreferences /DisplayDocTitle is true
    figure-alt-text     error    every Figure element has /Alt or /ActualText
    link-alt-text       error    every link annotation has /Contents

Dependencies: pikepdf
System role: Pre- and post-remediation compliance check
"""

import logging

import pikepdf

from remediation.boundary.blob_store import BlobStore
from remediation.boundary.pdf.pdf_io import (
    as_dictionary,
    iter_struct_elements,
    open_pdf,
    page_link_annotations,
    tag_name,
)
from remediation.core.exceptions import BlobStoreError, TransientServiceError

from ..models import CheckPhase, ComplianceIssue, ComplianceReport, IssueSeverity, JobContext
from ..retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


def _error(rule: str, message: str, page: int | None = None) -> ComplianceIssue:
    return ComplianceIssue(rule=rule, severity=IssueSeverity.ERROR, message=message, page=page)


def _warning(rule: str, message: str) -> ComplianceIssue:
    return ComplianceIssue(rule=rule, severity=IssueSeverity.WARNING, message=message)


def check_document(pdf: pikepdf.Pdf) -> list[ComplianceIssue]:
    """Apply every document rule to an open PDF."""
    issues: list[ComplianceIssue] = []
    root = pdf.Root

    mark_info = as_dictionary(root.get("/MarkInfo"))
    if mark_info is None or not bool(mark_info.get("/Marked", False)):
        issues.append(_error("tagged-pdf", "Document is not marked as tagged"))

    struct_root = as_dictionary(root.get("/StructTreeRoot"))
    if struct_root is None or struct_root.get("/K") is None:
        issues.append(_error("structure-tree", "Document has no structure tree"))

    lang = root.get("/Lang")
    if lang is None or not str(lang).strip():
        issues.append(_error("document-language", "Document language is not set"))

    title = pdf.docinfo.get("/Title") if "/Info" in pdf.trailer else None
    if title is None or not str(title).strip():
        issues.append(_error("document-title", "Document has no title"))

    prefs = as_dictionary(root.get("/ViewerPreferences"))
    if prefs is None or not bool(prefs.get("/DisplayDocTitle", False)):
        issues.append(_warning("display-doc-title", "Viewer is not set to display the document title"))

    page_numbers = {page.obj.objgen: number for number, page in enumerate(pdf.pages, start=1)}
    for element in iter_struct_elements(struct_root):
        if tag_name(element.get("/S")) != "Figure":
            continue
        if element.get("/Alt") is not None or element.get("/ActualText") is not None:
            continue
        page_ref = element.get("/Pg")
        page = page_numbers.get(page_ref.objgen) if page_ref is not None else None
        issues.append(_error("figure-alt-text", "Figure has no alternative text", page))

    for number, page in enumerate(pdf.pages, start=1):
        for annot in page_link_annotations(page):
            contents = annot.get("/Contents")
            if contents is None or not str(contents).strip():
                issues.append(_error("link-alt-text", "Link has no descriptive text", number))

    return issues


class AccessibilityCheckTask:
    """Check a stored document and report its compliance."""

    def __init__(self, blob_store: BlobStore, retry_policy: RetryPolicy | None = None) -> None:
        self._blob_store = blob_store
        self._retry_policy = retry_policy or RetryPolicy()

    def check(self, context: JobContext, document_key: str, phase: CheckPhase) -> ComplianceReport:
        """
        Check one document.

        Args:
            context: Job context
            document_key: Key of the document to check
            phase: before (input document) or after (final document)

        Returns:
            ComplianceReport: Findings; passed is False for unreadable documents
        """
        try:
            data, _ = call_with_retry(
                self._blob_store.get,
                document_key,
                policy=self._retry_policy,
                operation=f"check.{phase.value}.read",
            )
        except (BlobStoreError, TransientServiceError) as e:
            return self._unreadable(context, document_key, phase, f"Document cannot be read: {e.message}")

        try:
            pdf = open_pdf(data)
        except pikepdf.PdfError as e:
            return self._unreadable(context, document_key, phase, f"Document cannot be parsed: {e}")

        with pdf:
            try:
                issues = check_document(pdf)
            except Exception as e:  # pylint: disable=broad-except
                logger.exception(f"{__name__}:check - Document structure could not be inspected")
                return self._unreadable(
                    context,
                    document_key,
                    phase,
                    f"Document structure cannot be inspected: {type(e).__name__}: {e}",
                )
            report = ComplianceReport(
                job_id=context.job_id,
                phase=phase,
                document_key=document_key,
                page_count=len(pdf.pages),
                issues=tuple(issues),
            )

        logger.info(
            f"{__name__}:check - {phase.value} check {'passed' if report.passed else 'failed'} "
            f"with {len(report.errors())} errors",
            extra={"job_id": context.job_id, "document_key": document_key},
        )
        return report

    @staticmethod
    def _unreadable(
        context: JobContext,
        document_key: str,
        phase: CheckPhase,
        message: str,
    ) -> ComplianceReport:
        logger.warning(f"{__name__}:check - {message}", extra={"job_id": context.job_id})
        return ComplianceReport(
            job_id=context.job_id,
            phase=phase,
            document_key=document_key,
            issues=(_error("document-readable", message),),
        )
