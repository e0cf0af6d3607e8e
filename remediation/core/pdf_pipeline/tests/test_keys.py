"""Unit tests for the artifact key layout."""

import pytest

from remediation.core.exceptions import InvalidInputKeyError
from remediation.core.pdf_pipeline.keys import (
    DEFAULT_LAYOUT,
    KeyLayout,
    KeyStage,
    derive_base_name,
    derive_folder_path,
)


class TestParseInputKey:
    def test_file_at_root(self):
        assert DEFAULT_LAYOUT.parse_input_key("pdf/report.pdf") == ("", "report")

    def test_file_in_subfolder(self):
        assert DEFAULT_LAYOUT.parse_input_key("pdf/batch1/report.pdf") == ("batch1", "report")

    def test_nested_folders(self):
        folder, base = DEFAULT_LAYOUT.parse_input_key("pdf/2024/q1/annual.report.pdf")

        assert folder == "2024/q1"
        assert base == "annual.report"

    @pytest.mark.parametrize(
        "input_key",
        [
            "",
            "docs/report.pdf",
            "pdf/",
            "pdf/report",
            "pdf/.pdf",
            "pdf/a//report.pdf",
            "pdf//report.pdf",
            "pdf//a/report.pdf",
            "pdf/a///report.pdf",
            "pdfreport.pdf",
        ],
    )
    def test_rejects_malformed_keys(self, input_key):
        with pytest.raises(InvalidInputKeyError):
            DEFAULT_LAYOUT.parse_input_key(input_key)

    def test_error_carries_input_key(self):
        with pytest.raises(InvalidInputKeyError) as exc_info:
            DEFAULT_LAYOUT.parse_input_key("docs/report.pdf")

        assert exc_info.value.details["input_key"] == "docs/report.pdf"

    def test_leading_separator_does_not_alias_root_file(self):
        assert DEFAULT_LAYOUT.parse_input_key("pdf/report.pdf") == ("", "report")

        with pytest.raises(InvalidInputKeyError, match="empty segments"):
            DEFAULT_LAYOUT.parse_input_key("pdf//report.pdf")

    def test_module_helpers(self):
        assert derive_folder_path("pdf/a/b/c.pdf") == "a/b"
        assert derive_base_name("pdf/a/b/c.pdf") == "c"


class TestDerivedKeys:
    def test_root_job_keys(self):
        layout = DEFAULT_LAYOUT

        assert layout.chunk_key("", "report", 0) == "temp/report/report_chunk_0.pdf"
        assert layout.autotag_key("", "report", 1) == "temp/report/output_autotag/report_chunk_1.pdf"
        assert layout.enriched_key("", "report", 2) == "temp/report/FINAL_report_chunk_2.pdf"
        assert layout.merged_key("", "report") == "temp/report/merged_report.pdf"
        assert layout.manifest_key("", "report") == "temp/report/manifest.json"
        assert layout.outcome_key("", "report") == "temp/report/job-outcome.json"
        assert layout.final_key("", "report") == "result/COMPLIANT_report.pdf"

    def test_folder_is_threaded_through_every_key(self):
        layout = DEFAULT_LAYOUT

        assert layout.chunk_key("batch1", "report", 0) == "temp/batch1/report/report_chunk_0.pdf"
        assert layout.report_key("batch1", "report", "before") == (
            "temp/batch1/report/accessability-report/before.json"
        )
        assert layout.final_key("batch1", "report") == "result/batch1/COMPLIANT_report.pdf"

    def test_same_base_name_in_different_folders_never_collides(self):
        a = DEFAULT_LAYOUT.merged_key("a", "report")
        b = DEFAULT_LAYOUT.merged_key("b", "report")

        assert a != b

    def test_custom_roots(self):
        layout = KeyLayout(input_root="in", temp_root="work", result_root="out")

        assert layout.parse_input_key("in/x/doc.pdf") == ("x", "doc")
        assert layout.enriched_key("x", "doc", 0) == "work/x/doc/FINAL_doc_chunk_0.pdf"
        assert layout.final_key("x", "doc") == "out/x/COMPLIANT_doc.pdf"

    @pytest.mark.parametrize("chunk_index", [-1, None, True])
    def test_invalid_chunk_index(self, chunk_index):
        with pytest.raises(ValueError):
            DEFAULT_LAYOUT.chunk_key("", "report", chunk_index)

    def test_invalid_base_name(self):
        with pytest.raises(InvalidInputKeyError):
            DEFAULT_LAYOUT.merged_key("", "a/b")

    def test_invalid_report_phase(self):
        with pytest.raises(ValueError):
            DEFAULT_LAYOUT.report_key("", "report", "")


class TestDerive:
    def test_dispatches_to_builders(self):
        layout = DEFAULT_LAYOUT

        assert layout.derive("f", "b", KeyStage.INPUT) == "pdf/f/b.pdf"
        assert layout.derive("f", "b", KeyStage.CHUNK, chunk_index=3) == layout.chunk_key("f", "b", 3)
        assert layout.derive("f", "b", KeyStage.REPORT, phase="after") == layout.report_key("f", "b", "after")
        assert layout.derive("f", "b", "final") == layout.final_key("f", "b")

    def test_chunk_stage_requires_index(self):
        with pytest.raises(ValueError):
            DEFAULT_LAYOUT.derive("", "b", KeyStage.AUTOTAG)

    def test_report_stage_requires_phase(self):
        with pytest.raises(ValueError, match="phase is required"):
            DEFAULT_LAYOUT.derive("", "b", KeyStage.REPORT)

    def test_input_key_round_trips_through_parse(self):
        input_key = DEFAULT_LAYOUT.derive("2024/q1", "annual", KeyStage.INPUT)

        assert DEFAULT_LAYOUT.parse_input_key(input_key) == ("2024/q1", "annual")
