"""Unit tests for invocation event parsing."""

import json

import pytest

from remediation.core.pdf_pipeline.keys import DEFAULT_LAYOUT
from remediation.core.pdf_pipeline.lambda_utils.event_parser import extract_records, parse_record
from remediation.core.pdf_pipeline.lambda_utils.exceptions import MessageParseError


def _s3_record(key):
    return {
        "eventSource": "aws:s3",
        "eventName": "ObjectCreated:Put",
        "s3": {"bucket": {"name": "test-bucket"}, "object": {"key": key, "size": 1024}},
    }


def _sqs_record(body, message_id="msg-1"):
    return {"messageId": message_id, "eventSource": "aws:sqs", "body": body}


class TestExtractRecords:
    def test_direct_invocation_is_one_record(self):
        event = {"inputKey": "pdf/doc.pdf"}

        assert extract_records(event) == [event]

    def test_records_array(self):
        event = {"Records": [_s3_record("pdf/a.pdf"), _s3_record("pdf/b.pdf")]}

        assert len(extract_records(event)) == 2

    def test_unknown_shape(self):
        with pytest.raises(MessageParseError):
            extract_records({"foo": "bar"})


class TestParseRecord:
    def test_direct_payload(self):
        events = parse_record({"inputKey": "pdf/batch1/report.pdf", "jobId": "job-1"}, DEFAULT_LAYOUT)

        assert len(events) == 1
        assert events[0].input_key == "pdf/batch1/report.pdf"
        assert events[0].job_id == "job-1"

    def test_s3_key_is_url_decoded(self):
        events = parse_record(_s3_record("pdf/annual+report%282024%29.pdf"), DEFAULT_LAYOUT)

        assert events[0].input_key == "pdf/annual report(2024).pdf"

    def test_sqs_wrapped_s3_notification(self):
        body = json.dumps({"Records": [_s3_record("pdf/a/one.pdf"), _s3_record("pdf/a/two.pdf")]})

        events = parse_record(_sqs_record(body), DEFAULT_LAYOUT)

        assert [event.input_key for event in events] == ["pdf/a/one.pdf", "pdf/a/two.pdf"]

    def test_sqs_direct_payload(self):
        body = json.dumps({"inputKey": "pdf/doc.pdf"})

        events = parse_record(_sqs_record(body), DEFAULT_LAYOUT)

        assert events[0].input_key == "pdf/doc.pdf"
        assert events[0].job_id

    def test_non_pdf_key_is_rejected(self):
        with pytest.raises(MessageParseError, match="non-PDF"):
            parse_record(_s3_record("pdf/notes.txt"), DEFAULT_LAYOUT)

    def test_key_outside_input_root_is_rejected(self):
        with pytest.raises(MessageParseError, match="outside the input layout"):
            parse_record(_s3_record("result/COMPLIANT_doc.pdf"), DEFAULT_LAYOUT)

    def test_invalid_json_body(self):
        with pytest.raises(MessageParseError, match="Invalid JSON"):
            parse_record(_sqs_record("{not json"), DEFAULT_LAYOUT)

    def test_empty_body(self):
        with pytest.raises(MessageParseError, match="Empty message body"):
            parse_record(_sqs_record(""), DEFAULT_LAYOUT)

    def test_s3_test_event_is_skipped(self):
        body = json.dumps({"Service": "Amazon S3", "Event": "s3:TestEvent", "Bucket": "test-bucket"})

        with pytest.raises(MessageParseError, match="test event"):
            parse_record(_sqs_record(body), DEFAULT_LAYOUT)

    def test_wrong_event_source(self):
        with pytest.raises(MessageParseError, match="Invalid event source"):
            parse_record({"eventSource": "aws:dynamodb"}, DEFAULT_LAYOUT)

    def test_missing_object_key(self):
        record = {"eventSource": "aws:s3", "s3": {"object": {}}}

        with pytest.raises(MessageParseError, match="Missing S3 object key"):
            parse_record(record, DEFAULT_LAYOUT)

    def test_invalid_direct_payload(self):
        with pytest.raises(MessageParseError, match="Invalid job event"):
            parse_record({"inputKey": ""}, DEFAULT_LAYOUT)
