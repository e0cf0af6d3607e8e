"""
Invocation event parsing utilities for Lambda.

Three shapes are accepted and normalized into JobEvent:

    direct   {"inputKey": "pdf/batch1/report.pdf", "jobId": "..."}
    S3       {"Records": [{"eventSource": "aws:s3", "s3": {"object": {"key": ...}}}]}
    SQS      {"Records": [{"eventSource": "aws:sqs", "body": "<direct or S3 JSON>"}]}

Keys from S3 notifications arrive URL-encoded ('+' for spaces).
"""

import json
import logging
from typing import Any, Dict, List
from urllib.parse import unquote_plus

from pydantic import ValidationError

from remediation.core.exceptions import InvalidInputKeyError
from remediation.core.pdf_pipeline.keys import PDF_EXTENSION, KeyLayout
from remediation.core.pdf_pipeline.lambda_utils.exceptions import MessageParseError
from remediation.core.pdf_pipeline.models import JobEvent

logger = logging.getLogger(__name__)


def extract_records(event: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Split an invocation into records.

    A direct invocation is a single record; S3 and SQS events carry a
    Records array.

    Raises:
        MessageParseError: Event has neither an inputKey nor Records
    """
    if "inputKey" in event:
        return [event]
    records = event.get("Records")
    if isinstance(records, list):
        return records
    raise MessageParseError("Event has neither 'inputKey' nor 'Records'")


def _check_key(input_key: str, layout: KeyLayout) -> None:
    try:
        layout.parse_input_key(input_key)
    except InvalidInputKeyError as e:
        raise MessageParseError(f"Skipping object outside the input layout: {e.message} ({input_key})") from e
    if not input_key.lower().endswith(PDF_EXTENSION):
        raise MessageParseError(f"Skipping non-PDF object: {input_key}")


def _parse_s3_record(s3_record: Dict[str, Any]) -> str:
    object_info = s3_record.get("s3", {}).get("object", {})
    input_key = unquote_plus(object_info.get("key", ""))
    if not input_key:
        raise MessageParseError("Missing S3 object key")
    return input_key


def _parse_payload(payload: Dict[str, Any], layout: KeyLayout) -> List[JobEvent]:
    """Direct payload or S3 notification (bare or wrapped in Records)."""
    if "inputKey" in payload:
        try:
            job_event = JobEvent.model_validate(payload)
        except ValidationError as e:
            raise MessageParseError(f"Invalid job event: {e}") from e
        _check_key(job_event.input_key, layout)
        return [job_event]

    if payload.get("Event") == "s3:TestEvent":
        raise MessageParseError("Skipping S3 test event")

    s3_records = payload["Records"] if "Records" in payload else [payload]
    if not s3_records:
        raise MessageParseError("No S3 records in event")

    job_events = []
    for s3_record in s3_records:
        if s3_record.get("eventSource") != "aws:s3":
            raise MessageParseError(f"Invalid event source: {s3_record.get('eventSource')}")
        input_key = _parse_s3_record(s3_record)
        _check_key(input_key, layout)
        job_events.append(JobEvent(input_key=input_key))
    return job_events


def parse_record(record: Dict[str, Any], layout: KeyLayout) -> List[JobEvent]:
    """
    Parse one invocation record into job events.

    Args:
        record: Direct payload, S3 record or SQS record
        layout: Key layout used to reject keys outside the input root

    Returns:
        List[JobEvent]: One event per referenced document

    Raises:
        MessageParseError: Invalid format, non-PDF key or key outside the input root
    """
    try:
        if record.get("eventSource") == "aws:sqs" or "body" in record:
            message_body = record.get("body")
            if not message_body:
                raise MessageParseError("Empty message body")
            payload = json.loads(message_body)
            if not isinstance(payload, dict):
                raise MessageParseError("Message body is not a JSON object")
        else:
            payload = record

        job_events = _parse_payload(payload, layout)
        logger.info(
            "parse_record - Parsed record",
            extra={
                "message_id": record.get("messageId"),
                "input_keys": [job_event.input_key for job_event in job_events],
            },
        )
        return job_events

    except json.JSONDecodeError as e:
        logger.error("parse_record - JSONDecodeError: %s", e)
        raise MessageParseError(f"Invalid JSON in message body: {e}") from e
    except MessageParseError as e:
        logger.warning("parse_record - %s", e)
        raise
    except (KeyError, TypeError, AttributeError) as e:
        logger.error("parse_record - %s: %s", type(e).__name__, e)
        raise MessageParseError(f"Failed to parse record: {e}") from e
