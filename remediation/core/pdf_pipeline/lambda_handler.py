"""
Lambda handler for PDF remediation jobs.

Runs every document referenced by the invocation through the remediation
pipeline: pre-check -> split -> autotag + alt text per chunk -> merge ->
title -> post-check.

Environment variables:
- REMEDIATION_BUCKET: S3 bucket holding pdf/, temp/ and result/
- AWS_REGION: AWS region
- SECRETS_ARN: Secrets Manager secret holding the Google API key (optional)
- REMEDIATION_*: Any other pipeline setting (see configs.py)
- LOG_LEVEL or REMEDIATION_LOG_LEVEL: Root logging level

Dependencies: lambda_utils, entrypoint
System role: Lambda entry point for document remediation
"""

import asyncio
import json
import logging
from typing import Any, Dict

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()

from remediation.observability import configure_logging

from .configs import get_pipeline_settings
from .entrypoint import RemediationPipeline
from .lambda_utils.config import configure_secrets, validate_environment
from .lambda_utils.event_parser import extract_records, parse_record
from .lambda_utils.exceptions import MessageParseError

logger = logging.getLogger(__name__)


def _get_pipeline() -> RemediationPipeline:
    """Create the pipeline (and configure logging) once per warm container."""
    if not hasattr(handler, "_pipeline"):
        settings = get_pipeline_settings()
        configure_logging(settings.log_level)
        handler._pipeline = RemediationPipeline(settings=settings)
    return handler._pipeline


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for remediation events.

    Processes each referenced document sequentially. Records that cannot
    be parsed are reported and skipped without failing the batch.

    Args:
        event: Direct invocation, S3 notification or SQS event
        context: Lambda context object

    Returns:
        Dict with statusCode (200 when every job reached Done, 206 otherwise)
        and a JSON body {processed, failed, results}
    """
    logger.info(
        "%s:handler - Received event",
        __name__,
        extra={"record_count": len(event.get("Records", [])) or 1},
    )

    configure_secrets()

    try:
        validate_environment()
    except ValueError as e:
        logger.error("%s:handler - ValueError: %s", __name__, e)
        return {
            "statusCode": 500,
            "body": json.dumps({"error": str(e), "results": []}),
        }

    try:
        records = extract_records(event)
    except MessageParseError as e:
        logger.error("%s:handler - MessageParseError: %s", __name__, e)
        return {
            "statusCode": 400,
            "body": json.dumps({"error": str(e), "results": []}),
        }

    pipeline = _get_pipeline()
    layout = get_pipeline_settings().key_layout()

    results = []
    failed_count = 0

    for record in records:
        message_id = record.get("messageId")
        try:
            job_events = parse_record(record, layout)
        except MessageParseError as e:
            failed_count += 1
            results.append(
                {
                    "messageId": message_id,
                    "status": "failed",
                    "error": "Invalid message format",
                    "details": str(e),
                }
            )
            # Continue to next record, don't fail batch
            continue

        for job_event in job_events:
            logger.info(
                "%s:handler - Processing document",
                __name__,
                extra={"job_id": job_event.job_id, "input_key": job_event.input_key},
            )
            try:
                outcome = asyncio.run(pipeline.run(job_event))
            except Exception as e:  # pylint: disable=broad-except
                logger.error(
                    "%s:handler - %s: %s",
                    __name__,
                    type(e).__name__,
                    e,
                    extra={"job_id": job_event.job_id},
                )
                failed_count += 1
                results.append(
                    {
                        "messageId": message_id,
                        "jobId": job_event.job_id,
                        "inputKey": job_event.input_key,
                        "status": "failed",
                        "error": "Unexpected error",
                        "details": str(e),
                    }
                )
                continue

            if not outcome.succeeded:
                failed_count += 1
            results.append({"messageId": message_id, **outcome.to_response()})

    # Partial failures are reported, not raised (Lambda won't retry the batch)
    status_code = 200 if failed_count == 0 else 206
    logger.info(
        "%s:handler - Processing complete",
        __name__,
        extra={"success_count": len(results) - failed_count, "failed_count": failed_count},
    )

    return {
        "statusCode": status_code,
        "body": json.dumps(
            {
                "processed": len(results),
                "failed": failed_count,
                "results": results,
            }
        ),
    }
