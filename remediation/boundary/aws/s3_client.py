"""
S3 client for the remediation bucket.

Implements the blob store contract on top of a single S3 bucket. Input,
intermediate and result objects all live under their own key roots in
that bucket.

Dependencies: boto3
System role: Production blob store
"""

import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ConnectTimeoutError, ReadTimeoutError

from remediation.core.exceptions import (
    BlobNotFoundError,
    BlobStoreError,
    TransientServiceError,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_TRANSIENT_CODES = {
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestTimeout",
    "RequestTimeTooSkewed",
    "InternalError",
    "ServiceUnavailable",
    "503",
    "500",
}


class S3BlobStore:
    """S3-backed blob store (get/put/exists only, never lists)."""

    def __init__(self, bucket: str, region: str = "us-east-1", client=None) -> None:
        """
        Initialize S3 blob store.

        Args:
            bucket: S3 bucket name holding inputs, temp artifacts and results
            region: AWS region for S3 bucket
            client: Optional preconfigured boto3 S3 client
        """
        self._bucket = bucket
        self._region = region
        self._s3_client = client or boto3.client("s3", region_name=region)

    @property
    def bucket(self) -> str:
        return self._bucket

    def get(self, key: str) -> bytes:
        """
        Read an object.

        Args:
            key: S3 object key

        Returns:
            bytes: Object body

        Raises:
            BlobNotFoundError: Key does not exist
            TransientServiceError: Throttling or timeout
            BlobStoreError: Any other S3 failure
        """
        try:
            response = self._s3_client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            raise self._translate(e, key, "get") from e
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            raise TransientServiceError(f"S3 get timed out: {key}", service="s3") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"S3 get failed: {e}", key) from e

    def put(self, key: str, data: bytes) -> None:
        """
        Write an object, overwriting any previous version.

        Args:
            key: S3 object key
            data: Object body

        Raises:
            TransientServiceError: Throttling or timeout
            BlobStoreError: Any other S3 failure
        """
        content_type = "application/json" if key.endswith(".json") else "application/pdf"
        try:
            self._s3_client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
            logger.debug(f"{__name__}:put - Wrote s3://{self._bucket}/{key} ({len(data)} bytes)")
        except ClientError as e:
            raise self._translate(e, key, "put") from e
        except (ConnectTimeoutError, ReadTimeoutError) as e:
            raise TransientServiceError(f"S3 put timed out: {key}", service="s3") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"S3 put failed: {e}", key) from e

    def exists(self, key: str) -> bool:
        """
        Check if an object exists.

        Args:
            key: S3 object key to check

        Returns:
            bool: True if object exists, False otherwise
        """
        try:
            self._s3_client.head_object(Bucket=self._bucket, Key=key)
            return True
        except ClientError as e:
            error = self._translate(e, key, "head")
            if isinstance(error, BlobNotFoundError):
                return False
            raise error from e

    @staticmethod
    def _translate(error: ClientError, key: str, operation: str) -> Exception:
        """Map a botocore ClientError onto the blob store error taxonomy."""
        code = str(error.response.get("Error", {}).get("Code", "Unknown"))
        if code in _NOT_FOUND_CODES:
            return BlobNotFoundError(key)
        if code in _TRANSIENT_CODES:
            logger.warning(f"{__name__}:{operation} - Transient S3 error {code} for {key}")
            return TransientServiceError(
                f"S3 {operation} throttled or unavailable ({code}): {key}",
                service="s3",
            )
        return BlobStoreError(f"S3 {operation} failed ({code}): {key}", key)
