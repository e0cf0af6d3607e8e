"""AWS adapters."""

from remediation.boundary.aws.s3_client import S3BlobStore

__all__ = ["S3BlobStore"]
