"""
Configuration settings for the remediation pipeline.

Provides environment-based configuration for storage layout, chunking,
concurrency, retries and generation. Settings are passed explicitly into
the pipeline; only the Lambda entry point reads them from the environment.

Dependencies: pydantic, pydantic_settings
System role: Centralized pipeline configuration
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .keys import KeyLayout
from .retry import RetryPolicy


class RemediationPipelineSettings(BaseSettings):
    """Settings for the PDF remediation pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="REMEDIATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Storage
    bucket: str = Field(
        default="pdf-remediation-dev",
        description="S3 bucket holding input, temp and result objects",
    )
    region: str = Field(default="us-east-1", description="AWS region for the bucket")
    input_root: str = Field(default="pdf", description="Key root watched for input documents")
    temp_root: str = Field(default="temp", description="Key root for intermediate artifacts")
    result_root: str = Field(default="result", description="Key root for compliant documents")

    # Splitting and fan-out
    chunk_size: int = Field(default=10, ge=1, description="Pages per chunk")
    max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Maximum chunk remediation tasks in flight",
    )
    chunk_timeout_seconds: float = Field(
        default=900.0,
        gt=0,
        description="Local timeout for one chunk task (both worker stages)",
    )

    # Retries
    max_attempts: int = Field(default=3, ge=1, description="Attempts per call on transient errors")
    backoff_initial_seconds: float = Field(default=1.0, ge=0)
    backoff_max_seconds: float = Field(default=20.0, ge=0)

    # Generation
    model_id: str = Field(default="gemini-2.5-flash", description="Gemini model for enrichment")
    generation_timeout_seconds: float = Field(default=60.0, gt=0)
    title_context_chars: int = Field(
        default=4000,
        ge=200,
        description="Characters of document text sent for title generation",
    )

    # Tagging
    default_language: str = Field(default="en-US", description="/Lang written when absent")

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("REMEDIATION_LOG_LEVEL", "LOG_LEVEL"),
        description="Root logging level applied by the Lambda entry point",
    )

    def key_layout(self) -> KeyLayout:
        """Key layout bound to the configured roots."""
        return KeyLayout(
            input_root=self.input_root,
            temp_root=self.temp_root,
            result_root=self.result_root,
        )

    def retry_policy(self) -> RetryPolicy:
        """Retry policy for worker and service calls."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_backoff=self.backoff_initial_seconds,
            max_backoff=self.backoff_max_seconds,
        )


@lru_cache
def get_pipeline_settings() -> RemediationPipelineSettings:
    """
    Get cached pipeline settings instance.

    Returns:
        RemediationPipelineSettings: Singleton settings loaded from environment
    """
    return RemediationPipelineSettings()
