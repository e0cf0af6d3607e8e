"""Generative-AI adapters."""

from remediation.boundary.genai.generative_client import (
    GeminiGenerativeService,
    GenerationKind,
    GenerativeService,
)

__all__ = ["GeminiGenerativeService", "GenerationKind", "GenerativeService"]
