"""
Generative service for alt text, link text and document titles.

Wraps a Gemini chat model behind the GenerativeService protocol. Errors are
classified into transient (quota, timeout, unavailable) and permanent so
callers can retry only what is worth retrying.

Dependencies: langchain_google_genai, langchain_core
System role: External generative-AI collaborator
"""

import logging
from enum import Enum
from typing import Protocol, runtime_checkable

from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from remediation.core.exceptions import GenerationError, TransientServiceError

logger = logging.getLogger(__name__)


class GenerationKind(str, Enum):
    """What the generated text will be used for."""

    ALT_TEXT = "altText"
    LINK_TEXT = "linkText"
    TITLE = "title"


MAX_LENGTH: dict[GenerationKind, int] = {
    GenerationKind.ALT_TEXT: 250,
    GenerationKind.LINK_TEXT: 100,
    GenerationKind.TITLE: 120,
}

PROMPTS: dict[GenerationKind, str] = {
    GenerationKind.ALT_TEXT: (
        "You write alternative text for figures in PDF documents so that screen "
        "reader users understand them. Describe the figure in one or two plain "
        "sentences, at most 250 characters. Do not start with 'Image of'. "
        "Reply with the alternative text only.\n\nFigure context:\n{content}"
    ),
    GenerationKind.LINK_TEXT: (
        "You write short, descriptive link text for hyperlinks in PDF documents. "
        "Describe where the link goes in at most 100 characters, without "
        "repeating the raw URL. Reply with the link text only.\n\nLink:\n{content}"
    ),
    GenerationKind.TITLE: (
        "You write document titles for PDF accessibility metadata. Based on the "
        "document text below, reply with a concise, descriptive title of at most "
        "120 characters and nothing else.\n\nDocument text:\n{content}"
    ),
}

_TRANSIENT_ERROR_NAMES = {
    "ResourceExhausted",
    "DeadlineExceeded",
    "ServiceUnavailable",
    "TooManyRequests",
    "InternalServerError",
    "TimeoutError",
    "ReadTimeout",
    "ConnectTimeout",
    "ConnectError",
}
_TRANSIENT_MARKERS = ("429", "503", "rate limit", "quota", "timed out", "timeout")


@runtime_checkable
class GenerativeService(Protocol):
    """Text generation for enrichment stages."""

    def generate(self, content: str, kind: GenerationKind) -> str:
        """Return generated text for the given kind."""
        ...


def clean_generated_text(text: str, kind: GenerationKind) -> str:
    """
    Normalize model output.

    Strips whitespace and wrapping quotes, collapses newlines and truncates
    to the per-kind maximum on a word boundary where possible.
    """
    cleaned = " ".join(text.split()).strip().strip("\"'`").strip()
    limit = MAX_LENGTH[kind]
    if len(cleaned) > limit:
        cut = cleaned[:limit].rsplit(" ", 1)[0]
        cleaned = (cut or cleaned[:limit]).rstrip(" ,;:")
    return cleaned


def is_transient_error(error: Exception) -> bool:
    """Heuristic classification of model client errors."""
    if isinstance(error, TimeoutError):
        return True
    if type(error).__name__ in _TRANSIENT_ERROR_NAMES:
        return True
    message = str(error).lower()
    return any(marker in message for marker in _TRANSIENT_MARKERS)


class GeminiGenerativeService:
    """Generate enrichment text with a Gemini chat model."""

    def __init__(
        self,
        model_name: str = "gemini-2.5-flash",
        timeout: float = 60.0,
        model: ChatGoogleGenerativeAI | None = None,
    ) -> None:
        """
        Initialize generative service.

        Args:
            model_name: Gemini model identifier
            timeout: Per-request timeout in seconds
            model: Optional preconfigured chat model (tests)
        """
        # Retries are owned by the pipeline's retry policy, not the client.
        self._model = model or ChatGoogleGenerativeAI(
            model=model_name,
            temperature=0,
            timeout=timeout,
            max_retries=0,
        )
        self._model_name = model_name

    def generate(self, content: str, kind: GenerationKind) -> str:
        """
        Generate text for a figure, link or document.

        Args:
            content: Context describing the thing to label
            kind: Which enrichment the text is for

        Returns:
            str: Cleaned generated text

        Raises:
            TransientServiceError: Quota, timeout or availability errors
            GenerationError: Empty output or permanent model errors
        """
        prompt = PROMPTS[kind].format(content=content)
        try:
            response = self._model.invoke([HumanMessage(content=prompt)])
        except Exception as e:
            if is_transient_error(e):
                raise TransientServiceError(
                    f"Generation of {kind.value} failed transiently: {e}",
                    service="genai",
                ) from e
            raise GenerationError(f"Generation of {kind.value} failed: {e}") from e

        text = response.content
        if isinstance(text, list):
            text = " ".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in text
            )
        cleaned = clean_generated_text(str(text or ""), kind)
        if not cleaned:
            raise GenerationError(f"Model returned empty {kind.value}")

        logger.debug(f"{__name__}:generate - {kind.value} generated ({len(cleaned)} chars)")
        return cleaned
