"""
============================================================================
Project Sim Steward v1.0.0
Narrative Client - Text Completion Service for Verdict Narratives
============================================================================

Reliability Level: STANDARD (best-effort enrichment)
Input Constraints: Natural-language prompt
Side Effects: One outbound HTTP POST per call (never retried)

CONTRACT:
- NarrativeGenerator.generate_narrative(prompt) -> str is the only seam
  the verdict pipeline depends on
- GrokNarrativeClient talks to the xAI chat completions API
- Every failure raises NarrativeServiceError; callers degrade to the
  baseline verdict

ERROR CODES:
- STW-NAR-001: API key not configured
- STW-NAR-002: Non-200 response
- STW-NAR-003: Malformed response body
- STW-NAR-004: Empty completion
- STW-NAR-005: Timeout
- STW-NAR-006: Transport failure

============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_NARRATIVE_URL = "https://api.x.ai/v1/chat/completions"
DEFAULT_NARRATIVE_MODEL = "grok-3"
DEFAULT_MAX_TOKENS = 500
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TIMEOUT_SECONDS = 15.0

NAR_ERROR_NO_KEY = "STW-NAR-001"
NAR_ERROR_STATUS = "STW-NAR-002"
NAR_ERROR_MALFORMED = "STW-NAR-003"
NAR_ERROR_EMPTY = "STW-NAR-004"
NAR_ERROR_TIMEOUT = "STW-NAR-005"
NAR_ERROR_TRANSPORT = "STW-NAR-006"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class NarrativeServiceError(Exception):
    """
    Raised when the narrative service cannot produce a completion.

    Reliability Level: STANDARD
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{error_code}] {message}")


# ============================================================================
# GENERATOR CONTRACT
# ============================================================================

class NarrativeGenerator(ABC):
    """Single-method contract for narrative generation."""

    @abstractmethod
    async def generate_narrative(self, prompt: str) -> str:
        """Return free-form completion text for the prompt."""


# ============================================================================
# GROK CLIENT
# ============================================================================

class GrokNarrativeClient(NarrativeGenerator):
    """
    Narrative generator backed by the xAI chat completions API.

    Reliability Level: STANDARD
    Input Constraints: Non-empty API key
    Side Effects: HTTP POST to the completions endpoint

    The call is not retried: a POST is not idempotent. Timeouts are bounded
    by both the client timeout and the caller's request deadline.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_NARRATIVE_MODEL,
        url: str = DEFAULT_NARRATIVE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": prompt
                }
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    async def generate_narrative(self, prompt: str) -> str:
        """
        Request a completion for the prompt.

        Reliability Level: STANDARD
        Input Constraints: Non-empty prompt
        Side Effects: External HTTP request

        Raises:
            NarrativeServiceError: On any failure
        """
        if not self.api_key:
            raise NarrativeServiceError(
                NAR_ERROR_NO_KEY, "Narrative API key not configured"
            )

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.url,
                    headers=headers,
                    json=self._build_payload(prompt),
                )
        except httpx.TimeoutException:
            raise NarrativeServiceError(
                NAR_ERROR_TIMEOUT,
                f"Narrative request timed out after {self.timeout}s",
            ) from None
        except httpx.RequestError as e:
            raise NarrativeServiceError(
                NAR_ERROR_TRANSPORT,
                f"Narrative request failed: {str(e)[:200]}",
                details={"exception_type": type(e).__name__},
            ) from e

        if response.status_code != 200:
            raise NarrativeServiceError(
                NAR_ERROR_STATUS,
                f"Narrative service returned {response.status_code}: "
                f"{response.text[:200]}",
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
            choices = data.get("choices", [])
            content = choices[0].get("message", {}).get("content", "") if choices else ""
        except (ValueError, AttributeError, TypeError, KeyError, IndexError) as e:
            raise NarrativeServiceError(
                NAR_ERROR_MALFORMED,
                f"Malformed narrative response: {str(e)[:200]}",
            ) from e

        if not isinstance(content, str) or not content.strip():
            raise NarrativeServiceError(
                NAR_ERROR_EMPTY, "Empty content in narrative response"
            )

        logger.info(
            "[NARRATIVE] Completion received | model=%s | chars=%d",
            self.model, len(content)
        )

        return content.strip()
