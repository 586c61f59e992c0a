"""
BoardScan Backend — Google Gemini Vision Classifier
=====================================================

What:  Concrete VisionService that asks Gemini to identify a circuit board
       from a photo and answer in JSON.
How:   Upload image → generate_content_async with a JSON response MIME type
       → parse → BoardClassification.from_payload (defaults + clamping).
Who:   Singleton `gemini_service`, called by ScanService.scan_image().

Resilience:
    1. tenacity retry with exponential backoff + jitter around the API call
       (an unparseable answer counts as a failed attempt)
    2. circuit breaker: after CB_FAILURE_THRESHOLD failed calls, requests are
       rejected instantly for CB_RECOVERY_TIMEOUT seconds
    3. per-call timeout (VISION_TIMEOUT)

Every failure leaves this module as UpstreamFailureError or its subtype
CircuitBreakerOpenError; SDK exception types never reach the scan workflow.
"""

import json
import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import google.generativeai as genai
from tenacity import (
    RetryError,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from boardscan.config import settings
from boardscan.exceptions import CircuitBreakerOpenError, UpstreamFailureError
from boardscan.services.vision_base import BoardClassification, VisionService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    CLOSED → (threshold failures) → OPEN → (recovery timeout) → HALF_OPEN
    HALF_OPEN → success → CLOSED
    HALF_OPEN → failure → OPEN

    Not thread-safe; uvicorn async workers share one event loop per process,
    so each worker process keeps its own breaker.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """Allow the call, or raise CircuitBreakerOpenError while OPEN."""
        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed < self.recovery_timeout:
                raise CircuitBreakerOpenError(
                    recovery_time=max(1, int(self.recovery_timeout - elapsed))
                )
            logger.info("Circuit breaker HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker CLOSED (vision service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker back to OPEN (probe request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPEN after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


class MalformedVisionResponse(ValueError):
    """Gemini answered, but not with a JSON object."""


def parse_classification(raw_text: Optional[str]) -> BoardClassification:
    """
    Turn the model's text answer into a BoardClassification.

    Tolerates a ```json fenced block, which some model versions still emit
    even with a JSON response MIME type.
    """
    text = (raw_text or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()
    if not text:
        raise MalformedVisionResponse("empty response")

    try:
        payload: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedVisionResponse(f"invalid JSON: {e.msg}") from e

    if not isinstance(payload, dict):
        raise MalformedVisionResponse(f"expected JSON object, got {type(payload).__name__}")
    return BoardClassification.from_payload(payload)


# ══════════════════════════════════════════════════════════════════════════
# Gemini Vision Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiVisionService(VisionService):
    """Gemini-backed board classifier with retry and circuit breaker."""

    CLASSIFY_PROMPT = """You are an expert in identifying electronic circuit boards for
recycling and resale triage. Analyze the photo and answer with ONLY a JSON object:

{
  "boardType": "specific board name, e.g. 'Samsung BN41-02568A main board'",
  "category": "source device family, e.g. 'TV', 'Notebook', 'Desktop PC', 'Radio', 'Printer'",
  "deviceType": "role of the board in the device, e.g. 'Main board', 'Power supply', 'T-Con', 'Inverter'",
  "manufacturer": "manufacturer name or null",
  "model": "part or model number or null",
  "confidence": number between 0.0 and 1.0,
  "components": ["key visible components"],
  "description": "one or two sentences describing the board"
}

If you cannot identify the exact board, give your best guess with a lower confidence."""

    def __init__(self):
        if settings.gemini_api_key and settings.gemini_api_key != "your_gemini_api_key_here":
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(
            settings.gemini_model,
            generation_config={"response_mime_type": "application/json"},
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiVisionService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def classify_board(self, image_path: str) -> BoardClassification:
        """
        Classify a stored board photo.

        Args:
            image_path: Absolute path of an image already validated by ImageService.

        Raises:
            CircuitBreakerOpenError: breaker is OPEN, no API call made
            UpstreamFailureError: every retry attempt failed
        """
        call_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        logger.info("[%s] Classifying board image: %s", call_id, Path(image_path).name)

        try:
            classification = await self._call_gemini_with_retry(image_path, call_id)
        except RetryError as e:
            self.circuit_breaker.record_failure()
            last_error = e.last_attempt.exception() if e.last_attempt else None
            logger.error("[%s] All Gemini retries exhausted: %s", call_id, last_error)
            raise UpstreamFailureError(
                message="Board classification failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"call_id": call_id, "attempts": settings.retry_max_attempts},
            )
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Gemini classification failed: %s", call_id, str(e), exc_info=True)
            raise UpstreamFailureError(
                message="Failed to analyze circuit board image.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"call_id": call_id, "error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        return classification

    @retry(
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(self, image_path: str, call_id: str) -> BoardClassification:
        start_time = time.time()

        try:
            image_file = genai.upload_file(path=image_path)
            response = await self.model.generate_content_async(
                [self.CLASSIFY_PROMPT, image_file],
                request_options={"timeout": settings.vision_timeout},
            )
            classification = parse_classification(response.text)
        except Exception as e:
            logger.warning(
                "[%s] Gemini call failed after %.0fms: %s",
                call_id,
                (time.time() - start_time) * 1000,
                str(e),
            )
            raise

        logger.info(
            "[%s] Gemini classified '%s' (confidence=%.2f) in %.0fms",
            call_id,
            classification.board_type,
            classification.confidence,
            (time.time() - start_time) * 1000,
        )
        return classification

    async def health_check(self) -> bool:
        """Lists models (no token cost) to verify key and connectivity."""
        try:
            model_names = [m.name for m in genai.list_models()]
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False

        target = f"models/{settings.gemini_model}"
        if target not in model_names:
            logger.warning("Configured model %s not found in available models", target)
        return True

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.circuit_breaker.state,
            "failure_count": self.circuit_breaker.failure_count,
        }


# ── Singleton Instance ────────────────────────────────────────────────────
# Shared so the circuit breaker state spans all requests
gemini_service = GeminiVisionService()
