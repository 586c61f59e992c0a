"""
BoardScan Backend — Abstract Vision Service Interface
=======================================================

What:  Contract for the external board-classification collaborator.
Why:   ScanService only needs "image in, BoardClassification out". Keeping the
       provider behind an ABC lets tests substitute a stub and lets another
       provider replace Gemini without touching the scan workflow.
Who:   Implemented by GeminiVisionService; called by ScanService.scan_image().

Result normalization:
    Providers return loosely structured JSON. `BoardClassification.from_payload`
    fills every missing field with a default so callers never see None where a
    string is expected, and clamps confidence into [0, 1].
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_BOARD_TYPE = "Unknown Board"
DEFAULT_CATEGORY = "Unknown"
DEFAULT_DEVICE_TYPE = "Unknown"
DEFAULT_DESCRIPTION = "Circuit board analysis completed"


def clamp_confidence(value: Any) -> float:
    """Coerce a provider confidence into [0.0, 1.0]; unparseable → 0.0."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    return max(0.0, min(1.0, confidence))


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class BoardClassification:
    board_type: str = DEFAULT_BOARD_TYPE
    category: str = DEFAULT_CATEGORY
    device_type: str = DEFAULT_DEVICE_TYPE
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    confidence: float = 0.0
    components: List[str] = field(default_factory=list)
    description: str = DEFAULT_DESCRIPTION

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "BoardClassification":
        """
        Build a classification from a provider JSON object.

        Accepts both camelCase keys (as the prompt requests) and snake_case.
        """
        def pick(*keys: str) -> Any:
            for key in keys:
                if payload.get(key) is not None:
                    return payload[key]
            return None

        components = pick("components") or []
        if not isinstance(components, list):
            components = [components]

        return cls(
            board_type=_text_or_none(pick("boardType", "board_type")) or DEFAULT_BOARD_TYPE,
            category=_text_or_none(pick("category")) or DEFAULT_CATEGORY,
            device_type=_text_or_none(pick("deviceType", "device_type")) or DEFAULT_DEVICE_TYPE,
            manufacturer=_text_or_none(pick("manufacturer")),
            model=_text_or_none(pick("model")),
            confidence=clamp_confidence(pick("confidence")),
            components=[str(c) for c in components if c is not None and str(c).strip()],
            description=_text_or_none(pick("description")) or DEFAULT_DESCRIPTION,
        )


class VisionService(ABC):
    """
    Abstract interface for image-based board classification.

    Contract:
        - classify_board() accepts an absolute file path
        - implementations handle their own retries
        - every provider failure surfaces as UpstreamFailureError
          (or CircuitBreakerOpenError while the breaker is open)
    """

    @abstractmethod
    async def classify_board(self, image_path: str) -> BoardClassification:
        """
        Classify the circuit board shown in an image.

        Raises:
            UpstreamFailureError: provider failed after all retries
            CircuitBreakerOpenError: too many recent failures
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability probe used by GET /health."""
        ...
