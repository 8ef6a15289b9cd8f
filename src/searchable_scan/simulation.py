from __future__ import annotations

import logging

from .models import PlainContent, Provenance, RecognitionResult

logger = logging.getLogger(__name__)

SIMULATED_CONFIDENCE = 50
SIMULATION_ENGINE = "simulation"


def simulate(source_name: str, size: int, reason: str) -> RecognitionResult:
    """Placeholder result used whenever real recognition is unavailable."""
    logger.warning("Using simulated recognition for %s: %s", source_name, reason)
    text = (
        "[FALLBACK] Could not process file with the recognition service.\n"
        f"File: {source_name}\n"
        f"Size: {size} bytes\n"
        f"Reason: {reason}\n"
        "\n"
        "Fix by checking VISION_KEY and VISION_ENDPOINT in .env"
    )
    return RecognitionResult(
        content=PlainContent(text),
        provenance=Provenance.SIMULATED,
        confidence=SIMULATED_CONFIDENCE,
        engine=SIMULATION_ENGINE,
    )
