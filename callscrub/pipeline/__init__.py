"""Job-level orchestration of the redaction stages."""

from callscrub.pipeline.orchestrator import (
    RedactionOutcome,
    RedactionPipeline,
    delivery_format,
    same_content,
)

__all__ = [
    "RedactionOutcome",
    "RedactionPipeline",
    "delivery_format",
    "same_content",
]
