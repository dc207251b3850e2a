"""
Centralized LLM Audit Logger.
Every AI call (success or failure) flows through this module as one
structured log line. Nothing is persisted; the log stream is the audit trail.
"""
import hashlib
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from flowviz.core.logging import get_logger

logger = get_logger(__name__)


def hash_prompt(prompt: str) -> str:
    """SHA-256 hash of the prompt for audit traceability."""
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()


class LLMCallRecord(BaseModel):
    """Pydantic schema for every LLM call audit record."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    provider: str
    model: str
    operation: str  # "stream_analysis" | "vision_analysis"
    prompt_hash: str
    prompt_length: int
    system_prompt_length: int = 0
    success: bool
    latency_ms: float = 0.0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    chunks: int = 0
    temperature: float = 0.1
    cancelled: bool = False  # consumer closed the stream before completion
    error: Optional[str] = None


def log_llm_call(record: LLMCallRecord) -> None:
    """Emit a structured log line for an LLM call record."""
    log_extra = {
        "event": "llm_audit",
        "provider": record.provider,
        "model": record.model,
        "operation": record.operation,
        "success": record.success,
        "latency_ms": record.latency_ms,
        "prompt_tokens": record.prompt_tokens,
        "completion_tokens": record.completion_tokens,
        "total_tokens": record.total_tokens,
        "temperature": record.temperature,
        "prompt_hash": record.prompt_hash,
        "prompt_length": record.prompt_length,
    }
    if record.chunks:
        log_extra["chunks"] = record.chunks
    if record.error:
        log_extra["error"] = record.error

    if record.cancelled:
        log_extra["cancelled"] = True
        logger.info("LLM call cancelled by consumer", extra=log_extra)
    elif record.success:
        logger.info("LLM call completed", extra=log_extra)
    else:
        logger.error("LLM call failed", extra=log_extra)
