"""
Structured Logging

Loguru setup plus the three structured events the service emits: upstream
HTTP attempts, analysis pipeline stages and generative model calls.
Every event carries an `event_type` field so JSON logs can be filtered.
"""
import sys
from typing import Any, Optional

from loguru import logger

from src.config import Settings, get_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Replace loguru's default sink.

    Colorized console lines for local runs; one JSON object per line when
    ENABLE_STRUCTURED_LOGGING is set.
    """
    settings = settings or get_settings()
    logger.remove()

    if settings.enable_structured_logging:
        logger.add(sys.stderr, format="{message}", level=settings.log_level, serialize=True)
    else:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=settings.log_level, colorize=True)

    logger.info(
        f"Logging configured: level={settings.log_level}, "
        f"structured={settings.enable_structured_logging}, environment={settings.environment}"
    )


def log_source_attempt(source: str, attempt: int, outcome: str, **context: Any) -> None:
    """
    One line per outbound HTTP attempt.

    Example:
        >>> log_source_attempt("census", 2, "server_error", status_code=503, wait_seconds=2.0)
    """
    level = "DEBUG" if outcome == "success" else "WARNING"
    logger.bind(
        event_type="upstream_attempt",
        source=source,
        attempt=attempt,
        outcome=outcome,
        **context,
    ).log(level, f"🌐 {source} | attempt {attempt} | {outcome}")


def log_pipeline_event(
    analysis_id: str,
    stage: str,
    duration_ms: Optional[float] = None,
    **context: Any,
) -> None:
    """Stage transitions of one analysis: started, queued, sources_fetched, completed, failed."""
    fields = {"event_type": "pipeline", "analysis_id": analysis_id, "stage": stage, **context}
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 2)

    level = "ERROR" if stage == "failed" else "INFO"
    logger.bind(**fields).log(level, f"📊 Analysis {analysis_id} | {stage}")


def log_llm_call(
    model: str,
    duration_ms: float,
    success: bool = True,
    error: Optional[str] = None,
    **details: Any,
) -> None:
    fields = {
        "event_type": "llm_call",
        "model": model,
        "duration_ms": round(duration_ms, 2),
        "success": success,
        **details,
    }
    if error:
        fields["error"] = error

    outcome = "ok" if success else "failed"
    logger.bind(**fields).log(
        "INFO" if success else "ERROR",
        f"🧠 {model} | {duration_ms:.0f}ms | {outcome}",
    )
