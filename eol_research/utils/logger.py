"""
Structured logging for the EOL Research engine.
Every entry carries the layer that wrote it and the trace ID of the request or batch;
research runs additionally bind the product being researched.
"""
import logging
import uuid
from typing import Any, Dict, Optional

import structlog

from eol_research.config import config


def _new_trace_id() -> str:
    return uuid.uuid4().hex[:8]


def get_trace_id() -> str:
    """Trace ID bound to the current context, creating one if needed."""
    trace_id = structlog.contextvars.get_contextvars().get("trace_id")
    if not trace_id:
        trace_id = set_trace_id()
    return trace_id


def set_trace_id(trace_id: Optional[str] = None) -> str:
    """Bind a (new) trace ID to the current context."""
    trace_id = trace_id or _new_trace_id()
    structlog.contextvars.bind_contextvars(trace_id=trace_id)
    return trace_id


def _ensure_trace_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    if "trace_id" not in event_dict:
        event_dict["trace_id"] = get_trace_id()
    return event_dict


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None):
    """Configure structlog; JSON lines by default, colored console output for development."""
    level = (level or config.LOG_LEVEL).upper()
    fmt = fmt or config.LOG_FORMAT

    processors = [
        structlog.contextvars.merge_contextvars,
        _ensure_trace_id,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


class LayerLogger:
    """
    Logger bound to one engine component (search client, fetcher, a layer, the orchestrator).

    Event names are shared by all components so logs can be filtered by event
    and grouped by layer.
    """

    def __init__(self, layer_name: str):
        self.layer_name = layer_name
        self.logger = get_logger(layer_name).bind(layer=layer_name)

    def log_decision(self, decision: str, reason: str, **extra):
        """A choice between alternatives (tier, profile, skip, early exit...)."""
        self.logger.info("decision_made", decision=decision, reason=reason, **extra)

    def log_action(self, action: str, status: str = "started", **extra):
        self.logger.info(f"action_{status}", action=action, **extra)

    def log_fallback(self, from_source: str, to_source: str, reason: str, **extra):
        """A degraded path was taken: page -> snippet, failed query -> next query."""
        self.logger.warning(
            "fallback_triggered",
            from_source=from_source,
            to_source=to_source,
            reason=reason,
            **extra,
        )

    def log_error(self, error: str, error_type: str = "unknown", **extra):
        self.logger.error("error_occurred", error=error, error_type=error_type, **extra)

    def log_http_call(
        self,
        url: str,
        status_code: Optional[int],
        result: str,
        attempt: int = 1,
        **extra,
    ):
        """
        One outbound HTTP call.

        Successful calls log at info; rate limiting, server errors and
        transport failures log at warning.
        """
        method = self.logger.info if status_code is not None and status_code < 400 else self.logger.warning
        method(
            "http_call",
            url=url,
            status_code=status_code,
            result=result,
            attempt=attempt,
            **extra,
        )

    def log_extraction(
        self,
        source: str,
        fields_present: list,
        fields_missing: list,
        confidence: Optional[int] = None,
        **extra,
    ):
        """Milestone fields a page (or the merged result) ended up with."""
        self.logger.info(
            "milestones_extracted",
            source=source,
            fields_present=fields_present,
            fields_missing=fields_missing,
            confidence_score=confidence,
            **extra,
        )


configure_logging()
