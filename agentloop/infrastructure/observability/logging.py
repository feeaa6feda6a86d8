import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime
import os

from agentloop.version import __version__


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "agentloop"
) -> None:
    """Setup structured logging configuration"""

    # Configure Python logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    # Processors for structlog
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_run_context,
    ]

    # Add appropriate renderer based on format
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    # Configure structlog
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Set service name in context
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=__version__
    )


def add_run_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add run context to all log entries"""

    # Add timestamp if not present
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.utcnow().isoformat()

    # Bound by the orchestrator for the duration of a run
    context = structlog.contextvars.get_contextvars()
    for key in ("run_id", "agent_name"):
        if key in context and key not in event_dict:
            event_dict[key] = context[key]

    return event_dict


class RunLogger:
    """Specialized logger for run events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_agent_step(
        self,
        run_id: str,
        agent_name: str,
        step: int,
        response_kind: Optional[str] = None,
        duration_ms: Optional[float] = None,
        **kwargs
    ):
        """Log one agent step"""

        self.logger.info(
            "agent_step",
            run_id=run_id,
            agent_name=agent_name,
            step=step,
            response_kind=response_kind,
            duration_ms=duration_ms,
            **kwargs
        )

    def log_tool_execution(
        self,
        tool_name: str,
        run_id: str,
        input_data: Dict[str, Any],
        output_data: Optional[str] = None,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log tool execution events"""

        self.logger.info(
            "tool_execution",
            tool_name=tool_name,
            run_id=run_id,
            input_data=input_data,
            output_data=output_data,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_workflow_transition(
        self,
        run_id: str,
        from_node: str,
        to_node: str,
        condition: Optional[str] = None,
        state_summary: Optional[Dict[str, Any]] = None
    ):
        """Log workflow state transitions"""

        self.logger.info(
            "workflow_transition",
            run_id=run_id,
            from_node=from_node,
            to_node=to_node,
            condition=condition,
            state_summary=state_summary or {}
        )

    def log_context_update(
        self,
        run_id: str,
        context_type: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log memory and scratchpad updates"""

        self.logger.info(
            "context_update",
            run_id=run_id,
            context_type=context_type,
            action=action,
            details=details or {}
        )


# Global logger instance
run_logger = RunLogger("agentloop.run")


class MetricsCollector:
    """In-process latency and counter metrics for runs, agent steps and tools.

    Tags become part of the metric key, e.g. ``tool{tool=sumNumbers}``.
    """

    def __init__(self):
        self.latencies: Dict[str, Dict[str, float]] = {}
        self.counters: Dict[str, int] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        key = _metric_key(operation, tags)
        stats = self.latencies.setdefault(key, {"count": 0, "total": 0.0, "min": duration_ms, "max": duration_ms})
        stats["count"] += 1
        stats["total"] += duration_ms
        stats["min"] = min(stats["min"], duration_ms)
        stats["max"] = max(stats["max"], duration_ms)

        run_logger.logger.debug("metric", metric_type="latency", key=key, duration_ms=duration_ms)

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        key = _metric_key(name, tags)
        self.counters[key] = self.counters.get(key, 0) + value

        run_logger.logger.debug("metric", metric_type="counter", key=key, value=value)

    def snapshot(self) -> Dict[str, Any]:
        """Counters plus count/avg/min/max per latency key"""

        return {
            "counters": dict(self.counters),
            "latency_ms": {
                key: {
                    "count": stats["count"],
                    "avg": stats["total"] / stats["count"],
                    "min": stats["min"],
                    "max": stats["max"],
                }
                for key, stats in self.latencies.items()
            },
        }

    def reset(self):
        self.latencies.clear()
        self.counters.clear()


def _metric_key(name: str, tags: Optional[Dict[str, str]]) -> str:
    if not tags:
        return name
    labels = ",".join(f"{key}={value}" for key, value in sorted(tags.items()))
    return f"{name}{{{labels}}}"


# Global metrics collector
metrics = MetricsCollector()
