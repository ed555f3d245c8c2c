"""structlog setup for the gate process.

The gate logs one event per decision step (build_check_failed,
builds_not_stable, candidate_rejected, candidate_merged, candidate_errored),
the GitHub and Jenkins client calls, and gateway start/stop. Every operator
message recorded on the coordinator is mirrored at DEBUG as gate_message.
"""

from __future__ import annotations

import logging

import structlog


def setup_logging(*, json_output: bool = True, log_level: str = "INFO") -> None:
    """Route gate events to stdout, one JSON object per line by default.

    json_output=False switches to the console renderer for local runs.
    log_level filters below the given level; INFO hides the per-job
    gate_message chatter, DEBUG shows it.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
