"""Structured logging via structlog.

Configures structlog once at process startup. All subsequent calls to
`structlog.get_logger()` (or `logging.getLogger()` via the stdlib bridge)
will use this configuration.

Renderer selection:
  debug=True  : `ConsoleRenderer` with colours for local development.
  debug=False : `JSONRenderer` for machine-parseable logs on CI.

ContextVar injection:
  The `target` and `artifact` fields are injected into every log line from
  ContextVars set by the orchestrator and the upload coordinator. Any logger
  called while a target is being fetched automatically carries its name.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

import structlog

_target_var: ContextVar[str] = ContextVar("target", default="")
_artifact_var: ContextVar[str] = ContextVar("artifact", default="")


def get_target_name() -> str:
    """Return the name of the target being processed, or empty string."""
    return _target_var.get()


def get_artifact_name() -> str:
    """Return the name of the artifact being transferred, or empty string."""
    return _artifact_var.get()


@contextmanager
def bound_target(name: str) -> Iterator[None]:
    token = _target_var.set(name)
    try:
        yield
    finally:
        _target_var.reset(token)


@contextmanager
def bound_artifact(name: str) -> Iterator[None]:
    token = _artifact_var.set(name)
    try:
        yield
    finally:
        _artifact_var.reset(token)


def _inject_context_vars(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: inject target and artifact from ContextVars."""
    target = get_target_name()
    artifact = get_artifact_name()
    if target:
        event_dict["target"] = target
    if artifact:
        event_dict["artifact"] = artifact
    return event_dict


def configure_structlog(debug: bool = True) -> None:
    """Configure structlog for the process lifetime.

    Call once from the entry point before any work starts.
    Calling multiple times is safe.
    """
    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


    # Bridge stdlib logging into the same processor chain, so records from
    # `logging.getLogger(__name__)` (ours and httpx's) get the level,
    # timestamp, ContextVar fields and renderer too.
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[structlog.stdlib.add_logger_name] + shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    logging.basicConfig(
        handlers=[handler],
        level=logging.DEBUG if debug else logging.INFO,
        force=True,
    )
