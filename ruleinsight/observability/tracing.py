"""Trace ids for suite runs and impact analyses."""

import uuid
from typing import Any

import structlog


def generate_trace_id() -> str:
    """Generate a new trace ID."""
    return uuid.uuid4().hex[:16]


def current_trace_id() -> str | None:
    """Trace ID bound to the running task, None outside a trace."""
    return structlog.contextvars.get_contextvars().get("trace_id")


class TraceContext:
    """Binds a trace ID and operation fields to every log line in scope.

    A nested context keeps the enclosing trace ID, so an impact analysis
    started from a suite run logs under the run's trace. Leaving the
    context restores whatever was bound before.

    Usage:
        with TraceContext("suite_run", suite_id=suite.id) as trace_id:
            ...
    """

    def __init__(self, operation: str, trace_id: str | None = None, **fields: Any):
        self.operation = operation
        self.trace_id = trace_id or current_trace_id() or generate_trace_id()
        self._fields = fields
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> str:
        self._tokens = dict(
            structlog.contextvars.bind_contextvars(
                trace_id=self.trace_id,
                operation=self.operation,
                **self._fields,
            )
        )
        return self.trace_id

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
