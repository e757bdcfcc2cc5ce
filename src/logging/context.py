# src/logging/context.py — v1
"""Contextual logging support: subject_id, run_id, component and step.

Values live in contextvars so concurrent reconciliations in one event
loop each log with their own subject.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any

_subject_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "subject_id", default=None
)
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_component: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "component", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)

_ALL = (_subject_id, _run_id, _component, _step)


@dataclass(frozen=True)
class LogContext:
    """Snapshot of the current logging context."""

    subject_id: str | None = None
    run_id: str | None = None
    component: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Non-None fields only."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        subject_id=_subject_id.get(),
        run_id=_run_id.get(),
        component=_component.get(),
        step=_step.get(),
    )


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def set_subject_context(subject_id: str, run_id: str | None = None) -> str:
    """Set subject-level context; returns the run id in effect."""
    run_id = run_id or new_run_id()
    _subject_id.set(subject_id)
    _run_id.set(run_id)
    return run_id


def set_component_context(component: str, step: str | None = None) -> None:
    _component.set(component)
    _step.set(step)


@contextmanager
def subject_context(subject_id: str, run_id: str | None = None) -> Iterator[str]:
    """Scope subject context to a block and restore the previous values after."""
    tokens = [var.set(var.get()) for var in _ALL]
    try:
        yield set_subject_context(subject_id, run_id)
    finally:
        for var, token in zip(_ALL, tokens):
            var.reset(token)


def clear_context() -> None:
    """Reset all context variables."""
    for var in _ALL:
        var.set(None)
