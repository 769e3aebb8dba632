"""Rollout helpers: canary traffic shifting and per-app cancellation."""

from __future__ import annotations

from appchart.rollout.canary import (
    CanaryEvent,
    CanaryPhase,
    CanaryStepper,
    CanaryTick,
    canary_phase,
    updated_units,
    utcnow,
)
from appchart.rollout.cancellation import CancellationRegistry, CancelScope

__all__ = [
    "CanaryEvent",
    "CanaryPhase",
    "CanaryStepper",
    "CanaryTick",
    "CancelScope",
    "CancellationRegistry",
    "canary_phase",
    "updated_units",
    "utcnow",
]
