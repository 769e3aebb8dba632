"""Canary traffic shifting.

Moves traffic from an application's old deployment (``deployments[0]``) to
its new one (``deployments[1]``) in discrete, scheduled steps.

States:
    INACTIVE: No canary configured, or rolled back
    STEPPING: Active; each due tick shifts ``step_weight`` percent of traffic
    COMPLETE: All steps done; new deployment takes 100%, old one is dropped

::

    INACTIVE ──activate()──► STEPPING ──tick() × steps──► COMPLETE
        ▲                       │                            │
        └──────rollback()───────┘                            │
        └──────────────────────────reset()───────────────────┘

The stepper owns no thread and never sleeps. An external driver calls
:meth:`CanaryStepper.tick` on its own schedule; ticks that arrive before
``next_scheduled_time`` are no-ops. Time comes from an injectable clock so
tests are deterministic. Inputs are never mutated: every transition returns
an updated deep copy of the ``ApplicationSpec``.

Example:
    >>> stepper = CanaryStepper(clock=lambda: now)
    >>> app = stepper.activate(app, steps=4, step_interval=timedelta(minutes=5))
    >>> result = stepper.tick(app)          # before the first step is due
    >>> result.advanced
    False
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from appchart.chart.models import ApplicationSpec, CanarySpec, DeploymentSpec
from appchart.core.errors import CanaryError
from appchart.core.logging import get_logger

logger = get_logger(__name__)

MINIMUM_STEPS = 2
MAXIMUM_STEPS = 100
FULL_WEIGHT = 100

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CanaryPhase(str, Enum):
    INACTIVE = "inactive"
    STEPPING = "stepping"
    COMPLETE = "complete"


def canary_phase(canary: CanarySpec) -> CanaryPhase:
    if canary.active:
        return CanaryPhase.STEPPING
    if canary.steps > 0 and canary.current_step >= canary.steps:
        return CanaryPhase.COMPLETE
    return CanaryPhase.INACTIVE


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

CANARY_NOT_ACTIVE = "CanaryNotActive"
CANARY_STARTED = "CanaryStarted"
CANARY_NEXT_STEP = "CanaryNextStep"
CANARY_STEP_TARGET = "CanaryStepTarget"
CANARY_FINISHED = "CanaryFinished"
CANARY_ROLLED_BACK = "CanaryRolledBack"

_DESCRIPTIONS = {
    CANARY_NOT_ACTIVE: "error - canary triggered, but not active",
    CANARY_STARTED: "started",
    CANARY_NEXT_STEP: "weight change",
    CANARY_STEP_TARGET: "units change",
    CANARY_FINISHED: "finished",
    CANARY_ROLLED_BACK: "rolled back",
}

ANNOTATION_PREFIX = "canary.appchart.io/"
ANNOTATION_APP_NAME = ANNOTATION_PREFIX + "app-name"
ANNOTATION_DEPLOYMENT_VERSION = ANNOTATION_PREFIX + "deployment-version"
ANNOTATION_EVENT_NAME = ANNOTATION_PREFIX + "event-name"
ANNOTATION_DESCRIPTION = ANNOTATION_PREFIX + "description"
ANNOTATION_STEP = ANNOTATION_PREFIX + "step"
ANNOTATION_VERSION_SOURCE = ANNOTATION_PREFIX + "version-source"
ANNOTATION_VERSION_DEST = ANNOTATION_PREFIX + "version-dest"
ANNOTATION_WEIGHT_SOURCE = ANNOTATION_PREFIX + "weight-source"
ANNOTATION_WEIGHT_DEST = ANNOTATION_PREFIX + "weight-dest"
ANNOTATION_PROCESS_NAME = ANNOTATION_PREFIX + "process-name"
ANNOTATION_UNITS_SOURCE = ANNOTATION_PREFIX + "source-process-units"
ANNOTATION_UNITS_DEST = ANNOTATION_PREFIX + "dest-process-units"


@dataclass
class CanaryEvent:
    """A canary transition, annotated for the driver's event recorder."""

    app_name: str
    deployment_version: int
    name: str
    description: str
    annotations: dict[str, str] = field(default_factory=dict)

    def message(self) -> str:
        return (
            f"{self.name} - Canary for app {self.app_name} | "
            f"version {self.deployment_version} - {self.description}"
        )


def _event(app: ApplicationSpec, name: str, **extra: str) -> CanaryEvent:
    version = app.deployments[-1].version if app.deployments else 0
    description = _DESCRIPTIONS[name]
    annotations = {
        ANNOTATION_APP_NAME: app.name,
        ANNOTATION_DEPLOYMENT_VERSION: str(version),
        ANNOTATION_EVENT_NAME: name,
        ANNOTATION_DESCRIPTION: description,
    }
    annotations.update(extra)
    event = CanaryEvent(
        app_name=app.name,
        deployment_version=version,
        name=name,
        description=description,
        annotations=annotations,
    )
    logger.info("canary_event", event_name=name, app=app.name, message=event.message())
    return event


def _step_event(app: ApplicationSpec, source: DeploymentSpec, dest: DeploymentSpec) -> CanaryEvent:
    return _event(
        app,
        CANARY_NEXT_STEP,
        **{
            ANNOTATION_STEP: str(app.canary.current_step),
            ANNOTATION_VERSION_SOURCE: str(source.version),
            ANNOTATION_VERSION_DEST: str(dest.version),
            ANNOTATION_WEIGHT_SOURCE: str(source.routing_settings.weight),
            ANNOTATION_WEIGHT_DEST: str(dest.routing_settings.weight),
        },
    )


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


def updated_units(weight: int, target_units: int) -> tuple[int, int]:
    """Split ``target_units`` between source and destination by source ``weight``.

    ``updated_units(75, 4) == (3, 1)``. The source keeps at least one unit
    until the canary finishes.
    """
    weight = min(weight, FULL_WEIGHT)
    dest_units = target_units - math.floor(weight / FULL_WEIGHT * target_units)
    if dest_units == target_units:
        return 1, dest_units
    return target_units - dest_units, dest_units


def _set_units(deployment: DeploymentSpec, process_name: str, units: int) -> bool:
    for process in deployment.processes:
        if process.name == process_name:
            process.units = units
            return True
    return False


# ---------------------------------------------------------------------------
# Stepper
# ---------------------------------------------------------------------------


@dataclass
class CanaryTick:
    """Outcome of one tick."""

    app: ApplicationSpec
    advanced: bool
    phase: CanaryPhase
    events: list[CanaryEvent] = field(default_factory=list)


class CanaryStepper:
    """Advances canary rollouts.

    Args:
        clock: Returns the current time; ``utcnow`` by default
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self.clock = clock

    def activate(
        self,
        app: ApplicationSpec,
        steps: int,
        step_interval: timedelta,
        *,
        step_weight: int | None = None,
        target: Mapping[str, int] | None = None,
    ) -> ApplicationSpec:
        """Start a canary between ``deployments[0]`` and ``deployments[1]``.

        Raises:
            CanaryError: the canary is not INACTIVE, the app does not have
                exactly two deployments, or the step settings are invalid
        """
        phase = canary_phase(app.canary)
        if phase is not CanaryPhase.INACTIVE:
            raise CanaryError(f"canary is {phase.value}; it must be inactive to start").with_context(
                app=app.name
            )
        if len(app.deployments) != 2:
            raise CanaryError(
                "canary deployment requires exactly two deployments"
            ).with_context(app=app.name, deployments=len(app.deployments))
        if not MINIMUM_STEPS <= steps <= MAXIMUM_STEPS:
            raise CanaryError(
                f"steps must be within the range {MINIMUM_STEPS} to {MAXIMUM_STEPS}"
            ).with_context(app=app.name)
        if step_interval <= timedelta(0):
            raise CanaryError("step interval must be positive").with_context(app=app.name)
        if step_weight is None:
            step_weight = FULL_WEIGHT // steps
        if not 0 < step_weight <= FULL_WEIGHT:
            raise CanaryError("step weight must be within the range 1 to 100").with_context(
                app=app.name
            )

        now = _as_utc(self.clock())
        updated = app.model_copy(deep=True)
        updated.deployments[0].routing_settings.weight = FULL_WEIGHT
        updated.deployments[1].routing_settings.weight = 0
        updated.canary = CanarySpec(
            steps=steps,
            step_weight=step_weight,
            step_interval=step_interval,
            next_scheduled_time=now + step_interval,
            current_step=0,
            active=True,
            started=now,
            target=dict(target or {}),
        )
        logger.info(
            "canary_activated",
            app=app.name,
            steps=steps,
            step_weight=step_weight,
            source=updated.deployments[0].version,
            dest=updated.deployments[1].version,
        )
        return updated

    def tick(self, app: ApplicationSpec) -> CanaryTick:
        """Advance the canary one step if the next step is due.

        Raises:
            CanaryError: the canary is active but has fewer than two
                deployments or no scheduled step
        """
        canary = app.canary
        if not canary.active:
            event = _event(app, CANARY_NOT_ACTIVE)
            return CanaryTick(app=app, advanced=False, phase=canary_phase(canary), events=[event])
        if len(app.deployments) < 2:
            raise CanaryError("canary needs more than 1 deployment to run").with_context(app=app.name)
        if canary.next_scheduled_time is None:
            raise CanaryError("canary is active but the next step is not scheduled").with_context(
                app=app.name
            )

        now = _as_utc(self.clock())
        if now < _as_utc(canary.next_scheduled_time):
            return CanaryTick(app=app, advanced=False, phase=CanaryPhase.STEPPING)

        updated = app.model_copy(deep=True)
        canary = updated.canary
        source, dest = updated.deployments[0], updated.deployments[1]
        events = []
        if canary.current_step == 0:
            events.append(_event(updated, CANARY_STARTED))

        source.routing_settings.weight = max(0, source.routing_settings.weight - canary.step_weight)
        dest.routing_settings.weight = min(FULL_WEIGHT, dest.routing_settings.weight + canary.step_weight)
        canary.current_step += 1
        canary.next_scheduled_time = _as_utc(canary.next_scheduled_time) + canary.step_interval
        events.append(_step_event(updated, source, dest))

        if canary.target:
            events.extend(self._scale_units(updated, source, dest))

        if canary.current_step >= canary.steps or dest.routing_settings.weight >= FULL_WEIGHT:
            self._finish(updated, dest)
            events.append(_event(updated, CANARY_FINISHED))

        return CanaryTick(app=updated, advanced=True, phase=canary_phase(canary), events=events)

    def _scale_units(
        self, app: ApplicationSpec, source: DeploymentSpec, dest: DeploymentSpec
    ) -> list[CanaryEvent]:
        events = []
        for process_name, target in sorted(app.canary.target.items()):
            source_units, dest_units = updated_units(source.routing_settings.weight, target)
            if not _set_units(source, process_name, source_units):
                logger.info("canary_process_missing", process=process_name, version=source.version)
            if not _set_units(dest, process_name, dest_units):
                logger.info("canary_process_missing", process=process_name, version=dest.version)
            events.append(
                _event(
                    app,
                    CANARY_STEP_TARGET,
                    **{
                        ANNOTATION_PROCESS_NAME: process_name,
                        ANNOTATION_UNITS_SOURCE: str(source_units),
                        ANNOTATION_UNITS_DEST: str(dest_units),
                    },
                )
            )
        for process in dest.processes:
            if process.name not in app.canary.target:
                process.units = 1
        return events

    @staticmethod
    def _finish(app: ApplicationSpec, dest: DeploymentSpec) -> None:
        for process in dest.processes:
            if process.name in app.canary.target:
                process.units = app.canary.target[process.name]
        # The last step may stop short of 100 (steps=3, step_weight=33).
        dest.routing_settings.weight = FULL_WEIGHT
        app.deployments = [dest]
        app.canary.active = False
        app.canary.current_step = app.canary.steps
        app.canary.next_scheduled_time = None

    def rollback(self, app: ApplicationSpec) -> ApplicationSpec:
        """Send all traffic back to the old deployment and deactivate the canary."""
        if len(app.deployments) < 2:
            raise CanaryError("nothing to roll back: fewer than two deployments").with_context(
                app=app.name
            )
        updated = app.model_copy(deep=True)
        updated.deployments[0].routing_settings.weight = FULL_WEIGHT
        updated.deployments[1].routing_settings.weight = 0
        updated.canary.active = False
        updated.canary.current_step = 0
        updated.canary.next_scheduled_time = None
        _event(updated, CANARY_ROLLED_BACK)
        return updated

    def reset(self, app: ApplicationSpec) -> ApplicationSpec:
        """Return a finished canary to INACTIVE so a new one can start."""
        phase = canary_phase(app.canary)
        if phase is CanaryPhase.STEPPING:
            raise CanaryError("canary is still stepping; roll it back first").with_context(app=app.name)
        updated = app.model_copy(deep=True)
        updated.canary = CanarySpec()
        return updated


__all__ = [
    "CanaryEvent",
    "CanaryPhase",
    "CanaryStepper",
    "CanaryTick",
    "Clock",
    "canary_phase",
    "updated_units",
    "utcnow",
]
