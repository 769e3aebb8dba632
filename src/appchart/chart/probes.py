"""Health-check probes, restart hooks and process commands.

Projects a deployment manifest's ``healthcheck`` and ``hooks`` sections into
the pod-level fields of a process:

* liveness / readiness / startup probes are copied unchanged;
* a legacy ``path`` health check is turned into a readiness probe when no
  probe object is configured;
* restart ``after`` hooks become a ``postStart`` lifecycle command;
* restart ``before`` hooks are prepended to the process command.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from appchart.chart.models import HealthcheckConfig, Hooks
from appchart.core.errors import HealthcheckError

DEFAULT_HEALTHCHECK_SCHEME = "http"
DEFAULT_HEALTHCHECK_METHOD = "GET"
DEFAULT_HEALTHCHECK_TIMEOUT_SECONDS = 60
DEFAULT_HEALTHCHECK_INTERVAL_SECONDS = 10
DEFAULT_HEALTHCHECK_ALLOWED_FAILURES = 3
ONE_SHOT_PROBE_PERIOD_SECONDS = 3


@dataclass
class Probes:
    liveness: dict[str, Any] | None = None
    readiness: dict[str, Any] | None = None
    startup: dict[str, Any] | None = None


def resolve_probes(healthcheck: HealthcheckConfig | None, port: int) -> Probes:
    """Resolve the probes of a process listening on ``port``.

    Raises:
        HealthcheckError: a router health check uses a method other than GET
    """
    if healthcheck is None:
        return Probes()
    if healthcheck.has_probes:
        return Probes(
            liveness=copy.deepcopy(healthcheck.liveness_probe),
            readiness=copy.deepcopy(healthcheck.readiness_probe),
            startup=copy.deepcopy(healthcheck.startup_probe),
        )
    if not healthcheck.path:
        return Probes()
    return _legacy_probes(healthcheck, port)


def _legacy_probes(hc: HealthcheckConfig, port: int) -> Probes:
    scheme = hc.scheme or DEFAULT_HEALTHCHECK_SCHEME
    method = hc.method.upper() or DEFAULT_HEALTHCHECK_METHOD
    interval = hc.interval_seconds or DEFAULT_HEALTHCHECK_INTERVAL_SECONDS
    timeout = hc.timeout_seconds or DEFAULT_HEALTHCHECK_TIMEOUT_SECONDS
    allowed_failures = hc.allowed_failures or DEFAULT_HEALTHCHECK_ALLOWED_FAILURES

    if not hc.use_in_router:
        url = f"{scheme}://localhost:{port}/{hc.path.lstrip('/')}"
        # Succeeds once, then stays ready.
        script = (
            "if [ ! -f /tmp/onetimeprobesuccessful ]; then "
            f"curl -ksSf -X{method} -o /dev/null {url} && touch /tmp/onetimeprobesuccessful; fi"
        )
        readiness = {
            "failureThreshold": allowed_failures,
            "periodSeconds": ONE_SHOT_PROBE_PERIOD_SECONDS,
            "timeoutSeconds": timeout,
            "exec": {"command": ["sh", "-c", script]},
        }
        return Probes(readiness=readiness)

    if method != DEFAULT_HEALTHCHECK_METHOD:
        raise HealthcheckError()
    probe = {
        "failureThreshold": allowed_failures,
        "periodSeconds": interval,
        "timeoutSeconds": timeout,
        "httpGet": {"path": hc.path, "port": port, "scheme": scheme.upper()},
    }
    return Probes(
        readiness=probe,
        liveness=copy.deepcopy(probe) if hc.force_restart else None,
    )


def resolve_lifecycle(hooks: Hooks | None) -> dict[str, Any] | None:
    """Turn restart ``after`` hooks into a ``postStart`` lifecycle handler."""
    if hooks is None or not hooks.restart.after:
        return None
    return {
        "postStart": {
            "exec": {"command": ["sh", "-c", " && ".join(hooks.restart.after)]},
        },
    }


def resolve_command(cmd: list[str], hooks: Hooks | None) -> list[str]:
    """Prefix a process command with the restart ``before`` hooks."""
    if hooks is None or not hooks.restart.before or not cmd:
        return list(cmd)
    before = " && ".join(hooks.restart.before) + " && "
    if len(cmd) > 1:
        return ["/bin/sh", "-lc", before + 'exec $0 "$@"', *cmd]
    return ["/bin/sh", "-lc", before + "exec " + cmd[0]]


__all__ = [
    "Probes",
    "resolve_command",
    "resolve_lifecycle",
    "resolve_probes",
]
