"""Process definition files (Procfiles).

A Procfile lists the processes of a deployment, one per line::

    # comment
    web: gunicorn app:app
    worker: celery worker

Blank lines, ``#`` comments and lines whose name does not match
``[A-Za-z0-9_-]+`` are skipped. Exactly one process is routable, i.e.
receives ingress traffic: ``web`` when present, otherwise the
lexicographically smallest name.

Example:
    >>> procfile = parse_procfile("web: gunicorn app:app\\nworker: celery worker")
    >>> procfile.routable_process_name
    'web'
    >>> procfile.processes["worker"]
    ['celery worker']
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from appchart.chart.models import ProcessSpec
from appchart.core.errors import EmptyDefinitionError
from appchart.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ROUTABLE_PROCESS_NAME = "web"

_PROCESS_NAME = re.compile(r"^([A-Za-z0-9_-]+)$")
_PROCFILE_LINE = re.compile(r"^([A-Za-z0-9_-]+):\s*(.+)$")


@dataclass
class Procfile:
    """Parsed process definitions of one deployment."""

    processes: dict[str, list[str]] = field(default_factory=dict)
    routable_process_name: str = ""

    def is_routable(self, process_name: str) -> bool:
        return self.routable_process_name == process_name

    def sorted_names(self) -> list[str]:
        return sorted(self.processes)


def routable_process(names: Iterable[str]) -> str:
    """Pick the routable process: ``web`` if present, else the smallest name."""
    names = list(names)
    if DEFAULT_ROUTABLE_PROCESS_NAME in names:
        return DEFAULT_ROUTABLE_PROCESS_NAME
    return min(names)


def parse_procfile(content: str) -> Procfile:
    """Parse Procfile text.

    Raises:
        EmptyDefinitionError: no line defines a process
    """
    processes: dict[str, list[str]] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        match = _PROCFILE_LINE.match(line)
        if match is None:
            logger.debug("procfile_line_skipped", line=line)
            continue
        name, command = match.group(1), match.group(2).strip()
        processes[name] = [command]
    if not processes:
        raise EmptyDefinitionError()
    return Procfile(processes=processes, routable_process_name=routable_process(processes))


def procfile_from_processes(processes: list[ProcessSpec]) -> Procfile:
    """Build a Procfile from the process specs of a deployment."""
    if not processes:
        raise EmptyDefinitionError()
    procfile = Procfile(processes={spec.name: list(spec.cmd) for spec in processes})
    procfile.routable_process_name = routable_process(procfile.processes)
    return procfile


def procfile_from_build_metadata(build_metadata: str) -> Procfile:
    """Build a Procfile from the ``io.buildpacks.build.metadata`` image label.

    Images built by buildpacks install one launcher per process type, so the
    command of each process is the process type itself.
    """
    meta = json.loads(build_metadata)
    processes: dict[str, list[str]] = {}
    for process in meta.get("processes") or []:
        match = _PROCESS_NAME.match(process.get("type", ""))
        if match is None:
            continue
        name = match.group(1)
        processes[name] = [name.strip()]
    if not processes:
        raise EmptyDefinitionError()
    return Procfile(processes=processes, routable_process_name=routable_process(processes))


def render_procfile(processes: list[ProcessSpec]) -> str:
    """Render process specs back into Procfile text."""
    return "".join(f"{spec.name}: {' '.join(spec.cmd)}\n" for spec in processes)


__all__ = [
    "DEFAULT_ROUTABLE_PROCESS_NAME",
    "Procfile",
    "parse_procfile",
    "procfile_from_build_metadata",
    "procfile_from_processes",
    "render_procfile",
    "routable_process",
]
