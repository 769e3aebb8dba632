"""Chart template sets.

A template set is the content of a chart's ``templates/`` folder: file name
→ template text. The compiler treats templates as opaque and copies them
verbatim into the chart. Which set is used depends on the environment's
ingress controller (``ingress-traefik-templates``,
``ingress-istio-templates``, ...).

Readers:
    InMemoryTemplateStore: dict-backed store with ``update``, used by
        drivers that keep templates in a config map and by tests.
    DirectoryTemplateReader: one sub-directory per template set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from appchart.chart.models import IngressControllerType
from appchart.core.errors import TemplatesNotFoundError


@dataclass
class TemplateSet:
    """Content of each yaml file in a chart's ``templates/`` folder."""

    yamls: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class TemplateReader(Protocol):
    def get(self, name: str) -> TemplateSet:
        """Return the template set stored under ``name``.

        Raises:
            TemplatesNotFoundError: nothing is stored under ``name``
        """
        ...


def ingress_templates_name(ingress_type: IngressControllerType | str) -> str:
    """Name of the template set for an ingress controller type."""
    if isinstance(ingress_type, IngressControllerType):
        ingress_type = ingress_type.value
    return f"ingress-{ingress_type}-templates"


class InMemoryTemplateStore:
    def __init__(self, sets: dict[str, TemplateSet] | None = None) -> None:
        self._sets: dict[str, TemplateSet] = dict(sets or {})

    def get(self, name: str) -> TemplateSet:
        try:
            stored = self._sets[name]
        except KeyError:
            raise TemplatesNotFoundError(f"templates {name!r} not found") from None
        return TemplateSet(yamls=dict(stored.yamls))

    def update(self, name: str, templates: TemplateSet) -> None:
        self._sets[name] = TemplateSet(yamls=dict(templates.yamls))


def read_directory(directory: Path | str) -> TemplateSet:
    """Read every regular file of ``directory`` into a template set."""
    directory = Path(directory)
    if not directory.is_dir():
        raise TemplatesNotFoundError(f"template directory {str(directory)!r} not found")
    return TemplateSet(
        yamls={
            path.name: path.read_text(encoding="utf-8")
            for path in sorted(directory.iterdir())
            if path.is_file()
        }
    )


class DirectoryTemplateReader:
    """Reads template set ``name`` from ``<root>/<name>/``."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def get(self, name: str) -> TemplateSet:
        return read_directory(self.root / name)


__all__ = [
    "DirectoryTemplateReader",
    "InMemoryTemplateStore",
    "TemplateReader",
    "TemplateSet",
    "ingress_templates_name",
    "read_directory",
]
